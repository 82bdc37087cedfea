"""
Rapport 렌더러 공용 fixture.

Esteban 45 min + Eron 30 min (완료), Tsvetan 실행 중 10 min.
"""

from datetime import UTC, datetime, timedelta

import pytest

from src.core.totals import compute_totals
from src.domain.schemas import Job, JobStatus, TimeEntry
from src.render import ReportData, ReportImage

T0 = datetime(2026, 3, 2, 7, 0, 0, tzinfo=UTC)


@pytest.fixture
def report_job() -> Job:
    return Job(
        id="job-1",
        title="Müller – Golf – Service",
        status=JobStatus.DONE,
        customer="Müller",
        vehicle="VW Golf",
        plate="ZH 12345",
        vin="WVWZZZ1KZAW000001",
        created_at=T0,
        closed_at=T0 + timedelta(hours=2),
        signature_name="Hans Müller",
        signature_at=T0 + timedelta(hours=2),
    )


@pytest.fixture
def report_entries() -> list[TimeEntry]:
    """오래된 순."""
    return [
        TimeEntry("e1", "job-1", "Esteban", T0, task="Service", end_ts=T0 + timedelta(minutes=45)),
        TimeEntry(
            "e2", "job-1", "Eron", T0 + timedelta(minutes=50),
            task="Bremsen", end_ts=T0 + timedelta(minutes=80),
        ),
        TimeEntry("e3", "job-1", "Tsvetan", T0 + timedelta(minutes=90)),
    ]


@pytest.fixture
def report_now() -> datetime:
    return T0 + timedelta(minutes=100)


@pytest.fixture
def report_data(report_job, report_entries, report_now, png_bytes) -> ReportData:
    return ReportData(
        job=report_job,
        entries=report_entries,
        totals=compute_totals(report_entries, now=report_now),
        checklist=[("Öl gewechselt", True), ("Reifendruck", False)],
        photos=[ReportImage("km_1.png", png_bytes, "image/png")],
        signature=ReportImage("signature.png", png_bytes, "image/png"),
        now=report_now,
        timezone="Europe/Zurich",
    )
