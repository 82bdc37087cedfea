"""
Rapport 데이터 구성 + 포맷 디스패치.

build_report(data, fmt) → bytes, 라이프사이클에 아무것도 되돌려 주지 않는 순수 함수.

포맷:
- xlsx: openpyxl
- docx: python-docx (사진/서명 이미지 포함)
- csv: 시간 테이블만
- pdf: Jinja2 HTML → WeasyPrint (선택 의존성)
"""

from dataclasses import dataclass, field
from datetime import datetime

from src.core.clock import fmt_minutes, to_local
from src.core.totals import entry_minutes
from src.domain.errors import ErrorCodes, ValidationError
from src.domain.schemas import Job, TimeEntry, Totals

REPORT_FORMATS = ("xlsx", "docx", "csv", "pdf")

RUNNING_LABEL = "läuft…"
TABLE_HEADER = ["Mitarbeiter", "Tätigkeit", "Start", "Ende", "Min", "Dauer"]


@dataclass
class ReportImage:
    """리포트에 넣을 이미지 (이미 다운로드된 바이트)."""
    name: str
    data: bytes
    content_type: str = "image/jpeg"


@dataclass
class ReportData:
    """Rapport 입력 스냅샷."""
    job: Job
    entries: list[TimeEntry]  # 오래된 순
    totals: Totals
    checklist: list[tuple[str, bool]] = field(default_factory=list)  # (label, checked)
    photos: list[ReportImage] = field(default_factory=list)
    signature: ReportImage | None = None
    now: datetime | None = None
    timezone: str | None = None

    def header_lines(self) -> list[str]:
        """머리말 정보 (빈 줄 제외)."""
        job = self.job
        lines = [
            f"Auftrag: {job.title}",
            f"Kunde: {job.customer or ''}",
            f"Fahrzeug: {job.vehicle or ''}",
            f"Kontrollschild: {job.plate or ''}",
            f"VIN: {job.vin or ''}",
            f"Status: {'Abgeschlossen' if job.is_done else 'Offen'}",
        ]
        if job.closed_at:
            lines.append(f"Abgeschlossen: {to_local(job.closed_at, self.timezone)}")
        return lines

    def table_rows(self) -> list[list[str]]:
        """시간 테이블 행."""
        rows = []
        for e in self.entries:
            minutes = entry_minutes(e, self.now)
            rows.append([
                e.worker,
                e.task or "",
                to_local(e.start_ts, self.timezone),
                to_local(e.end_ts, self.timezone) if e.end_ts else RUNNING_LABEL,
                str(minutes),
                fmt_minutes(minutes),
            ])
        return rows

    def total_line(self) -> str:
        total = self.totals.total
        return f"TOTAL: {fmt_minutes(total)} ({total} min)"

    def signature_caption(self) -> str:
        job = self.job
        when = to_local(job.signature_at, self.timezone) if job.signature_at else ""
        return f"{job.signature_name or ''} · {when}"


def report_filename(job: Job, fmt: str) -> str:
    """rapport_{plate}_{job_id}.{fmt} (plate 없으면 ohne-kennzeichen)."""
    plate = "_".join((job.plate or "ohne-kennzeichen").split())
    return f"rapport_{plate}_{job.id}.{fmt}"


def build_report(data: ReportData, fmt: str) -> bytes:
    """
    포맷별 리포트 바이트 생성.

    Raises:
        ValidationError: UNSUPPORTED_FORMAT
        BackendError: RENDER_FAILED (렌더러 내부 실패)
    """
    fmt = fmt.lower()
    if fmt == "xlsx":
        from src.render.excel import render_xlsx

        return render_xlsx(data)
    if fmt == "docx":
        from src.render.word import render_docx

        return render_docx(data)
    if fmt == "csv":
        from src.render.csv_export import render_csv

        return render_csv(data)
    if fmt == "pdf":
        from src.render.pdf import render_pdf

        return render_pdf(data)

    raise ValidationError(
        ErrorCodes.UNSUPPORTED_FORMAT,
        f"Format nicht unterstützt: {fmt}",
        supported=list(REPORT_FORMATS),
    )
