"""
시간 합계: TimeEntry 목록 → 작업자별/전체 분 합계.

저장 값이 아님: 실행 중 구간은 now 기준으로 매번 다시 계산.
"""

from collections.abc import Iterable
from datetime import datetime

from src.core.clock import duration_minutes, utc_now
from src.domain.schemas import TimeEntry, Totals


def entry_minutes(entry: TimeEntry, now: datetime | None = None) -> int:
    """TimeEntry 하나의 분 단위 길이."""
    return duration_minutes(entry.start_ts, entry.end_ts, now=now)


def compute_totals(
    entries: Iterable[TimeEntry],
    now: datetime | None = None,
) -> Totals:
    """
    Totals 계산.

    Args:
        entries: TimeEntry 목록
        now: 실행 중 구간 기준 시각 (None 이면 호출 시점)

    Returns:
        Totals (total == sum(per_worker))
    """
    now = now or utc_now()
    totals = Totals()

    for entry in entries:
        minutes = entry_minutes(entry, now)
        totals.total += minutes
        totals.per_worker[entry.worker] = totals.per_worker.get(entry.worker, 0) + minutes

    return totals
