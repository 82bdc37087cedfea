"""
시간 유틸리티: 타임스탬프 → 분 단위 duration, 표시 문자열.

- 실행 중인 구간(end 없음)은 호출 시점의 now 기준 → 렌더마다 증가
- 음수 duration 없음 (시계 차이로 start > now 여도 0)
"""

import math
from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """현재 UTC 시각 (timezone-aware)."""
    return datetime.now(UTC)


def duration_minutes(
    start: datetime,
    end: datetime | None = None,
    now: datetime | None = None,
) -> int:
    """
    구간 길이 (분, 반올림).

    Args:
        start: 시작 시각
        end: 종료 시각 (None 이면 실행 중)
        now: 실행 중일 때 기준 시각 (None 이면 utc_now())

    Returns:
        max(0, round((end or now - start) / 60s))
    """
    stop = end if end is not None else (now or utc_now())
    seconds = (stop - start).total_seconds()
    # 0.5 분은 올림 (Python round 의 banker's rounding 회피)
    minutes = math.floor(seconds / 60 + 0.5)
    return max(0, minutes)


def fmt_minutes(minutes: int) -> str:
    """
    분 → "1 h 5 min" / "45 min".

    Examples:
        >>> fmt_minutes(75)
        '1 h 15 min'
        >>> fmt_minutes(45)
        '45 min'
    """
    hours, rest = divmod(minutes, 60)
    if hours <= 0:
        return f"{rest} min"
    return f"{hours} h {rest} min"


def to_local(value: datetime | None, tz_name: str | None = None) -> str:
    """
    표시용 로컬 시각 문자열 (dd.mm.YYYY, HH:MM:SS).

    tz_name 이 주어지면 해당 타임존으로 변환.
    """
    if value is None:
        return ""
    if tz_name:
        from zoneinfo import ZoneInfo

        value = value.astimezone(ZoneInfo(tz_name))
    return value.strftime("%d.%m.%Y, %H:%M:%S")
