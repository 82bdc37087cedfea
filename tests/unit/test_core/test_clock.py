"""
test_clock.py - 시간 유틸리티 테스트

DoD:
- duration 은 분 단위 반올림, 음수 없음
- 실행 중 구간은 now 기준
- 표시 문자열 포맷
"""

from datetime import UTC, datetime, timedelta

import pytest

from src.core.clock import duration_minutes, fmt_minutes, to_local

T0 = datetime(2026, 3, 2, 8, 0, 0, tzinfo=UTC)


class TestDurationMinutes:
    """duration_minutes 테스트."""

    @pytest.mark.parametrize(
        "delta, expected",
        [
            (timedelta(minutes=45), 45),
            (timedelta(seconds=89), 1),
            (timedelta(seconds=90), 2),  # 0.5 분은 올림
            (timedelta(seconds=150), 3),
            (timedelta(seconds=29), 0),
            (timedelta(0), 0),
        ],
    )
    def test_rounds_to_nearest_minute(self, delta, expected):
        assert duration_minutes(T0, T0 + delta) == expected

    def test_negative_clamped_to_zero(self):
        """start > end (시계 차이) → 0."""
        assert duration_minutes(T0, T0 - timedelta(minutes=5)) == 0

    def test_running_uses_now(self):
        now = T0 + timedelta(minutes=30)
        assert duration_minutes(T0, None, now=now) == 30

    def test_running_grows_with_now(self):
        """실행 중 구간은 now 가 늘면 감소하지 않음."""
        values = [
            duration_minutes(T0, None, now=T0 + timedelta(minutes=m))
            for m in (1, 5, 5, 60)
        ]
        assert values == sorted(values)

    def test_end_wins_over_now(self):
        end = T0 + timedelta(minutes=10)
        now = T0 + timedelta(minutes=99)
        assert duration_minutes(T0, end, now=now) == 10


class TestFmtMinutes:
    """fmt_minutes 테스트."""

    def test_under_one_hour(self):
        assert fmt_minutes(45) == "45 min"

    def test_zero(self):
        assert fmt_minutes(0) == "0 min"

    def test_hours_and_minutes(self):
        assert fmt_minutes(75) == "1 h 15 min"

    def test_full_hours(self):
        assert fmt_minutes(120) == "2 h 0 min"


class TestToLocal:
    """to_local 테스트."""

    def test_none_is_empty(self):
        assert to_local(None) == ""

    def test_format_without_timezone(self):
        assert to_local(T0) == "02.03.2026, 08:00:00"
