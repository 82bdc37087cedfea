"""
test_exclusivity.py - 작업자 동시 실행 검사 테스트

DoD:
- 실행 중 없음 → IDLE
- 같은 Job 실행 중 → AlreadyRunning
- 다른 Job 실행 중 → Conflict (other_job_id), allow_conflict 로 진행 + 경고 로그
"""

import logging

import pytest

from src.core.exclusivity import ExclusivityStatus, check_worker, ensure_can_start
from src.domain.errors import AlreadyRunning, Conflict, ErrorCodes


class TestCheckWorker:
    """check_worker 테스트."""

    def test_idle(self, store, job):
        result = check_worker(store, "Esteban", job.id)

        assert result.status == ExclusivityStatus.IDLE
        assert result.entry is None

    def test_running_here(self, store, job, clock):
        store.insert_entry(job.id, "Esteban", "Service", clock())

        result = check_worker(store, "Esteban", job.id)

        assert result.status == ExclusivityStatus.RUNNING_HERE
        assert result.entry.job_id == job.id

    def test_running_elsewhere(self, store, lifecycle, job, clock):
        other = lifecycle.create("Andere Arbeit", plate="BE 1")
        store.insert_entry(other.id, "Esteban", None, clock())

        result = check_worker(store, "Esteban", job.id)

        assert result.status == ExclusivityStatus.RUNNING_ELSEWHERE
        assert result.other_job_id == other.id

    def test_stopped_entries_ignored(self, store, job, clock):
        entry = store.insert_entry(job.id, "Esteban", None, clock())
        store.update_entry(entry.id, {"end_ts": clock.advance(minutes=5)})

        assert check_worker(store, "Esteban", job.id).status == ExclusivityStatus.IDLE


class TestEnsureCanStart:
    """ensure_can_start 테스트."""

    def test_already_running_same_job(self, store, job, clock):
        store.insert_entry(job.id, "Eron", None, clock())

        with pytest.raises(AlreadyRunning) as exc_info:
            ensure_can_start(store, "Eron", job.id)

        assert exc_info.value.code == ErrorCodes.TIMER_ALREADY_RUNNING

    def test_already_running_not_overridable(self, store, job, clock):
        """allow_conflict 는 같은 Job 중복에는 적용 안 됨."""
        store.insert_entry(job.id, "Eron", None, clock())

        with pytest.raises(AlreadyRunning):
            ensure_can_start(store, "Eron", job.id, allow_conflict=True)

    def test_conflict_other_job(self, store, lifecycle, job, clock):
        other = lifecycle.create("Reifenwechsel", plate="ZH 2")
        store.insert_entry(other.id, "Eron", None, clock())

        with pytest.raises(Conflict) as exc_info:
            ensure_can_start(store, "Eron", job.id)

        err = exc_info.value
        assert err.code == ErrorCodes.WORKER_RUNNING_ELSEWHERE
        assert err.context["other_job_id"] == other.id
        assert err.http_status == 409

    def test_conflict_overridden_logs_warning(self, store, lifecycle, job, clock, caplog):
        other = lifecycle.create("Reifenwechsel", plate="ZH 2")
        store.insert_entry(other.id, "Eron", None, clock())

        caplog.set_level(logging.WARNING, logger="src.core.exclusivity")
        result = ensure_can_start(store, "Eron", job.id, allow_conflict=True)

        assert result.status == ExclusivityStatus.RUNNING_ELSEWHERE
        assert any("conflict overridden" in r.message for r in caplog.records)
