"""
test_lifecycle.py - Job 생명주기 테스트

DoD:
- create: title/plate 필수, status=open
- close: 필수 사진 없으면 PreconditionFailed + 변경 없음
         성공 시 실행 중 타이머 전부 정지 후 done
- reopen: PIN 먼저 검증, entries 변경 없음
- start/stop: 닫힌 Job 잠김, 중복 실행 방지
"""

import logging
from unittest.mock import patch

import pytest

from src.domain.errors import (
    AlreadyRunning,
    AuthDenied,
    BackendError,
    Conflict,
    ErrorCodes,
    PreconditionFailed,
    ValidationError,
)
from src.domain.schemas import JobStatus

# =============================================================================
# create
# =============================================================================


class TestCreate:
    """Job 생성 테스트."""

    def test_create_open_job(self, lifecycle, clock):
        job = lifecycle.create("  Golf Service  ", customer=" ", plate="ZH 12345")

        assert job.status == JobStatus.OPEN
        assert job.title == "Golf Service"
        assert job.customer is None
        assert job.closed_at is None
        assert job.created_at == clock()
        assert job.odometer_photo_path is None
        assert job.identity_photo_path is None
        assert job.checklist == {}

    def test_missing_title(self, lifecycle):
        with pytest.raises(ValidationError) as exc_info:
            lifecycle.create("   ", plate="ZH 1")

        assert exc_info.value.code == ErrorCodes.MISSING_REQUIRED_FIELD
        assert exc_info.value.context["field"] == "title"

    def test_missing_plate(self, lifecycle, store):
        with pytest.raises(ValidationError) as exc_info:
            lifecycle.create("Golf Service", plate="")

        assert exc_info.value.context["field"] == "plate"
        assert store.list_jobs() == []

    def test_plate_optional_when_disabled(self, lifecycle):
        lifecycle.workshop.require_plate = False

        job = lifecycle.create("Golf Service")

        assert job.plate is None

    def test_get_missing_job(self, lifecycle):
        with pytest.raises(PreconditionFailed) as exc_info:
            lifecycle.get_job("nope")

        assert exc_info.value.code == ErrorCodes.JOB_NOT_FOUND
        assert exc_info.value.http_status == 404


# =============================================================================
# close
# =============================================================================


class TestClose:
    """Job 종료 테스트."""

    def test_missing_odometer_rejected_without_changes(self, lifecycle, service, store, job, clock):
        """identity 만 있고 odometer 없음 → 거절, 타이머/상태 변경 없음."""
        service.upload_photo(job.id, "front.jpg", b"x", kind="identity")
        lifecycle.start_timer(job.id, "Esteban", "Service")
        clock.advance(minutes=10)

        with pytest.raises(PreconditionFailed) as exc_info:
            lifecycle.close(job.id)

        err = exc_info.value
        assert err.code == ErrorCodes.REQUIRED_ARTIFACT_MISSING
        assert err.context["missing"] == ["odometer"]
        assert "odometer" in err.message

        reloaded = lifecycle.get_job(job.id)
        assert reloaded.status == JobStatus.OPEN
        assert reloaded.closed_at is None
        assert all(e.is_running for e in store.list_entries(job.id))

    def test_close_stops_running_timers(self, lifecycle, store, ready_job, clock):
        lifecycle.start_timer(ready_job.id, "Esteban", "Service")
        lifecycle.start_timer(ready_job.id, "Eron", "Bremsen")
        closed_at = clock.advance(minutes=20)

        result = lifecycle.close(ready_job.id)

        assert result.job.status == JobStatus.DONE
        assert result.job.closed_at == closed_at
        assert {e.worker for e in result.stopped_entries} == {"Esteban", "Eron"}
        entries = store.list_entries(ready_job.id)
        assert all(e.end_ts == closed_at for e in entries)

    def test_close_accepts_legacy_filenames(self, lifecycle, storage, job):
        """직접 참조 없이 파일명 규칙만으로도 close 가능."""
        storage.upload(f"{job.id}/KM_legacy.jpg", b"x", "image/jpeg")
        storage.upload(f"{job.id}/Ausweis_legacy.jpg", b"x", "image/jpeg")

        result = lifecycle.close(job.id)

        assert result.job.is_done

    def test_close_is_idempotent(self, lifecycle, ready_job, clock):
        first = lifecycle.close(ready_job.id)
        clock.advance(minutes=30)

        second = lifecycle.close(ready_job.id)

        assert second.already_closed
        assert second.job.closed_at == first.job.closed_at

    def test_close_retry_after_partial_failure(self, lifecycle, store, ready_job, clock, caplog):
        """1) 타이머 정지 후 2) 상태 변경 실패 → 재시도 시 같은 최종 상태."""
        lifecycle.start_timer(ready_job.id, "Esteban")
        clock.advance(minutes=5)

        caplog.set_level(logging.WARNING, logger="src.core.lifecycle")
        with patch.object(
            store, "update_job",
            side_effect=BackendError(ErrorCodes.BACKEND_REQUEST_FAILED, "boom"),
        ):
            with pytest.raises(BackendError):
                lifecycle.close(ready_job.id)

        assert any("partially applied" in r.message for r in caplog.records)
        assert not any(e.is_running for e in store.list_entries(ready_job.id))
        assert lifecycle.get_job(ready_job.id).status == JobStatus.OPEN

        result = lifecycle.close(ready_job.id)

        assert result.job.is_done
        assert result.stopped_entries == []


# =============================================================================
# reopen
# =============================================================================


class TestReopen:
    """Job 재오픈 테스트."""

    def test_reopen_with_pin(self, lifecycle, store, ready_job, admin_pin):
        lifecycle.start_timer(ready_job.id, "Esteban")
        lifecycle.close(ready_job.id)
        entries_before = [e.to_dict() for e in store.list_entries(ready_job.id)]

        job = lifecycle.reopen(ready_job.id, admin_pin)

        assert job.status == JobStatus.OPEN
        assert job.closed_at is None
        assert [e.to_dict() for e in store.list_entries(ready_job.id)] == entries_before

    def test_wrong_pin_no_changes(self, lifecycle, store, ready_job):
        lifecycle.close(ready_job.id)

        with patch.object(store, "update_job", wraps=store.update_job) as spy:
            with pytest.raises(AuthDenied) as exc_info:
                lifecycle.reopen(ready_job.id, "0000")

        assert exc_info.value.code == ErrorCodes.PIN_MISMATCH
        spy.assert_not_called()
        assert lifecycle.get_job(ready_job.id).is_done

    def test_reopen_needs_no_artifacts(self, lifecycle, storage, ready_job, admin_pin):
        lifecycle.close(ready_job.id)
        storage.remove([o.path for o in storage.list_objects(ready_job.id)])

        job = lifecycle.reopen(ready_job.id, admin_pin)

        assert job.status == JobStatus.OPEN


# =============================================================================
# timers
# =============================================================================


class TestTimers:
    """타이머 시작/정지 테스트."""

    def test_start_and_stop(self, lifecycle, job, clock):
        entry = lifecycle.start_timer(job.id, "Esteban", "Service")
        assert entry.is_running
        assert entry.task == "Service"

        end = clock.advance(minutes=45)
        stopped = lifecycle.stop_timer(job.id, "Esteban")

        assert stopped.id == entry.id
        assert stopped.end_ts == end

    def test_unknown_worker(self, lifecycle, job):
        with pytest.raises(ValidationError) as exc_info:
            lifecycle.start_timer(job.id, "Nobody")

        assert exc_info.value.code == ErrorCodes.UNKNOWN_WORKER

    def test_start_on_closed_job(self, lifecycle, ready_job):
        lifecycle.close(ready_job.id)

        with pytest.raises(PreconditionFailed) as exc_info:
            lifecycle.start_timer(ready_job.id, "Esteban")

        assert exc_info.value.code == ErrorCodes.JOB_CLOSED

    def test_double_start_creates_no_second_entry(self, lifecycle, store, job):
        lifecycle.start_timer(job.id, "Esteban")

        with pytest.raises(AlreadyRunning):
            lifecycle.start_timer(job.id, "Esteban")

        assert len(store.list_entries(job.id)) == 1

    def test_store_rejects_duplicate_open_entry(self, store, job, clock):
        """검사 이후 경합으로 들어온 insert 도 스토어가 거절."""
        store.insert_entry(job.id, "Esteban", None, clock())

        with pytest.raises(AlreadyRunning):
            store.insert_entry(job.id, "Esteban", None, clock())

    def test_conflict_then_override(self, lifecycle, store, job):
        other = lifecycle.create("Klima", plate="SG 9")
        lifecycle.start_timer(other.id, "Tsvetan")

        with pytest.raises(Conflict):
            lifecycle.start_timer(job.id, "Tsvetan")

        entry = lifecycle.start_timer(job.id, "Tsvetan", allow_conflict=True)

        assert entry.job_id == job.id
        assert len(store.find_open_entries("Tsvetan")) == 2

    def test_stop_not_running(self, lifecycle, job):
        with pytest.raises(ValidationError) as exc_info:
            lifecycle.stop_timer(job.id, "Mensel")

        assert exc_info.value.code == ErrorCodes.NOT_RUNNING

    def test_stop_unknown_job(self, lifecycle):
        with pytest.raises(PreconditionFailed) as exc_info:
            lifecycle.stop_timer("nope", "Esteban")

        assert exc_info.value.code == ErrorCodes.JOB_NOT_FOUND
