"""
Job 생명주기: open → done → open 전이와 타이머 시작/정지.

규칙:
- create: title 필수, require_plate 면 plate 도 필수 → 생성 후 사진 첨부 순서
- close: 필수 사진(odometer, identity) 없으면 PreconditionFailed, 변경 없음
  성공 시 1) 실행 중 타이머 전부 정지 2) status=done, closed_at=now
  두 쓰기는 원자적이지 않음 → close 는 재시도 가능(idempotent)하게 설계:
  1) 만 반영된 상태에서 다시 close 하면 같은 최종 상태로 수렴
- reopen: 관리자 PIN 필수 (변경 전에 검증), 타이머는 재시작 안 함
- start: 닫힌 Job 은 잠김, 작업자 동시 실행 검사 후 check-and-insert
"""

import logging
from dataclasses import dataclass

from src.core.admin import AdminGate
from src.core.artifacts import require_artifacts, resolve_artifact_refs
from src.core.clock import Clock, utc_now
from src.core.exclusivity import ensure_can_start
from src.domain.constants import STATUS_DONE, STATUS_OPEN
from src.domain.errors import ErrorCodes, PreconditionFailed, ValidationError
from src.domain.schemas import ArtifactRefs, Job, TimeEntry, WorkshopDefinition
from src.storage.base import JobStore, PhotoStorage

logger = logging.getLogger(__name__)


@dataclass
class CloseResult:
    """close 결과."""
    job: Job
    stopped_entries: list[TimeEntry]
    already_closed: bool = False


def _clean(value: str | None) -> str | None:
    """trim, 빈 문자열 → None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


class JobLifecycle:
    """
    Job 상태 전이 컨트롤러.

    Usage:
        lifecycle = JobLifecycle(store, storage, workshop, gate)
        job = lifecycle.create("Müller – Golf – Service", plate="ZH 12345")
        lifecycle.start_timer(job.id, "Esteban", "Service")
        lifecycle.close(job.id)
    """

    def __init__(
        self,
        store: JobStore,
        storage: PhotoStorage,
        workshop: WorkshopDefinition,
        gate: AdminGate,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.storage = storage
        self.workshop = workshop
        self.gate = gate
        self.clock = clock

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_job(self, job_id: str) -> Job:
        """
        Job 조회.

        Raises:
            PreconditionFailed: JOB_NOT_FOUND
        """
        job = self.store.get_job(job_id)
        if job is None:
            raise PreconditionFailed(
                ErrorCodes.JOB_NOT_FOUND,
                f"Auftrag {job_id} nicht gefunden",
                job_id=job_id,
            )
        return job

    def load_artifacts(self, job: Job) -> ArtifactRefs:
        """사진 목록을 읽어 참조를 한 번 해석."""
        photos = self.storage.list_objects(job.id)
        return resolve_artifact_refs(job, photos, self.workshop.photo_kinds)

    # =========================================================================
    # Transitions
    # =========================================================================

    def create(
        self,
        title: str,
        customer: str | None = None,
        vehicle: str | None = None,
        plate: str | None = None,
    ) -> Job:
        """
        새 Job 생성 (status=open, 사진 참조 없음).

        Raises:
            ValidationError: MISSING_REQUIRED_FIELD (title, plate)
        """
        title_clean = _clean(title)
        plate_clean = _clean(plate)

        if not title_clean:
            raise ValidationError(
                ErrorCodes.MISSING_REQUIRED_FIELD,
                "Titel fehlt",
                field="title",
            )
        if self.workshop.require_plate and not plate_clean:
            raise ValidationError(
                ErrorCodes.MISSING_REQUIRED_FIELD,
                "Kontrollschild fehlt",
                field="plate",
            )

        job = self.store.insert_job({
            "title": title_clean,
            "customer": _clean(customer),
            "vehicle": _clean(vehicle),
            "plate": plate_clean,
            "status": STATUS_OPEN,
            "created_at": self.clock(),
            "closed_at": None,
            "checklist": {},
        })
        logger.info("Job created: %s (%s)", job.id, job.title)
        return job

    def close(self, job_id: str) -> CloseResult:
        """
        Job 종료.

        이미 done 이면 closed_at 유지, 남아 있는 실행 중 entry 만 정리.

        Raises:
            PreconditionFailed: REQUIRED_ARTIFACT_MISSING (missing=[...])
        """
        job = self.get_job(job_id)
        refs = self.load_artifacts(job)
        require_artifacts(job.id, refs, self.workshop.photo_kinds)

        now = self.clock()

        # 1) 실행 중 타이머 정지
        stopped = self.store.stop_open_entries(job.id, now)
        if stopped:
            logger.info(
                "Stopped %d running timer(s) on job %s: %s",
                len(stopped), job.id, [e.worker for e in stopped],
            )

        # 2) done 표시 (여기서 실패하면 타이머만 멈춘 상태 → close 재시도)
        if job.is_done:
            return CloseResult(job=job, stopped_entries=stopped, already_closed=True)

        try:
            job = self.store.update_job(job.id, {"status": STATUS_DONE, "closed_at": now})
        except Exception:
            logger.warning(
                "Close of job %s partially applied: timers stopped, job still open. "
                "Retry close.", job_id,
            )
            raise

        logger.info("Job closed: %s", job.id)
        return CloseResult(job=job, stopped_entries=stopped)

    def reopen(self, job_id: str, pin: str | None) -> Job:
        """
        Job 재오픈 (관리자).

        Raises:
            AuthDenied: PIN 검증 실패 (변경 호출 전)
        """
        self.gate.verify(pin)
        self.get_job(job_id)
        job = self.store.update_job(job_id, {"status": STATUS_OPEN, "closed_at": None})
        logger.info("Job reopened: %s", job_id)
        return job

    # =========================================================================
    # Timers
    # =========================================================================

    def _require_worker(self, worker: str) -> str:
        worker = (worker or "").strip()
        if worker not in self.workshop.workers:
            raise ValidationError(
                ErrorCodes.UNKNOWN_WORKER,
                f"Unbekannter Mitarbeiter: {worker or '-'}",
                worker=worker,
            )
        return worker

    def start_timer(
        self,
        job_id: str,
        worker: str,
        task: str | None = None,
        allow_conflict: bool = False,
    ) -> TimeEntry:
        """
        타이머 시작.

        Raises:
            ValidationError: UNKNOWN_WORKER
            PreconditionFailed: JOB_CLOSED
            AlreadyRunning: 같은 Job 에서 실행 중
            Conflict: 다른 Job 에서 실행 중 (allow_conflict=False)
        """
        worker = self._require_worker(worker)
        job = self.get_job(job_id)
        if job.is_done:
            raise PreconditionFailed(
                ErrorCodes.JOB_CLOSED,
                "Auftrag ist abgeschlossen (gesperrt).",
                job_id=job_id,
            )

        ensure_can_start(self.store, worker, job_id, allow_conflict=allow_conflict)

        entry = self.store.insert_entry(job_id, worker, _clean(task), self.clock())
        logger.info("Timer started: job=%s worker=%s task=%s", job_id, worker, entry.task)
        return entry

    def stop_timer(self, job_id: str, worker: str) -> TimeEntry:
        """
        worker 의 이 Job 실행 중 타이머 정지.

        Raises:
            PreconditionFailed: JOB_NOT_FOUND
            ValidationError: NOT_RUNNING
        """
        worker = self._require_worker(worker)
        self.get_job(job_id)
        running = [
            e for e in self.store.list_entries(job_id)
            if e.worker == worker and e.is_running
        ]
        if not running:
            raise ValidationError(
                ErrorCodes.NOT_RUNNING,
                f"{worker} läuft nicht",
                job_id=job_id,
                worker=worker,
            )

        now = self.clock()
        stopped = None
        for entry in running:
            stopped = self.store.update_entry(entry.id, {"end_ts": now})
        logger.info("Timer stopped: job=%s worker=%s", job_id, worker)
        return stopped
