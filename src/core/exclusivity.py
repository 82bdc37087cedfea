"""
작업자 동시 실행 검사: 타이머 시작 전 worker 의 실행 중 entry 조회.

결과:
- IDLE: 진행
- RUNNING_HERE: 같은 Job 에서 실행 중 → AlreadyRunning (중복 생성 안 함)
- RUNNING_ELSEWHERE: 다른 Job 에서 실행 중 → Conflict (경고, allow_conflict 로 진행 가능)

같은 Job 중복은 스토어의 check-and-insert 가 한 번 더 막음.
다른 Job 충돌은 권고 사항 (두 장비 경합 시 둘 다 열릴 수 있음).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from src.domain.errors import AlreadyRunning, Conflict, ErrorCodes
from src.domain.schemas import TimeEntry
from src.storage.base import JobStore

logger = logging.getLogger(__name__)


class ExclusivityStatus(str, Enum):
    IDLE = "idle"
    RUNNING_HERE = "running_here"
    RUNNING_ELSEWHERE = "running_elsewhere"


@dataclass
class ExclusivityResult:
    """worker 실행 상태 조회 결과."""
    status: ExclusivityStatus
    entry: TimeEntry | None = None
    other_job_ids: list[str] = field(default_factory=list)

    @property
    def other_job_id(self) -> str | None:
        return self.other_job_ids[0] if self.other_job_ids else None


def check_worker(store: JobStore, worker: str, job_id: str) -> ExclusivityResult:
    """
    worker 의 실행 중 entry 를 모든 Job 에서 조회해 상태 판정.

    같은 Job 에 실행 중인 entry 가 있으면 다른 Job 보다 우선.
    """
    open_entries = store.find_open_entries(worker)
    if not open_entries:
        return ExclusivityResult(status=ExclusivityStatus.IDLE)

    for entry in open_entries:
        if entry.job_id == job_id:
            return ExclusivityResult(status=ExclusivityStatus.RUNNING_HERE, entry=entry)

    others = sorted({e.job_id for e in open_entries})
    return ExclusivityResult(
        status=ExclusivityStatus.RUNNING_ELSEWHERE,
        entry=open_entries[0],
        other_job_ids=others,
    )


def ensure_can_start(
    store: JobStore,
    worker: str,
    job_id: str,
    allow_conflict: bool = False,
) -> ExclusivityResult:
    """
    타이머 시작 가능 여부 확인.

    Args:
        store: JobStore
        worker: 작업자
        job_id: 시작할 Job
        allow_conflict: 다른 Job 실행 중이어도 진행 ("trotzdem starten")

    Returns:
        ExclusivityResult

    Raises:
        AlreadyRunning: 같은 Job 에서 이미 실행 중
        Conflict: 다른 Job 에서 실행 중 (allow_conflict=False)
    """
    result = check_worker(store, worker, job_id)

    if result.status == ExclusivityStatus.RUNNING_HERE:
        raise AlreadyRunning(
            ErrorCodes.TIMER_ALREADY_RUNNING,
            f"{worker} läuft bereits…",
            job_id=job_id,
            worker=worker,
        )

    if result.status == ExclusivityStatus.RUNNING_ELSEWHERE:
        if not allow_conflict:
            raise Conflict(
                ErrorCodes.WORKER_RUNNING_ELSEWHERE,
                f"{worker} läuft bereits auf einem anderen Auftrag.",
                worker=worker,
                other_job_id=result.other_job_id,
            )
        logger.warning(
            "Worker %s started on job %s while running on %s (conflict overridden)",
            worker, job_id, result.other_job_ids,
        )

    return result
