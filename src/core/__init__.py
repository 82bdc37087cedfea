"""
Core layer: Job 생명주기와 게이트 규칙.

이 모듈만 건드리면 현장 기록 사고 → 가장 보수적으로 관리

역할:
- 상태 전이 (open/done), 필수 사진 판정, 작업자 동시 실행 검사
- 시간 합계, 관리자 PIN 게이트, 로컬 파일 락/원자적 쓰기
"""

from .admin import AdminGate, AdminSession, activate_session
from .artifacts import check_required_artifacts, classify_photo, resolve_artifact_refs
from .clock import duration_minutes, fmt_minutes, utc_now
from .exclusivity import ExclusivityStatus, check_worker, ensure_can_start
from .lifecycle import CloseResult, JobLifecycle
from .totals import compute_totals

__all__ = [
    # admin
    "AdminGate",
    "AdminSession",
    "activate_session",
    # artifacts
    "classify_photo",
    "resolve_artifact_refs",
    "check_required_artifacts",
    # clock
    "duration_minutes",
    "fmt_minutes",
    "utc_now",
    # exclusivity
    "ExclusivityStatus",
    "check_worker",
    "ensure_can_start",
    # lifecycle
    "JobLifecycle",
    "CloseResult",
    # totals
    "compute_totals",
]
