"""
Error definitions for the workshop tracker.

규칙:
- 조용한 실패 금지 → ShopError 계열로 명시적 실패
- 모든 에러는 사용자 화면의 상태 메시지로 노출 (페이지 크래시 없음)
- 자동 재시도 없음: 실패 시 사용자가 다시 실행
"""

from typing import Any


class ShopError(Exception):
    """
    워크숍 트래커 에러 베이스.

    code + context 로 구성되며, message 가 없으면 context 로 포맷.

    Usage:
        raise ValidationError(ErrorCodes.MISSING_REQUIRED_FIELD, field="plate")
    """

    status_code = 400

    def __init__(self, code: str, message: str | None = None, **context: Any) -> None:
        self.code = code
        self.context = context
        self.message = message or self._format_message()
        super().__init__(self.message)

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {ctx_str}" if ctx_str else f"[{self.code}]"

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CODE.get(self.code, self.status_code)

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "code": self.code,
            "message": self.message,
            **self.context,
        }


class ValidationError(ShopError):
    """필수 입력 누락/형식 오류 (예: 번호판 없음)."""

    status_code = 400


class PreconditionFailed(ShopError):
    """상태 전이 전제조건 미충족 (예: 필수 사진 없이 close)."""

    status_code = 409


class AlreadyRunning(ShopError):
    """같은 작업자 + 같은 Job 에 이미 타이머가 돌고 있음."""

    status_code = 409


class Conflict(ShopError):
    """
    작업자가 다른 Job 에서 타이머 실행 중.

    경고 성격: 사용자가 allow_conflict 로 계속 진행 가능.
    """

    status_code = 409


class AuthDenied(ShopError):
    """PIN 불일치 또는 서버 시크릿 누락."""

    status_code = 401


class BackendError(ShopError):
    """외부 DB/스토리지 실패. 메시지는 원문 그대로 전달."""

    status_code = 502


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수."""

    # === Validation ===
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    UNKNOWN_WORKER = "UNKNOWN_WORKER"
    UNKNOWN_CHECKLIST_KEY = "UNKNOWN_CHECKLIST_KEY"
    VIN_LENGTH = "VIN_LENGTH"
    NOT_RUNNING = "NOT_RUNNING"
    INVALID_PHOTO_KIND = "INVALID_PHOTO_KIND"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    INVALID_PATH = "INVALID_PATH"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"

    # === Lifecycle ===
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    JOB_CLOSED = "JOB_CLOSED"
    REQUIRED_ARTIFACT_MISSING = "REQUIRED_ARTIFACT_MISSING"

    # === Timers ===
    TIMER_ALREADY_RUNNING = "TIMER_ALREADY_RUNNING"
    WORKER_RUNNING_ELSEWHERE = "WORKER_RUNNING_ELSEWHERE"

    # === Admin ===
    PIN_MISMATCH = "PIN_MISMATCH"
    ADMIN_SECRET_MISSING = "ADMIN_SECRET_MISSING"
    SIGNED_URL_INVALID = "SIGNED_URL_INVALID"

    # === Backend ===
    BACKEND_REQUEST_FAILED = "BACKEND_REQUEST_FAILED"
    STORE_LOCK_TIMEOUT = "STORE_LOCK_TIMEOUT"
    STORE_CORRUPT = "STORE_CORRUPT"
    RENDER_FAILED = "RENDER_FAILED"
    ARCHIVE_WRITE_FAILED = "ARCHIVE_WRITE_FAILED"


# 코드별 HTTP status (클래스 기본값보다 우선)
HTTP_STATUS_BY_CODE = {
    ErrorCodes.JOB_NOT_FOUND: 404,
    ErrorCodes.FILE_NOT_FOUND: 404,
    ErrorCodes.ADMIN_SECRET_MISSING: 500,
    ErrorCodes.SIGNED_URL_INVALID: 403,
}
