"""
관리자(Chef) 게이트: PIN 검증 + 24시간 세션.

주의:
- AdminSession 은 UI 편의용 플래그일 뿐 권한 경계가 아님
- 실제 영향이 있는 동작(삭제, reopen, 서명)은 매번 서버에서 PIN 재검증
- 서버 시크릿(ADMIN_PIN)은 클라이언트에 절대 노출하지 않음
"""

import hmac
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta

from src.core.clock import Clock, utc_now
from src.domain.constants import ADMIN_SESSION_HOURS
from src.domain.errors import AuthDenied, ErrorCodes

logger = logging.getLogger(__name__)

ADMIN_PIN_ENV = "ADMIN_PIN"


class AdminGate:
    """
    서버측 PIN 검증기.

    Usage:
        gate = AdminGate.from_env()
        gate.verify(pin)  # 실패 시 AuthDenied
    """

    def __init__(self, secret: str | None):
        self._secret = (secret or "").strip()

    @classmethod
    def from_env(cls) -> "AdminGate":
        return cls(os.environ.get(ADMIN_PIN_ENV))

    @property
    def configured(self) -> bool:
        return bool(self._secret)

    def verify(self, pin: str | None) -> None:
        """
        PIN 검증. 변경 호출 전에 반드시 먼저 호출.

        Raises:
            AuthDenied: ADMIN_SECRET_MISSING (서버 설정 누락, status 500)
            AuthDenied: PIN_MISMATCH
        """
        if not self._secret:
            raise AuthDenied(
                ErrorCodes.ADMIN_SECRET_MISSING,
                "Admin PIN fehlt am Server",
            )

        candidate = (pin or "").strip()
        if not candidate or not hmac.compare_digest(
            candidate.encode("utf-8"), self._secret.encode("utf-8")
        ):
            logger.warning("Admin PIN rejected")
            raise AuthDenied(ErrorCodes.PIN_MISMATCH, "PIN falsch")


@dataclass
class AdminSession:
    """
    Chef 모드 세션: 만료 시각 하나.

    클라이언트 보관용 (localStorage 의 proauto_admin_until 과 동일 개념).
    """
    admin_until: datetime | None = None

    def is_active(self, now: datetime | None = None) -> bool:
        if self.admin_until is None:
            return False
        return self.admin_until > (now or utc_now())


def activate_session(
    gate: AdminGate,
    pin: str | None,
    session: AdminSession | None = None,
    hours: int = ADMIN_SESSION_HOURS,
    clock: Clock = utc_now,
) -> AdminSession:
    """
    PIN 검증 후 세션 활성화 (이미 활성이면 그대로 반환).

    Raises:
        AuthDenied: PIN 검증 실패
    """
    session = session or AdminSession()
    now = clock()
    if session.is_active(now):
        return session

    gate.verify(pin)
    session.admin_until = now + timedelta(hours=hours)
    logger.info("Admin session active until %s", session.admin_until.isoformat())
    return session
