"""
Admin Routes: 관리자(Chef) 전용 API.

- POST /api/admin/delete-photo  {bucket, paths, pin} → 오브젝트 삭제
- POST /api/admin/session       {pin, admin_until?} → admin_until (24h)

PIN 은 서버 환경변수(ADMIN_PIN)와 비교, 클라이언트로 보내지 않음.
"""

from typing import Any

from fastapi import APIRouter, Request
from pydantic import AwareDatetime, BaseModel

from src.app.settings import config_value
from src.core.admin import AdminSession, activate_session
from src.domain.constants import ADMIN_SESSION_HOURS
from src.domain.schemas import format_ts

api_router = APIRouter()


class DeletePhotoRequest(BaseModel):
    bucket: str | None = None
    paths: list[str] | None = None
    pin: str | None = None


class SessionRequest(BaseModel):
    pin: str | None = None
    admin_until: AwareDatetime | None = None  # 클라이언트가 보관 중인 만료 시각


@api_router.post("/delete-photo")
async def delete_photo(request: Request, body: DeletePhotoRequest) -> dict[str, Any]:
    """
    관리자 오브젝트 삭제.

    400: bucket/paths 누락, 500: 서버 PIN 미설정, 401: PIN 불일치
    """
    service = request.app.state.job_service
    removed = service.delete_objects(body.bucket, body.paths, body.pin)
    return {"ok": True, "removed": removed}


@api_router.post("/session")
async def open_session(request: Request, body: SessionRequest) -> dict[str, Any]:
    """
    관리자 세션 만료 시각 반환.

    보관 중인 admin_until 이 아직 유효하면 PIN 없이 그대로 돌려줌.
    """
    lifecycle = request.app.state.lifecycle
    hours = int(config_value(request.app.state.config, "admin.session_hours", ADMIN_SESSION_HOURS))
    session = activate_session(
        lifecycle.gate,
        body.pin,
        session=AdminSession(admin_until=body.admin_until),
        hours=hours,
        clock=lifecycle.clock,
    )
    return {"admin_until": format_ts(session.admin_until)}
