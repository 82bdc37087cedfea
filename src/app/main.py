"""
FastAPI 애플리케이션 진입점.

실행:
- 개발: uvicorn src.app.main:app --reload
- 프로덕션: uvicorn src.app.main:app
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# Routes
from src.app.routes import admin, files, jobs
from src.app.services.jobs import JobService
from src.app.settings import build_backend, load_config, load_workshop_definition
from src.core.admin import AdminGate
from src.core.lifecycle import JobLifecycle
from src.domain.errors import ShopError

logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan
# =============================================================================


def build_lifecycle(config: dict) -> JobLifecycle:
    """설정 → 백엔드 + 워크숍 정의 + PIN 게이트 → JobLifecycle."""
    store, storage = build_backend(config)
    return JobLifecycle(
        store=store,
        storage=storage,
        workshop=load_workshop_definition(),
        gate=AdminGate.from_env(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    애플리케이션 생명주기 관리.

    시작 시: 설정 로드, 백엔드/서비스 초기화 (create_app 에서 주입됐으면 그대로 사용)
    종료 시: REST 클라이언트 정리
    """
    # Startup
    if getattr(app.state, "config", None) is None:
        app.state.config = load_config()
    if getattr(app.state, "lifecycle", None) is None:
        app.state.lifecycle = build_lifecycle(app.state.config)
    app.state.job_service = JobService(app.state.lifecycle, app.state.config)

    if not app.state.lifecycle.gate.configured:
        logger.warning("ADMIN_PIN not set; admin actions will fail with 500")

    yield

    # Shutdown
    client = getattr(app.state.lifecycle.store, "client", None)
    if client is not None:
        client.close()


# =============================================================================
# Error Handling
# =============================================================================


async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    """ShopError → {"detail": {"code", "message", ...context}}."""
    status = exc.http_status
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status, content={"detail": exc.to_dict()})


# =============================================================================
# App Instance
# =============================================================================


def create_app(
    config: dict | None = None,
    lifecycle: JobLifecycle | None = None,
) -> FastAPI:
    """
    FastAPI 앱 생성.

    Args:
        config: 설정 dict (None 이면 lifespan 에서 default.yaml 로드)
        lifecycle: 미리 구성한 JobLifecycle (테스트용)
    """
    app = FastAPI(
        title="Workshop Job Tracker",
        description="Werkstatt-Aufträge: Zeiterfassung, Pflichtfotos, Rapport",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.lifecycle = lifecycle

    app.add_exception_handler(ShopError, shop_error_handler)

    # 페이지 라우트 (HTML)
    app.include_router(jobs.router, prefix="/jobs", tags=["Jobs"])

    # API 라우트
    app.include_router(jobs.api_router, prefix="/api/jobs", tags=["Jobs API"])
    app.include_router(admin.api_router, prefix="/api/admin", tags=["Admin API"])

    # 로컬 백엔드 signed URL
    app.include_router(files.router, prefix="/files", tags=["Files"])

    @app.get("/")
    async def root() -> dict[str, Any]:
        """엔드포인트 안내."""
        return {
            "message": "Workshop Job Tracker",
            "endpoints": {
                "jobs": "/jobs",
                "api": "/api/jobs",
            },
        }

    @app.get("/health")
    async def health() -> dict[str, str]:
        """헬스 체크."""
        return {"status": "ok"}

    return app


app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "src.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
