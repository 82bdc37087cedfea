"""
Pytest fixtures for the workshop tracker tests.

구성:
- 로컬 백엔드 (tmp_path 기반 JSON 스토어 + 사진 폴더)
- 고정 시계 (FakeClock.advance 로 시간 이동)
- workshop.yaml, 관리자 PIN, FastAPI TestClient
"""

import base64
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml
from fastapi.testclient import TestClient

from src.app.main import create_app
from src.app.services.jobs import JobService
from src.app.settings import load_workshop_definition
from src.core.admin import AdminGate
from src.core.lifecycle import JobLifecycle
from src.domain.schemas import Job, WorkshopDefinition
from src.storage import LocalJobStore, LocalPhotoStorage

ADMIN_PIN = "4711"

# 1x1 PNG (DOCX/PDF 이미지 삽입용)
PNG_1X1 = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class FakeClock:
    """테스트용 시계: 호출 시 현재 값 반환, advance 로 이동."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> datetime:
        self.now = self.now + timedelta(minutes=minutes, seconds=seconds)
        return self.now


# =============================================================================
# Path / Config Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config(project_root: Path) -> dict:
    """default.yaml 로드."""
    with open(project_root / "default.yaml", encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def test_config(tmp_path: Path) -> dict:
    """테스트용 설정 (짧은 락 대기, 타임존 없음)."""
    return {
        "backend": {"kind": "local"},
        "paths": {
            "data_dir": str(tmp_path / "data"),
            "archive_dir": str(tmp_path / "archive"),
            "lock_file": ".store.lock",
        },
        "store": {"lock_timeout": 2},
        "storage": {"bucket": "job-photos", "signed_url_ttl": 3600},
        "admin": {"session_hours": 24},
        "jobs": {"list_limit": 100},
    }


@pytest.fixture
def workshop(project_root: Path) -> WorkshopDefinition:
    """workshop.yaml 기반 정의."""
    return load_workshop_definition(project_root / "workshop.yaml")


# =============================================================================
# Core Fixtures
# =============================================================================

@pytest.fixture
def png_bytes() -> bytes:
    return PNG_1X1


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 8, 0, 0, tzinfo=UTC))


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def store(data_dir: Path, test_config: dict, clock: FakeClock) -> LocalJobStore:
    return LocalJobStore(data_dir, config=test_config, clock=clock)


@pytest.fixture
def storage(data_dir: Path) -> LocalPhotoStorage:
    return LocalPhotoStorage(data_dir / "photos", url_secret="test-secret")


@pytest.fixture
def admin_pin() -> str:
    return ADMIN_PIN


@pytest.fixture
def gate() -> AdminGate:
    return AdminGate(ADMIN_PIN)


@pytest.fixture
def lifecycle(
    store: LocalJobStore,
    storage: LocalPhotoStorage,
    workshop: WorkshopDefinition,
    gate: AdminGate,
    clock: FakeClock,
) -> JobLifecycle:
    return JobLifecycle(store, storage, workshop, gate, clock=clock)


@pytest.fixture
def service(lifecycle: JobLifecycle, test_config: dict) -> JobService:
    return JobService(lifecycle, test_config)


@pytest.fixture
def job(lifecycle: JobLifecycle) -> Job:
    """열린 Job 하나 (사진 없음)."""
    return lifecycle.create(
        "Müller – Golf – Service",
        customer="Müller",
        vehicle="VW Golf",
        plate="ZH 12345",
    )


@pytest.fixture
def attach_required(service: JobService):
    """필수 사진(km, ausweis) 업로드 함수."""
    def _attach(job_id: str) -> None:
        service.upload_photo(job_id, "IMG_0001.JPG", b"km-photo", kind="odometer")
        service.upload_photo(job_id, "IMG_0002.JPG", b"id-photo", kind="identity")
    return _attach


@pytest.fixture
def ready_job(service: JobService, job: Job, attach_required) -> Job:
    """필수 사진이 첨부된 Job."""
    attach_required(job.id)
    return service.lifecycle.get_job(job.id)


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def client(test_config: dict, lifecycle: JobLifecycle) -> Generator[TestClient, None, None]:
    """FastAPI TestClient (tmp 로컬 백엔드 주입)."""
    app = create_app(config=test_config, lifecycle=lifecycle)
    with TestClient(app) as client:
        yield client
