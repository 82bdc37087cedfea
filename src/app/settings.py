"""
설정 로드: default.yaml, workshop.yaml, .env

- default.yaml: 백엔드 종류, 경로, 락, 스토리지, 관리자 세션
- workshop.yaml: 작업자/작업/체크리스트/사진 kind/Job 규칙
- .env (python-dotenv): ADMIN_PIN, SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY, FILE_URL_SECRET
"""

import logging
import os
import secrets
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from src.core.artifacts import default_photo_kinds, load_photo_kinds
from src.domain.constants import (
    DEFAULT_CHECKLIST,
    DEFAULT_TASKS,
    DEFAULT_WORKERS,
    LOCAL_PHOTOS_DIR,
    PHOTO_BUCKET,
)
from src.domain.schemas import WorkshopDefinition
from src.storage import (
    JobStore,
    LocalJobStore,
    LocalPhotoStorage,
    PhotoStorage,
    RestClient,
    RestJobStore,
    RestPhotoStorage,
)

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "default.yaml"
DEFAULT_WORKSHOP_PATH = PROJECT_ROOT / "workshop.yaml"

FILE_URL_SECRET_ENV = "FILE_URL_SECRET"


# =============================================================================
# Config Files
# =============================================================================


def load_config(config_path: Path | None = None) -> dict:
    """설정 파일 로드 (없으면 빈 dict)."""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data: dict[Any, Any] = yaml.safe_load(f) or {}
        return data


def config_value(config: dict, dotted_key: str, default: Any = None) -> Any:
    """
    "a.b.c" 형태 키로 중첩 설정 조회.

    Examples:
        >>> config_value({"storage": {"bucket": "x"}}, "storage.bucket")
        'x'
    """
    node: Any = config
    for part in dotted_key.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def load_workshop_definition(definition_path: Path | None = None) -> WorkshopDefinition:
    """
    workshop.yaml → WorkshopDefinition.

    파일이 없거나 항목이 비어 있으면 상수 기본값 사용.
    """
    if definition_path is None:
        definition_path = DEFAULT_WORKSHOP_PATH

    if not definition_path.exists():
        logger.info("No workshop definition at %s, using defaults", definition_path)
        return WorkshopDefinition(
            workers=list(DEFAULT_WORKERS),
            tasks=list(DEFAULT_TASKS),
            checklist=dict(DEFAULT_CHECKLIST),
            photo_kinds=default_photo_kinds(),
        )

    with open(definition_path, encoding="utf-8") as f:
        definition = yaml.safe_load(f) or {}

    checklist = {
        str(item["key"]): str(item.get("label", item["key"]))
        for item in definition.get("checklist", [])
    }

    return WorkshopDefinition(
        workers=[str(w) for w in definition.get("workers", [])] or list(DEFAULT_WORKERS),
        tasks=[str(t) for t in definition.get("tasks", [])] or list(DEFAULT_TASKS),
        checklist=checklist or dict(DEFAULT_CHECKLIST),
        photo_kinds=load_photo_kinds(definition_path),
        require_plate=bool(definition.get("jobs", {}).get("require_plate", True)),
    )


# =============================================================================
# Backend
# =============================================================================


def resolve_path(value: str | Path, root: Path = PROJECT_ROOT) -> Path:
    """상대 경로는 프로젝트 루트 기준."""
    path = Path(value)
    return path if path.is_absolute() else root / path


def build_backend(config: dict) -> tuple[JobStore, PhotoStorage]:
    """
    backend.kind 에 따라 JobStore + PhotoStorage 생성.

    - local: data_dir 아래 JSON + 사진 폴더, signed URL 은 /files 라우트
    - rest: SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY (서버 전용)

    Raises:
        ValueError: 알 수 없는 backend.kind
        BackendError: rest 인데 URL/키 누락
    """
    load_dotenv()

    kind = config_value(config, "backend.kind", "local")
    bucket = config_value(config, "storage.bucket", PHOTO_BUCKET)

    if kind == "local":
        data_dir = resolve_path(config_value(config, "paths.data_dir", "data"))
        data_dir.mkdir(parents=True, exist_ok=True)

        secret = os.environ.get(FILE_URL_SECRET_ENV)
        if not secret:
            secret = secrets.token_hex(32)
            logger.warning(
                "%s not set; signed photo URLs stop working after restart",
                FILE_URL_SECRET_ENV,
            )

        store = LocalJobStore(data_dir, config=config)
        storage = LocalPhotoStorage(
            data_dir / LOCAL_PHOTOS_DIR,
            url_secret=secret,
            bucket=bucket,
            base_url=config_value(config, "storage.files_url", "/files"),
        )
        logger.info("Using local backend at %s", data_dir)
        return store, storage

    if kind == "rest":
        client = RestClient.from_env(
            timeout=float(config_value(config, "backend.timeout", 15)),
        )
        logger.info("Using REST backend at %s", client.url)
        return RestJobStore(client), RestPhotoStorage(client, bucket=bucket)

    raise ValueError(f"Unknown backend.kind: {kind!r} (expected 'local' or 'rest')")
