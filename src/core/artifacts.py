"""
필수 사진(artifact) 판정: 직접 참조 컬럼 → 파일명 규칙 fallback.

규칙:
- 직접 참조 컬럼이 있으면 그것이 권위 (odometer_photo_path 등)
- 없으면 Job 사진 목록에서 prefix 매칭 (대소문자 무시) - 레거시 Job 호환
- 해석은 로드 시 1회 (resolve_artifact_refs), 호출부는 결과만 사용
- 필수 kind 누락 시 close 거절 (어떤 사진이 없는지 메시지에 포함)
"""

import logging
from collections.abc import Iterable
from pathlib import Path

import yaml

from src.domain.constants import (
    ARTIFACT_COLUMNS,
    DEFAULT_PHOTO_KINDS,
    KIND_OTHER,
)
from src.domain.errors import ErrorCodes, PreconditionFailed
from src.domain.schemas import (
    ArtifactCheck,
    ArtifactRef,
    ArtifactRefs,
    ArtifactSource,
    Job,
    PhotoKind,
    StoredObject,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Photo Kind Definition
# =============================================================================

def default_photo_kinds() -> list[PhotoKind]:
    """상수 기반 기본 kind 목록."""
    return [
        PhotoKind(
            key=key,
            prefixes=list(spec["prefixes"]),
            required=spec["required"],
            label=spec["label"],
        )
        for key, spec in DEFAULT_PHOTO_KINDS.items()
    ]


def load_photo_kinds(definition_path: Path) -> list[PhotoKind]:
    """
    workshop.yaml 에서 사진 kind 정의 로드.

    Args:
        definition_path: workshop.yaml 경로

    Returns:
        PhotoKind 목록 (photos.kinds 가 없으면 기본값)
    """
    with open(definition_path, encoding="utf-8") as f:
        definition = yaml.safe_load(f) or {}

    kinds_config = definition.get("photos", {}).get("kinds", [])
    if not kinds_config:
        return default_photo_kinds()

    return [
        PhotoKind(
            key=kind["key"],
            prefixes=[str(p) for p in kind.get("prefixes", [])],
            required=kind.get("required", False),
            label=kind.get("label", ""),
        )
        for kind in kinds_config
    ]


# =============================================================================
# Classification
# =============================================================================

def classify_photo(filename: str, kinds: Iterable[PhotoKind]) -> str:
    """
    파일명 prefix 로 kind 결정.

    Args:
        filename: 파일명 (예: KM_20240115T093000_ab12.jpg)
        kinds: kind 정의 목록

    Returns:
        kind key (매칭 없으면 "other")
    """
    name = Path(filename).name.lower()
    for kind in kinds:
        for prefix in kind.prefixes:
            if name.startswith(prefix.lower()):
                return kind.key
    return KIND_OTHER


def _scan_for_kind(
    kind: PhotoKind,
    photos: Iterable[StoredObject],
) -> str | None:
    """사진 목록에서 kind 에 맞는 첫 파일 경로 (이름 역순 = 최신 우선)."""
    matches = [p for p in photos if classify_photo(p.name, [kind]) == kind.key]
    if not matches:
        return None
    matches.sort(key=lambda p: p.name.lower(), reverse=True)
    return matches[0].path


def resolve_artifact_refs(
    job: Job,
    photos: Iterable[StoredObject],
    kinds: Iterable[PhotoKind],
) -> ArtifactRefs:
    """
    kind 별 참조를 한 번에 해석.

    매칭 우선순위:
    1. Job 직접 참조 컬럼 → source=column
    2. 파일명 prefix 스캔 → source=filename

    Args:
        job: Job
        photos: Job 네임스페이스 사진 목록
        kinds: kind 정의 목록

    Returns:
        ArtifactRefs
    """
    photo_list = list(photos)
    refs = ArtifactRefs()

    for kind in kinds:
        column = ARTIFACT_COLUMNS.get(kind.key)
        direct = getattr(job, column, None) if column else None

        if direct:
            refs.refs[kind.key] = ArtifactRef(
                kind=kind.key, path=direct, source=ArtifactSource.COLUMN,
            )
            continue

        scanned = _scan_for_kind(kind, photo_list)
        if scanned:
            refs.refs[kind.key] = ArtifactRef(
                kind=kind.key, path=scanned, source=ArtifactSource.FILENAME,
            )
        else:
            refs.refs[kind.key] = ArtifactRef(kind=kind.key)

    return refs


# =============================================================================
# Required Check
# =============================================================================

def check_required_artifacts(
    refs: ArtifactRefs,
    required_kinds: Iterable[str],
) -> ArtifactCheck:
    """필수 kind 가 모두 있는지 확인 (순수 함수)."""
    missing = [kind for kind in required_kinds if not refs.has(kind)]
    return ArtifactCheck(ok=not missing, missing=missing)


def require_artifacts(
    job_id: str,
    refs: ArtifactRefs,
    kinds: Iterable[PhotoKind],
) -> None:
    """
    필수 사진 누락 시 PreconditionFailed.

    Raises:
        PreconditionFailed: REQUIRED_ARTIFACT_MISSING (missing=[kind...])
    """
    kind_list = list(kinds)
    labels = {k.key: (k.label or k.key) for k in kind_list}
    check = check_required_artifacts(refs, [k.key for k in kind_list if k.required])
    if check.ok:
        return

    names = ", ".join(labels[m] for m in check.missing)
    raise PreconditionFailed(
        ErrorCodes.REQUIRED_ARTIFACT_MISSING,
        f"Auftrag kann nicht abgeschlossen werden, es fehlt: {names} ({', '.join(check.missing)})",
        job_id=job_id,
        missing=check.missing,
    )
