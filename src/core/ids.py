"""
ID/파일명 생성: job_id (로컬 스토어), time entry id, 사진 파일명

- job_id / entry id: 원격 백엔드는 자체 발급, 로컬 스토어는 UUID
- 사진 파일명: {prefix_}{timestamp}_{random}.{ext}
  → prefix 로 kind 분류 (파일명 규칙 fallback 과 호환)
"""

import re
import secrets
import uuid
from datetime import UTC, datetime


def generate_job_id() -> str:
    """Job ID 생성 (UUID v4)."""
    return str(uuid.uuid4())


def generate_entry_id() -> str:
    """TimeEntry ID 생성 (UUID v4)."""
    return str(uuid.uuid4())


def sanitize_extension(filename: str, default: str = "jpg") -> str:
    """
    업로드 파일명에서 확장자 추출/정리.

    - 소문자, [a-z0-9] 외 문자 제거
    - 없으면 default
    """
    ext = filename.rsplit(".", 1)[-1] if "." in filename else ""
    ext = re.sub(r"[^a-z0-9]", "", ext.lower())
    return ext or default


def generate_photo_name(
    original_filename: str,
    prefix: str | None = None,
    now: datetime | None = None,
) -> str:
    """
    사진 저장 파일명 생성.

    포맷: {prefix}_{YYYY-MM-DDTHH-MM-SS-ffffff}_{hex8}.{ext}

    Args:
        original_filename: 업로드 원본 파일명 (확장자 추출용)
        prefix: kind prefix (예: "km", "ausweis") - None 이면 생략
        now: 타임스탬프 기준 시각

    Returns:
        파일명 문자열
    """
    now = now or datetime.now(UTC)
    timestamp = now.strftime("%Y-%m-%dT%H-%M-%S-%f")
    unique = secrets.token_hex(4)
    ext = sanitize_extension(original_filename)

    stem = f"{timestamp}_{unique}"
    if prefix:
        stem = f"{prefix.rstrip('_')}_{stem}"
    return f"{stem}.{ext}"
