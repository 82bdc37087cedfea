"""
로컬 스토어 파일 입출력: FileLock + 원자적 JSON 교체.

LocalJobStore 전용 (백엔드 없이 돌리는 개발/단일 장비 모드).
jobs.json / time_entries.json 은 항상 store_lock 안에서 읽고 씀.
"""

import json
import logging
import os
import tempfile
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout

from src.domain.errors import BackendError, ErrorCodes

logger = logging.getLogger(__name__)

DEFAULT_LOCK_FILENAME = ".store.lock"
DEFAULT_LOCK_TIMEOUT = 5.0  # seconds


@contextmanager
def store_lock(data_dir: Path, config: dict) -> Generator[Path, None, None]:
    """
    data_dir 단위 배타 락.

    Args:
        data_dir: 데이터 폴더 (없으면 생성)
        config: paths.lock_file, store.lock_timeout

    Yields:
        락 파일 경로

    Raises:
        BackendError: STORE_LOCK_TIMEOUT
    """
    lock_name = config.get("paths", {}).get("lock_file", DEFAULT_LOCK_FILENAME)
    timeout = config.get("store", {}).get("lock_timeout", DEFAULT_LOCK_TIMEOUT)

    data_dir.mkdir(parents=True, exist_ok=True)
    lock_path = data_dir / lock_name
    lock = FileLock(lock_path, timeout=timeout)

    try:
        lock.acquire()
    except Timeout:
        raise BackendError(
            ErrorCodes.STORE_LOCK_TIMEOUT,
            data_dir=str(data_dir),
            timeout=timeout,
        ) from None

    try:
        yield lock_path
    finally:
        lock.release()


def atomic_write_json(path: Path, data: Any) -> None:
    """
    같은 폴더의 임시 파일에 쓴 뒤 os.replace 로 교체.

    직렬화/쓰기 실패 시 기존 파일은 그대로, 임시 파일은 삭제.
    fsync 실패는 경고만 남김.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(f"fsync failed for {path}: {e}")
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def load_json(path: Path, default: Any) -> Any:
    """
    JSON 로드 (파일 없으면 default).

    Raises:
        BackendError: STORE_CORRUPT
    """
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise BackendError(
            ErrorCodes.STORE_CORRUPT,
            path=str(path),
            error=str(e),
        ) from e
