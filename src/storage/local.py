"""
로컬 백엔드: JSON 파일 스토어 + 파일시스템 사진 스토리지.

- 모든 읽기/쓰기는 store_lock 안에서 → check-and-insert 가 원자적
- 사진은 {root}/{bucket}/{job_id}/{filename}
- signed URL: HMAC(path + expires) 토큰, /files 라우트가 검증
- 업로드: Job 폴더 단위 FileLock 안에서 존재 확인 후 쓰기 (덮어쓰기 방지)
"""

import hashlib
import hmac
import logging
import time
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import quote

from filelock import FileLock, Timeout

from src.core.clock import Clock, utc_now
from src.core.fileio import atomic_write_json, load_json, store_lock
from src.core.ids import generate_entry_id, generate_job_id
from src.domain.constants import (
    LOCAL_ENTRIES_FILENAME,
    LOCAL_JOBS_FILENAME,
    PHOTO_BUCKET,
    PHOTO_LIST_LIMIT,
)
from src.domain.errors import (
    AlreadyRunning,
    BackendError,
    ErrorCodes,
    PreconditionFailed,
    ValidationError,
)
from src.domain.schemas import Job, StoredObject, TimeEntry, format_ts

from .base import JobStore, PhotoStorage

logger = logging.getLogger(__name__)


# =============================================================================
# Job Store
# =============================================================================

class LocalJobStore(JobStore):
    """
    JSON 파일 기반 JobStore.

    Usage:
        store = LocalJobStore(data_dir, config)
        job = store.insert_job({"title": "Golf Service", "plate": "ZH 12345"})
    """

    def __init__(
        self,
        data_dir: Path,
        config: dict | None = None,
        clock: Clock = utc_now,
    ):
        self.data_dir = data_dir
        self.config = config or {}
        self.clock = clock
        self.jobs_path = data_dir / LOCAL_JOBS_FILENAME
        self.entries_path = data_dir / LOCAL_ENTRIES_FILENAME

    # === 내부 ===

    def _load_jobs(self) -> list[dict[str, Any]]:
        return load_json(self.jobs_path, [])

    def _load_entries(self) -> list[dict[str, Any]]:
        return load_json(self.entries_path, [])

    @staticmethod
    def _serialize(values: dict[str, Any]) -> dict[str, Any]:
        return {
            k: format_ts(v) if isinstance(v, datetime) else v
            for k, v in values.items()
        }

    # === jobs ===

    def get_job(self, job_id: str) -> Job | None:
        with store_lock(self.data_dir, self.config):
            for row in self._load_jobs():
                if row["id"] == job_id:
                    return Job.from_row(row)
        return None

    def list_jobs(self, limit: int = 100) -> list[Job]:
        with store_lock(self.data_dir, self.config):
            rows = self._load_jobs()
        rows.sort(key=lambda r: r.get("created_at") or "", reverse=True)
        return [Job.from_row(r) for r in rows[:limit]]

    def insert_job(self, values: dict[str, Any]) -> Job:
        row = {
            "id": generate_job_id(),
            "created_at": format_ts(self.clock()),
            "status": "open",
            "closed_at": None,
            "checklist": {},
            **self._serialize(values),
        }
        with store_lock(self.data_dir, self.config):
            rows = self._load_jobs()
            rows.append(row)
            atomic_write_json(self.jobs_path, rows)
        return Job.from_row(row)

    def update_job(self, job_id: str, values: dict[str, Any]) -> Job:
        with store_lock(self.data_dir, self.config):
            rows = self._load_jobs()
            for row in rows:
                if row["id"] == job_id:
                    row.update(self._serialize(values))
                    atomic_write_json(self.jobs_path, rows)
                    return Job.from_row(row)

        raise PreconditionFailed(ErrorCodes.JOB_NOT_FOUND, job_id=job_id)

    def delete_job(self, job_id: str) -> None:
        with store_lock(self.data_dir, self.config):
            rows = [r for r in self._load_jobs() if r["id"] != job_id]
            atomic_write_json(self.jobs_path, rows)

    # === time_entries ===

    def list_entries(self, job_id: str) -> list[TimeEntry]:
        with store_lock(self.data_dir, self.config):
            rows = [r for r in self._load_entries() if r["job_id"] == job_id]
        rows.sort(key=lambda r: r["start_ts"], reverse=True)
        return [TimeEntry.from_row(r) for r in rows]

    def find_open_entries(self, worker: str) -> list[TimeEntry]:
        with store_lock(self.data_dir, self.config):
            rows = [
                r for r in self._load_entries()
                if r["worker"] == worker and r.get("end_ts") is None
            ]
        return [TimeEntry.from_row(r) for r in rows]

    def insert_entry(
        self,
        job_id: str,
        worker: str,
        task: str | None,
        start_ts: datetime,
    ) -> TimeEntry:
        with store_lock(self.data_dir, self.config):
            rows = self._load_entries()
            for r in rows:
                if r["job_id"] == job_id and r["worker"] == worker and r.get("end_ts") is None:
                    raise AlreadyRunning(
                        ErrorCodes.TIMER_ALREADY_RUNNING,
                        f"{worker} läuft bereits…",
                        job_id=job_id,
                        worker=worker,
                    )

            row = {
                "id": generate_entry_id(),
                "job_id": job_id,
                "worker": worker,
                "task": task,
                "start_ts": format_ts(start_ts),
                "end_ts": None,
            }
            rows.append(row)
            atomic_write_json(self.entries_path, rows)
        return TimeEntry.from_row(row)

    def update_entry(self, entry_id: str, values: dict[str, Any]) -> TimeEntry:
        with store_lock(self.data_dir, self.config):
            rows = self._load_entries()
            for row in rows:
                if row["id"] == entry_id:
                    row.update(self._serialize(values))
                    atomic_write_json(self.entries_path, rows)
                    return TimeEntry.from_row(row)

        raise BackendError(
            ErrorCodes.BACKEND_REQUEST_FAILED,
            f"time entry {entry_id} not found",
        )

    def stop_open_entries(self, job_id: str, end_ts: datetime) -> list[TimeEntry]:
        stopped: list[TimeEntry] = []
        with store_lock(self.data_dir, self.config):
            rows = self._load_entries()
            for row in rows:
                if row["job_id"] == job_id and row.get("end_ts") is None:
                    row["end_ts"] = format_ts(end_ts)
                    stopped.append(TimeEntry.from_row(row))
            if stopped:
                atomic_write_json(self.entries_path, rows)
        return stopped

    def delete_entries(self, job_id: str) -> int:
        with store_lock(self.data_dir, self.config):
            rows = self._load_entries()
            kept = [r for r in rows if r["job_id"] != job_id]
            atomic_write_json(self.entries_path, kept)
        return len(rows) - len(kept)


# =============================================================================
# Photo Storage
# =============================================================================

class LocalPhotoStorage(PhotoStorage):
    """
    파일시스템 기반 PhotoStorage.

    signed URL 은 `{base_url}/{bucket}/{path}?expires=..&token=..` 형태.
    """

    def __init__(
        self,
        root: Path,
        url_secret: str,
        bucket: str = PHOTO_BUCKET,
        base_url: str = "/files",
    ):
        if not url_secret:
            raise ValueError("url_secret is required for signed URLs")
        self.root = root
        self.bucket = bucket
        self.base_url = base_url.rstrip("/")
        self._secret = url_secret.encode("utf-8")

    LOCK_TIMEOUT = 10  # seconds

    @property
    def bucket_dir(self) -> Path:
        return self.root / self.bucket

    @contextmanager
    def _folder_lock(self, path: str) -> Generator[None, None, None]:
        """
        Job 폴더 단위 업로드 락.

        Raises:
            BackendError: STORE_LOCK_TIMEOUT
        """
        locks_dir = self.root / ".locks"
        locks_dir.mkdir(parents=True, exist_ok=True)
        folder = path.split("/", 1)[0]
        lock = FileLock(locks_dir / f"{self.bucket}_{folder}.lock", timeout=self.LOCK_TIMEOUT)

        try:
            lock.acquire()
            yield
        except Timeout:
            raise BackendError(
                ErrorCodes.STORE_LOCK_TIMEOUT,
                f"Failed to acquire upload lock for '{folder}'",
                path=path,
                timeout=self.LOCK_TIMEOUT,
            ) from None
        finally:
            lock.release()

    def resolve(self, path: str) -> Path:
        """
        path → 실제 파일 경로 (버킷 밖으로 나가면 거절).

        Raises:
            ValidationError: INVALID_PATH
        """
        base = self.bucket_dir.resolve()
        target = (self.bucket_dir / path).resolve()
        try:
            target.relative_to(base)
        except ValueError:
            raise ValidationError(ErrorCodes.INVALID_PATH, path=path) from None
        if target == base:
            raise ValidationError(ErrorCodes.INVALID_PATH, path=path)
        return target

    def upload(
        self,
        path: str,
        data: bytes,
        content_type: str,
        upsert: bool = False,
    ) -> str:
        target = self.resolve(path)
        with self._folder_lock(path):
            if target.exists() and not upsert:
                raise BackendError(
                    ErrorCodes.BACKEND_REQUEST_FAILED,
                    "The resource already exists",
                    path=path,
                )
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        return path

    def list_objects(self, prefix: str, limit: int = PHOTO_LIST_LIMIT) -> list[StoredObject]:
        folder = self.resolve(prefix)
        if not folder.is_dir():
            return []

        items = [
            StoredObject(
                name=f.name,
                path=f"{prefix.rstrip('/')}/{f.name}",
                size=f.stat().st_size,
            )
            for f in folder.iterdir()
            if f.is_file() and not f.is_symlink()
        ]
        items.sort(key=lambda o: o.name, reverse=True)
        return items[:limit]

    def remove(self, paths: list[str]) -> None:
        for path in paths:
            target = self.resolve(path)
            try:
                target.unlink()
            except FileNotFoundError:
                logger.warning("Photo already removed: %s", path)
            except OSError as e:
                raise BackendError(
                    ErrorCodes.BACKEND_REQUEST_FAILED, str(e), path=path,
                ) from e

    def _token(self, path: str, expires: int) -> str:
        msg = f"{self.bucket}/{path}:{expires}".encode()
        return hmac.new(self._secret, msg, hashlib.sha256).hexdigest()

    def signed_url(self, path: str, expires_in: int) -> str:
        self.resolve(path)
        expires = int(time.time()) + expires_in
        token = self._token(path, expires)
        return f"{self.base_url}/{self.bucket}/{quote(path)}?expires={expires}&token={token}"

    def verify_token(self, path: str, expires: int, token: str) -> bool:
        """signed URL 토큰 검증 (만료 + HMAC)."""
        if expires < int(time.time()):
            return False
        return hmac.compare_digest(self._token(path, expires), token)

    def download(self, path: str) -> bytes:
        target = self.resolve(path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise BackendError(
                ErrorCodes.BACKEND_REQUEST_FAILED, str(e), path=path,
            ) from e
