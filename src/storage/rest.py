"""
원격 백엔드: PostgREST(jobs, time_entries) + Storage REST API (job-photos).

- httpx 동기 클라이언트, 요청마다 결과를 기다린 뒤 반환
- 실패는 BackendError 로 변환 (백엔드 메시지 원문 유지)
- 자동 재시도 없음
- 같은 worker + job 중복 실행은 DB 의 unique partial index 가 막음
  (schema.sql: time_entries_one_open_per_worker_job) → 409/23505 → AlreadyRunning
"""

import logging
import os
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from src.domain.constants import (
    JOBS_TABLE,
    PHOTO_BUCKET,
    PHOTO_LIST_LIMIT,
    TIME_ENTRIES_TABLE,
)
from src.domain.errors import AlreadyRunning, BackendError, ErrorCodes, PreconditionFailed
from src.domain.schemas import Job, StoredObject, TimeEntry, format_ts

from .base import JobStore, PhotoStorage

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
DEFAULT_TIMEOUT = 15.0


def _error_details(response: httpx.Response) -> tuple[str, str | None]:
    """백엔드 에러 응답 → (메시지, DB 에러 코드). JSON 이 아니면 원문 텍스트."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}", None
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body), body.get("code")
    return str(body), None


class RestClient:
    """
    백엔드 공용 HTTP 클라이언트.

    Usage:
        client = RestClient.from_env()
        store = RestJobStore(client)
        storage = RestPhotoStorage(client)
    """

    def __init__(
        self,
        url: str,
        service_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Args:
            url: 백엔드 URL (예: https://xyz.supabase.co)
            service_key: 서버 전용 service role key (브라우저에 노출 금지)
            timeout: 요청 타임아웃 (초)
            transport: 테스트용 httpx transport

        Raises:
            BackendError: URL/키 누락 (fail-fast)
        """
        if not url or not service_key:
            raise BackendError(
                ErrorCodes.BACKEND_REQUEST_FAILED,
                "SUPABASE_SERVICE_ROLE_KEY oder SUPABASE_URL fehlt",
            )
        self.url = url.rstrip("/")
        self._http = httpx.Client(
            base_url=self.url,
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_env(cls, **kwargs: Any) -> "RestClient":
        return cls(
            url=os.environ.get("SUPABASE_URL", ""),
            service_key=os.environ.get("SUPABASE_SERVICE_ROLE_KEY", ""),
            **kwargs,
        )

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        요청 후 에러 응답이면 BackendError.

        409 + 23505(unique violation) 은 호출부가 판단하도록 code 를 context 에 담음.
        """
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Backend request failed: %s %s: %s", method, path, e)
            raise BackendError(ErrorCodes.BACKEND_REQUEST_FAILED, str(e)) from e

        if response.is_error:
            message, db_code = _error_details(response)
            raise BackendError(
                ErrorCodes.BACKEND_REQUEST_FAILED,
                message,
                status=response.status_code,
                db_code=db_code,
            )
        return response

    def close(self) -> None:
        self._http.close()


# =============================================================================
# Job Store (PostgREST)
# =============================================================================

class RestJobStore(JobStore):
    """PostgREST 기반 JobStore."""

    RETURN_ROWS = {"Prefer": "return=representation"}

    def __init__(self, client: RestClient):
        self.client = client

    @staticmethod
    def _table(name: str) -> str:
        return f"/rest/v1/{name}"

    @staticmethod
    def _serialize(values: dict[str, Any]) -> dict[str, Any]:
        return {
            k: format_ts(v) if isinstance(v, datetime) else v
            for k, v in values.items()
        }

    # === jobs ===

    def get_job(self, job_id: str) -> Job | None:
        rows = self.client.request(
            "GET", self._table(JOBS_TABLE),
            params={"id": f"eq.{job_id}", "select": "*"},
        ).json()
        return Job.from_row(rows[0]) if rows else None

    def list_jobs(self, limit: int = 100) -> list[Job]:
        rows = self.client.request(
            "GET", self._table(JOBS_TABLE),
            params={"select": "*", "order": "created_at.desc", "limit": str(limit)},
        ).json()
        return [Job.from_row(r) for r in rows]

    def insert_job(self, values: dict[str, Any]) -> Job:
        rows = self.client.request(
            "POST", self._table(JOBS_TABLE),
            json=self._serialize(values),
            headers=self.RETURN_ROWS,
        ).json()
        return Job.from_row(rows[0])

    def update_job(self, job_id: str, values: dict[str, Any]) -> Job:
        rows = self.client.request(
            "PATCH", self._table(JOBS_TABLE),
            params={"id": f"eq.{job_id}"},
            json=self._serialize(values),
            headers=self.RETURN_ROWS,
        ).json()
        if not rows:
            raise PreconditionFailed(ErrorCodes.JOB_NOT_FOUND, job_id=job_id)
        return Job.from_row(rows[0])

    def delete_job(self, job_id: str) -> None:
        self.client.request(
            "DELETE", self._table(JOBS_TABLE),
            params={"id": f"eq.{job_id}"},
        )

    # === time_entries ===

    def list_entries(self, job_id: str) -> list[TimeEntry]:
        rows = self.client.request(
            "GET", self._table(TIME_ENTRIES_TABLE),
            params={"job_id": f"eq.{job_id}", "select": "*", "order": "start_ts.desc"},
        ).json()
        return [TimeEntry.from_row(r) for r in rows]

    def find_open_entries(self, worker: str) -> list[TimeEntry]:
        rows = self.client.request(
            "GET", self._table(TIME_ENTRIES_TABLE),
            params={"worker": f"eq.{worker}", "end_ts": "is.null", "select": "*"},
        ).json()
        return [TimeEntry.from_row(r) for r in rows]

    def insert_entry(
        self,
        job_id: str,
        worker: str,
        task: str | None,
        start_ts: datetime,
    ) -> TimeEntry:
        try:
            rows = self.client.request(
                "POST", self._table(TIME_ENTRIES_TABLE),
                json={
                    "job_id": job_id,
                    "worker": worker,
                    "task": task,
                    "start_ts": format_ts(start_ts),
                },
                headers=self.RETURN_ROWS,
            ).json()
        except BackendError as e:
            if e.context.get("db_code") == UNIQUE_VIOLATION:
                raise AlreadyRunning(
                    ErrorCodes.TIMER_ALREADY_RUNNING,
                    f"{worker} läuft bereits…",
                    job_id=job_id,
                    worker=worker,
                ) from e
            raise
        return TimeEntry.from_row(rows[0])

    def update_entry(self, entry_id: str, values: dict[str, Any]) -> TimeEntry:
        rows = self.client.request(
            "PATCH", self._table(TIME_ENTRIES_TABLE),
            params={"id": f"eq.{entry_id}"},
            json=self._serialize(values),
            headers=self.RETURN_ROWS,
        ).json()
        if not rows:
            raise BackendError(
                ErrorCodes.BACKEND_REQUEST_FAILED,
                f"time entry {entry_id} not found",
            )
        return TimeEntry.from_row(rows[0])

    def stop_open_entries(self, job_id: str, end_ts: datetime) -> list[TimeEntry]:
        rows = self.client.request(
            "PATCH", self._table(TIME_ENTRIES_TABLE),
            params={"job_id": f"eq.{job_id}", "end_ts": "is.null"},
            json={"end_ts": format_ts(end_ts)},
            headers=self.RETURN_ROWS,
        ).json()
        return [TimeEntry.from_row(r) for r in rows]

    def delete_entries(self, job_id: str) -> int:
        rows = self.client.request(
            "DELETE", self._table(TIME_ENTRIES_TABLE),
            params={"job_id": f"eq.{job_id}"},
            headers=self.RETURN_ROWS,
        ).json()
        return len(rows)


# =============================================================================
# Photo Storage (Storage REST API)
# =============================================================================

class RestPhotoStorage(PhotoStorage):
    """Storage REST API 기반 PhotoStorage (private bucket)."""

    def __init__(self, client: RestClient, bucket: str = PHOTO_BUCKET):
        self.client = client
        self.bucket = bucket

    def _object(self, path: str) -> str:
        return f"/storage/v1/object/{self.bucket}/{quote(path)}"

    def upload(
        self,
        path: str,
        data: bytes,
        content_type: str,
        upsert: bool = False,
    ) -> str:
        self.client.request(
            "POST", self._object(path),
            content=data,
            headers={
                "Content-Type": content_type,
                "Cache-Control": "3600",
                "x-upsert": "true" if upsert else "false",
            },
        )
        return path

    def list_objects(self, prefix: str, limit: int = PHOTO_LIST_LIMIT) -> list[StoredObject]:
        items = self.client.request(
            "POST", f"/storage/v1/object/list/{self.bucket}",
            json={
                "prefix": prefix,
                "limit": limit,
                "offset": 0,
                "sortBy": {"column": "name", "order": "desc"},
            },
        ).json()

        folder = prefix.rstrip("/")
        result = []
        for item in items:
            name = item.get("name") or ""
            # 폴더 placeholder 제외
            if not name or name.endswith("/") or item.get("id") is None:
                continue
            size = (item.get("metadata") or {}).get("size")
            result.append(StoredObject(name=name, path=f"{folder}/{name}", size=size))
        return result

    def remove(self, paths: list[str]) -> None:
        self.client.request(
            "DELETE", f"/storage/v1/object/{self.bucket}",
            json={"prefixes": paths},
        )

    def signed_url(self, path: str, expires_in: int) -> str:
        body = self.client.request(
            "POST", f"/storage/v1/object/sign/{self.bucket}/{quote(path)}",
            json={"expiresIn": expires_in},
        ).json()
        signed = body.get("signedURL") or body.get("signedUrl") or ""
        if signed.startswith("http"):
            return signed
        return f"{self.client.url}/storage/v1{signed}"

    def download(self, path: str) -> bytes:
        return self.client.request("GET", self._object(path)).content
