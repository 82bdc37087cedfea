"""
영속성 경계: 관계형 스토어(jobs, time_entries) + 오브젝트 스토리지(job-photos).

core 가 알아야 하는 것은 여기까지:
- point lookup by id, insert-returning-row, update-by-id
- 필터 일괄 업데이트 ("job_id=J and end_ts is null → end_ts=now")
- 사진: upload, list-by-prefix, delete-by-path, signed URL, download

구현체:
- local: JSON 파일 + FileLock (개발/단일 장비)
- rest: PostgREST + Storage REST API (httpx)
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from src.domain.schemas import Job, StoredObject, TimeEntry


class JobStore(ABC):
    """
    jobs / time_entries 테이블 추상 인터페이스.

    모든 실패는 BackendError 로 올라옴 (메시지 원문 유지).
    """

    # === jobs ===

    @abstractmethod
    def get_job(self, job_id: str) -> Job | None:
        """id 로 Job 조회 (없으면 None)."""
        ...

    @abstractmethod
    def list_jobs(self, limit: int = 100) -> list[Job]:
        """created_at 내림차순 Job 목록."""
        ...

    @abstractmethod
    def insert_job(self, values: dict[str, Any]) -> Job:
        """Job 생성 후 저장된 row 반환 (id 포함)."""
        ...

    @abstractmethod
    def update_job(self, job_id: str, values: dict[str, Any]) -> Job:
        """
        Job 부분 업데이트.

        Raises:
            PreconditionFailed: JOB_NOT_FOUND
        """
        ...

    @abstractmethod
    def delete_job(self, job_id: str) -> None:
        """Job row 삭제 (아카이브 전용)."""
        ...

    # === time_entries ===

    @abstractmethod
    def list_entries(self, job_id: str) -> list[TimeEntry]:
        """Job 의 TimeEntry 목록 (start_ts 내림차순)."""
        ...

    @abstractmethod
    def find_open_entries(self, worker: str) -> list[TimeEntry]:
        """worker 의 실행 중(end_ts is null) TimeEntry 전체 (모든 Job)."""
        ...

    @abstractmethod
    def insert_entry(
        self,
        job_id: str,
        worker: str,
        task: str | None,
        start_ts: datetime,
    ) -> TimeEntry:
        """
        TimeEntry 생성 (check-and-insert).

        같은 worker + job 에 실행 중 entry 가 있으면 생성하지 않음.

        Raises:
            AlreadyRunning: TIMER_ALREADY_RUNNING
        """
        ...

    @abstractmethod
    def update_entry(self, entry_id: str, values: dict[str, Any]) -> TimeEntry:
        """TimeEntry 부분 업데이트."""
        ...

    @abstractmethod
    def stop_open_entries(self, job_id: str, end_ts: datetime) -> list[TimeEntry]:
        """
        job_id 의 실행 중 entry 전부 end_ts 설정.

        Returns:
            멈춘 entry 목록 (이미 멈춘 것은 포함 안 됨 → 재시도 안전)
        """
        ...

    @abstractmethod
    def delete_entries(self, job_id: str) -> int:
        """Job 의 TimeEntry 전부 삭제 (아카이브 전용). 삭제 개수 반환."""
        ...


class PhotoStorage(ABC):
    """
    Job 별 네임스페이스({job_id}/{filename}) 오브젝트 스토리지.

    버킷은 private: 읽기는 signed URL 로만.
    """

    bucket: str

    @abstractmethod
    def upload(
        self,
        path: str,
        data: bytes,
        content_type: str,
        upsert: bool = False,
    ) -> str:
        """
        업로드 후 path 반환.

        Raises:
            BackendError: upsert=False 인데 이미 존재, 또는 스토리지 실패
        """
        ...

    @abstractmethod
    def list_objects(self, prefix: str, limit: int = 200) -> list[StoredObject]:
        """prefix(= job_id) 아래 파일 목록 (이름 내림차순)."""
        ...

    @abstractmethod
    def remove(self, paths: list[str]) -> None:
        """path 목록 삭제."""
        ...

    @abstractmethod
    def signed_url(self, path: str, expires_in: int) -> str:
        """읽기용 시간 제한 URL."""
        ...

    @abstractmethod
    def download(self, path: str) -> bytes:
        """바이트 다운로드 (리포트 이미지 삽입용)."""
        ...
