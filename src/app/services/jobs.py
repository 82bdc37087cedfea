"""
Job 상세 서비스: 상세 조회, VIN, 체크리스트, 사진, 서명, 리포트, 아카이브.

상태 전이(create/close/reopen/timer)는 JobLifecycle 이 담당하고,
여기서는 상세 화면의 편집 동작과 파생 뷰(합계, signed URL)만 다룸.

관리자 동작(사진 삭제, 서명, 일괄 삭제)은 매번 PIN 을 먼저 검증한 뒤 변경.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from src.app.settings import config_value
from src.core.artifacts import (
    check_required_artifacts,
    classify_photo,
    resolve_artifact_refs,
)
from src.core.ids import generate_photo_name, sanitize_extension
from src.core.lifecycle import JobLifecycle
from src.core.totals import compute_totals
from src.domain.constants import (
    ARTIFACT_COLUMNS,
    JOB_LIST_LIMIT,
    KIND_OTHER,
    KIND_SIGNATURE,
    REPORT_MAX_PHOTOS,
    SIGNATURE_FILENAME,
    SIGNED_URL_TTL_SECONDS,
    VIN_LENGTH,
    get_mime_type,
)
from src.domain.errors import BackendError, ErrorCodes, ValidationError
from src.domain.schemas import (
    ArtifactCheck,
    ArtifactRefs,
    Job,
    PhotoArtifact,
    TimeEntry,
    Totals,
)
from src.render import ReportData, ReportImage, build_report, report_filename

logger = logging.getLogger(__name__)


@dataclass
class JobDetail:
    """상세 화면 뷰 (로드 시점 스냅샷)."""
    job: Job
    entries: list[TimeEntry]  # 최신 순
    totals: Totals
    photos: list[PhotoArtifact]
    artifacts: ArtifactRefs
    check: ArtifactCheck
    running_workers: list[str] = field(default_factory=list)
    workers: list[str] = field(default_factory=list)  # Mitarbeiter-Auswahl
    tasks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job": self.job.to_dict(),
            "entries": [e.to_dict() for e in self.entries],
            "totals": self.totals.to_dict(),
            "photos": [p.to_dict() for p in self.photos],
            "artifacts": self.artifacts.to_dict(),
            "can_close": self.check.ok,
            "missing": list(self.check.missing),
            "running_workers": list(self.running_workers),
            "workers": list(self.workers),
            "tasks": list(self.tasks),
        }


@dataclass
class RenderedReport:
    filename: str
    content_type: str
    content: bytes


class JobService:
    """
    상세 화면 동작 모음.

    Usage:
        service = JobService(lifecycle, config)
        detail = service.load_detail(job_id)
        service.upload_photo(job_id, "IMG_0001.JPG", data, kind="odometer")
    """

    def __init__(self, lifecycle: JobLifecycle, config: dict | None = None):
        self.lifecycle = lifecycle
        self.config = config or {}

    @property
    def store(self):
        return self.lifecycle.store

    @property
    def storage(self):
        return self.lifecycle.storage

    @property
    def workshop(self):
        return self.lifecycle.workshop

    @property
    def signed_url_ttl(self) -> int:
        return int(config_value(self.config, "storage.signed_url_ttl", SIGNED_URL_TTL_SECONDS))

    # =========================================================================
    # Views
    # =========================================================================

    def list_jobs(self, limit: int | None = None) -> list[Job]:
        """최신 순 Job 목록."""
        if limit is None:
            limit = int(config_value(self.config, "jobs.list_limit", JOB_LIST_LIMIT))
        return self.store.list_jobs(limit=limit)

    def load_detail(self, job_id: str) -> JobDetail:
        """
        Job + entries + 합계 + 사진(signed URL) + 참조 해석을 한 번에.

        Raises:
            PreconditionFailed: JOB_NOT_FOUND
        """
        job = self.lifecycle.get_job(job_id)
        entries = self.store.list_entries(job_id)
        objects = self.storage.list_objects(job_id)

        refs = resolve_artifact_refs(job, objects, self.workshop.photo_kinds)
        check = check_required_artifacts(refs, self.workshop.required_kinds)

        photos = [
            PhotoArtifact(
                name=obj.name,
                path=obj.path,
                kind=classify_photo(obj.name, self.workshop.photo_kinds),
                signed_url=self.storage.signed_url(obj.path, self.signed_url_ttl),
            )
            for obj in objects
        ]

        return JobDetail(
            job=job,
            entries=entries,
            totals=compute_totals(entries, self.lifecycle.clock()),
            photos=photos,
            artifacts=refs,
            check=check,
            running_workers=sorted({e.worker for e in entries if e.is_running}),
            workers=list(self.workshop.workers),
            tasks=list(self.workshop.tasks),
        )

    # =========================================================================
    # Edits
    # =========================================================================

    def update_vin(self, job_id: str, vin: str | None, confirm: bool = False) -> Job:
        """
        VIN 저장 (trim + 대문자). 빈 값은 삭제.

        Raises:
            ValidationError: VIN_LENGTH (17자가 아니고 confirm=False)
        """
        self.lifecycle.get_job(job_id)
        value = (vin or "").strip().upper() or None

        if value and len(value) != VIN_LENGTH and not confirm:
            raise ValidationError(
                ErrorCodes.VIN_LENGTH,
                f"VIN hat {len(value)} Zeichen (normal {VIN_LENGTH}). Trotzdem speichern?",
                length=len(value),
                expected=VIN_LENGTH,
            )

        job = self.store.update_job(job_id, {"vin": value})
        logger.info("VIN updated on job %s", job_id)
        return job

    def toggle_checklist(self, job_id: str, key: str) -> Job:
        """
        체크리스트 항목 하나 토글 (전체 매핑 저장).

        Raises:
            ValidationError: UNKNOWN_CHECKLIST_KEY
        """
        if key not in self.workshop.checklist:
            raise ValidationError(
                ErrorCodes.UNKNOWN_CHECKLIST_KEY,
                f"Unbekannter Checklisten-Punkt: {key}",
                key=key,
            )

        job = self.lifecycle.get_job(job_id)
        checklist = dict(job.checklist or {})
        checklist[key] = not bool(checklist.get(key))
        return self.store.update_job(job_id, {"checklist": checklist})

    # =========================================================================
    # Photos
    # =========================================================================

    def upload_photo(
        self,
        job_id: str,
        filename: str,
        data: bytes,
        content_type: str | None = None,
        kind: str | None = None,
    ) -> PhotoArtifact:
        """
        사진 업로드 (덮어쓰기 없음).

        kind 가 있으면 파일명에 prefix 를 붙이고,
        odometer/identity 는 Job 직접 참조 컬럼도 갱신.

        Raises:
            ValidationError: INVALID_PHOTO_KIND
        """
        self.lifecycle.get_job(job_id)

        prefix = None
        if kind and kind != KIND_OTHER:
            photo_kind = self.workshop.kind(kind)
            if photo_kind is None or kind == KIND_SIGNATURE or not photo_kind.prefixes:
                raise ValidationError(
                    ErrorCodes.INVALID_PHOTO_KIND,
                    f"Unbekannte Foto-Art: {kind}",
                    kind=kind,
                )
            prefix = photo_kind.prefixes[0]

        name = generate_photo_name(filename, prefix=prefix, now=self.lifecycle.clock())
        path = f"{job_id}/{name}"
        ext = sanitize_extension(filename)
        self.storage.upload(
            path,
            data,
            content_type=content_type or get_mime_type(f"photo.{ext}"),
            upsert=False,
        )

        resolved_kind = classify_photo(name, self.workshop.photo_kinds)
        column = ARTIFACT_COLUMNS.get(resolved_kind)
        if column and resolved_kind != KIND_SIGNATURE:
            self.store.update_job(job_id, {column: path})

        logger.info("Photo uploaded: %s (kind=%s)", path, resolved_kind)
        return PhotoArtifact(
            name=name,
            path=path,
            kind=resolved_kind,
            signed_url=self.storage.signed_url(path, self.signed_url_ttl),
        )

    def _clear_direct_refs(self, job_id: str, removed: set[str]) -> None:
        """삭제된 경로를 가리키는 직접 참조 컬럼 비우기."""
        job = self.store.get_job(job_id)
        if job is None:
            return
        updates = {
            column: None
            for column in ARTIFACT_COLUMNS.values()
            if getattr(job, column) in removed
        }
        if updates:
            self.store.update_job(job_id, updates)

    def delete_photo(self, job_id: str, name: str, pin: str | None) -> None:
        """
        사진 삭제 (관리자).

        Raises:
            AuthDenied: PIN 검증 실패 (삭제 전)
            ValidationError: INVALID_PATH
        """
        self.lifecycle.gate.verify(pin)

        if not name or "/" in name or name in (".", ".."):
            raise ValidationError(ErrorCodes.INVALID_PATH, path=name)

        self.lifecycle.get_job(job_id)
        path = f"{job_id}/{name}"
        self.storage.remove([path])
        self._clear_direct_refs(job_id, {path})
        logger.info("Photo deleted: %s", path)

    def delete_objects(self, bucket: str | None, paths: list[str] | None, pin: str | None) -> int:
        """
        관리자 일괄 삭제 (POST /api/admin/delete-photo).

        검사 순서: bucket/paths 누락(400) → 서버 PIN 없음(500) → PIN 불일치(401).

        Returns:
            삭제 요청한 경로 수
        """
        if not bucket or not paths:
            raise ValidationError(
                ErrorCodes.MISSING_REQUIRED_FIELD,
                "bucket/paths fehlt",
                field="bucket" if not bucket else "paths",
            )

        self.lifecycle.gate.verify(pin)

        if bucket != self.storage.bucket:
            raise ValidationError(
                ErrorCodes.INVALID_PATH,
                f"Unbekannter Bucket: {bucket}",
                bucket=bucket,
            )

        self.storage.remove(list(paths))

        by_job: dict[str, set[str]] = {}
        for path in paths:
            job_id = path.split("/", 1)[0]
            by_job.setdefault(job_id, set()).add(path)
        for job_id, removed in by_job.items():
            self._clear_direct_refs(job_id, removed)

        logger.info("Admin removed %d object(s) from %s", len(paths), bucket)
        return len(paths)

    # =========================================================================
    # Signature
    # =========================================================================

    def save_signature(
        self,
        job_id: str,
        signer_name: str | None,
        data: bytes,
        pin: str | None,
    ) -> Job:
        """
        고객 서명 저장 ({job_id}/signature.png, 덮어쓰기 허용).

        Raises:
            AuthDenied: PIN 검증 실패
            ValidationError: MISSING_REQUIRED_FIELD (이름, 서명 이미지)
        """
        self.lifecycle.gate.verify(pin)

        name = (signer_name or "").strip()
        if not name:
            raise ValidationError(
                ErrorCodes.MISSING_REQUIRED_FIELD,
                "Name fehlt",
                field="signature_name",
            )
        if not data:
            raise ValidationError(
                ErrorCodes.MISSING_REQUIRED_FIELD,
                "Unterschrift fehlt",
                field="signature",
            )

        self.lifecycle.get_job(job_id)
        path = f"{job_id}/{SIGNATURE_FILENAME}"
        self.storage.upload(path, data, content_type="image/png", upsert=True)

        job = self.store.update_job(job_id, {
            "signature_path": path,
            "signature_name": name,
            "signature_at": self.lifecycle.clock(),
        })
        logger.info("Signature saved on job %s", job_id)
        return job

    # =========================================================================
    # Report
    # =========================================================================

    def _download_image(self, path: str, name: str) -> ReportImage | None:
        try:
            data = self.storage.download(path)
        except BackendError as e:
            logger.warning("Skipping %s in report: %s", path, e.message)
            return None
        return ReportImage(name=name, data=data, content_type=get_mime_type(name))

    def collect_report_data(self, job_id: str) -> ReportData:
        """리포트 입력 스냅샷 구성 (사진은 서명 제외 최대 REPORT_MAX_PHOTOS 장)."""
        job = self.lifecycle.get_job(job_id)
        entries = self.store.list_entries(job_id)
        now = self.lifecycle.clock()

        checklist = [
            (label, bool((job.checklist or {}).get(key)))
            for key, label in self.workshop.checklist.items()
        ]

        photos: list[ReportImage] = []
        for obj in self.storage.list_objects(job_id):
            if len(photos) >= REPORT_MAX_PHOTOS:
                break
            if obj.name == SIGNATURE_FILENAME:
                continue
            if classify_photo(obj.name, self.workshop.photo_kinds) == KIND_SIGNATURE:
                continue
            image = self._download_image(obj.path, obj.name)
            if image:
                photos.append(image)

        signature = None
        if job.signature_path:
            signature = self._download_image(job.signature_path, SIGNATURE_FILENAME)

        return ReportData(
            job=job,
            entries=list(reversed(entries)),
            totals=compute_totals(entries, now),
            checklist=checklist,
            photos=photos,
            signature=signature,
            now=now,
            timezone=config_value(self.config, "report.timezone"),
        )

    def build_report(self, job_id: str, fmt: str) -> RenderedReport:
        """
        Rapport 생성.

        Raises:
            ValidationError: UNSUPPORTED_FORMAT
            BackendError: RENDER_FAILED
        """
        data = self.collect_report_data(job_id)
        content = build_report(data, fmt)
        filename = report_filename(data.job, fmt.lower())
        return RenderedReport(
            filename=filename,
            content_type=get_mime_type(filename),
            content=content,
        )

    # =========================================================================
    # Archive
    # =========================================================================

    def _purge_photos(self, job_id: str) -> int:
        """
        Job 폴더의 사진 전부 삭제 (목록 상한을 넘으면 여러 번 반복).

        Raises:
            BackendError: 삭제 후에도 같은 목록이 남아 있음
        """
        removed = 0
        previous: list[str] = []
        while True:
            paths = [o.path for o in self.storage.list_objects(job_id)]
            if not paths:
                return removed
            if paths == previous:
                raise BackendError(
                    ErrorCodes.BACKEND_REQUEST_FAILED,
                    f"Fotos von {job_id} konnten nicht gelöscht werden",
                    job_id=job_id,
                    remaining=len(paths),
                )
            self.storage.remove(paths)
            removed += len(paths)
            previous = paths

    def archive_job(self, job_id: str, archive_dir: Path) -> Path:
        """
        XLSX 리포트를 archive_dir 에 저장한 뒤 사진/entries/Job 삭제.

        리포트 쓰기에 실패하면 아무것도 삭제하지 않음.

        Returns:
            저장된 리포트 경로

        Raises:
            BackendError: RENDER_FAILED, ARCHIVE_WRITE_FAILED
        """
        report = self.build_report(job_id, "xlsx")
        target = archive_dir / report.filename
        try:
            archive_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(report.content)
        except OSError as e:
            raise BackendError(
                ErrorCodes.ARCHIVE_WRITE_FAILED,
                f"Archiv konnte nicht geschrieben werden: {e}",
                job_id=job_id,
                path=str(target),
            ) from e

        removed_photos = self._purge_photos(job_id)
        removed_entries = self.store.delete_entries(job_id)
        self.store.delete_job(job_id)

        logger.info(
            "Archived job %s → %s (%d photos, %d entries removed)",
            job_id, target, removed_photos, removed_entries,
        )
        return target
