"""
test_jobs_service.py - Job 상세 서비스 테스트

DoD:
- VIN: 17자 아니면 확인 필요, 대문자 저장
- 사진 업로드: kind prefix + 직접 참조 컬럼
- 관리자 동작: PIN 먼저, 실패 시 변경 없음
- 리포트: 서명 제외 최대 6장, 실행 중 구간 포함
- 아카이브: 리포트 저장 후 삭제
"""

from io import BytesIO
from unittest.mock import patch

import pytest
from openpyxl import load_workbook

from src.core.admin import AdminGate
from src.domain.errors import (
    AuthDenied,
    BackendError,
    ErrorCodes,
    PreconditionFailed,
    ValidationError,
)

# =============================================================================
# Detail
# =============================================================================


class TestLoadDetail:
    """load_detail 테스트."""

    def test_detail_snapshot(self, service, lifecycle, ready_job, clock):
        lifecycle.start_timer(ready_job.id, "Esteban", "Service")
        clock.advance(minutes=12)

        detail = service.load_detail(ready_job.id)

        assert detail.totals.total == 12
        assert detail.running_workers == ["Esteban"]
        assert detail.check.ok
        assert len(detail.photos) == 2
        assert all(p.signed_url for p in detail.photos)

        data = detail.to_dict()
        assert data["can_close"] is True
        assert data["missing"] == []

    def test_roster_and_tasks_for_selects(self, service, job):
        data = service.load_detail(job.id).to_dict()

        assert data["workers"] == ["Esteban", "Eron", "Jeremie", "Tsvetan", "Mensel"]
        assert data["tasks"][0] == "Service"
        assert "Klima" in data["tasks"]

    def test_missing_artifacts_listed(self, service, job):
        detail = service.load_detail(job.id)

        assert not detail.check.ok
        assert set(detail.to_dict()["missing"]) == {"identity", "odometer"}

    def test_unknown_job(self, service):
        with pytest.raises(PreconditionFailed):
            service.load_detail("nope")

    def test_list_jobs(self, service, job):
        assert [j.id for j in service.list_jobs()] == [job.id]


# =============================================================================
# VIN / Checklist
# =============================================================================


class TestVin:
    """update_vin 테스트."""

    def test_valid_vin_uppercased(self, service, job):
        updated = service.update_vin(job.id, " wvwzzz1kzaw000001 ")

        assert updated.vin == "WVWZZZ1KZAW000001"

    def test_short_vin_needs_confirmation(self, service, store, job):
        with pytest.raises(ValidationError) as exc_info:
            service.update_vin(job.id, "WVW123")

        assert exc_info.value.code == ErrorCodes.VIN_LENGTH
        assert exc_info.value.message == "VIN hat 6 Zeichen (normal 17). Trotzdem speichern?"
        assert store.get_job(job.id).vin is None

    def test_short_vin_confirmed(self, service, job):
        assert service.update_vin(job.id, "WVW123", confirm=True).vin == "WVW123"

    def test_empty_clears(self, service, job):
        service.update_vin(job.id, "WVWZZZ1KZAW000001")

        assert service.update_vin(job.id, "  ").vin is None


class TestChecklist:
    """toggle_checklist 테스트."""

    def test_toggle_twice(self, service, job):
        assert service.toggle_checklist(job.id, "probefahrt").checklist == {"probefahrt": True}
        assert service.toggle_checklist(job.id, "probefahrt").checklist == {"probefahrt": False}

    def test_keeps_other_keys(self, service, job):
        service.toggle_checklist(job.id, "fluids")

        updated = service.toggle_checklist(job.id, "wheels")

        assert updated.checklist == {"fluids": True, "wheels": True}

    def test_unknown_key(self, service, job):
        with pytest.raises(ValidationError) as exc_info:
            service.toggle_checklist(job.id, "nope")

        assert exc_info.value.code == ErrorCodes.UNKNOWN_CHECKLIST_KEY


# =============================================================================
# Photos
# =============================================================================


class TestUploadPhoto:
    """upload_photo 테스트."""

    def test_odometer_sets_direct_column(self, service, store, job):
        photo = service.upload_photo(job.id, "IMG_0001.JPG", b"x", kind="odometer")

        assert photo.kind == "odometer"
        assert photo.name.startswith("km_")
        assert photo.name.endswith(".jpg")
        assert store.get_job(job.id).odometer_photo_path == photo.path

    def test_identity_sets_direct_column(self, service, store, job):
        photo = service.upload_photo(job.id, "scan.png", b"x", kind="identity")

        assert photo.name.startswith("ausweis_")
        assert store.get_job(job.id).identity_photo_path == photo.path

    def test_plain_upload_is_other(self, service, store, job):
        photo = service.upload_photo(job.id, "IMG_0003.heic", b"x")

        assert photo.kind == "other"
        assert store.get_job(job.id).odometer_photo_path is None

    def test_same_filename_twice_kept(self, service, storage, job):
        service.upload_photo(job.id, "IMG_0001.JPG", b"a", kind="damage")
        service.upload_photo(job.id, "IMG_0001.JPG", b"b", kind="damage")

        assert len(storage.list_objects(job.id)) == 2

    @pytest.mark.parametrize("kind", ["signature", "banana"])
    def test_invalid_kind(self, service, job, kind):
        with pytest.raises(ValidationError) as exc_info:
            service.upload_photo(job.id, "x.jpg", b"x", kind=kind)

        assert exc_info.value.code == ErrorCodes.INVALID_PHOTO_KIND

    def test_upload_to_unknown_job(self, service, storage):
        with pytest.raises(PreconditionFailed):
            service.upload_photo("nope", "x.jpg", b"x")

        assert storage.list_objects("nope") == []


class TestDeletePhoto:
    """delete_photo / delete_objects 테스트."""

    def test_delete_clears_direct_ref(self, service, store, storage, job, admin_pin):
        photo = service.upload_photo(job.id, "x.jpg", b"x", kind="odometer")

        service.delete_photo(job.id, photo.name, admin_pin)

        assert storage.list_objects(job.id) == []
        assert store.get_job(job.id).odometer_photo_path is None

    def test_wrong_pin_keeps_photo(self, service, storage, job):
        photo = service.upload_photo(job.id, "x.jpg", b"x")

        with pytest.raises(AuthDenied):
            service.delete_photo(job.id, photo.name, "0000")

        assert len(storage.list_objects(job.id)) == 1

    @pytest.mark.parametrize("name", ["", "..", "other/x.jpg"])
    def test_invalid_name(self, service, job, admin_pin, name):
        with pytest.raises(ValidationError) as exc_info:
            service.delete_photo(job.id, name, admin_pin)

        assert exc_info.value.code == ErrorCodes.INVALID_PATH

    def test_missing_fields_checked_before_pin(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.delete_objects("job-photos", [], None)

        assert exc_info.value.http_status == 400
        assert exc_info.value.message == "bucket/paths fehlt"

    def test_server_secret_missing(self, service, job):
        service.lifecycle.gate = AdminGate(None)

        with pytest.raises(AuthDenied) as exc_info:
            service.delete_objects("job-photos", [f"{job.id}/x.jpg"], "4711")

        assert exc_info.value.http_status == 500

    def test_wrong_pin(self, service, job):
        with pytest.raises(AuthDenied) as exc_info:
            service.delete_objects("job-photos", [f"{job.id}/x.jpg"], "0000")

        assert exc_info.value.http_status == 401

    def test_foreign_bucket(self, service, admin_pin):
        with pytest.raises(ValidationError) as exc_info:
            service.delete_objects("other-bucket", ["a/b.jpg"], admin_pin)

        assert exc_info.value.code == ErrorCodes.INVALID_PATH

    def test_bulk_delete(self, service, store, storage, ready_job, admin_pin):
        paths = [o.path for o in storage.list_objects(ready_job.id)]

        removed = service.delete_objects("job-photos", paths, admin_pin)

        assert removed == 2
        assert storage.list_objects(ready_job.id) == []
        job = store.get_job(ready_job.id)
        assert job.odometer_photo_path is None
        assert job.identity_photo_path is None


# =============================================================================
# Signature
# =============================================================================


class TestSignature:
    """save_signature 테스트."""

    def test_save_signature(self, service, storage, job, admin_pin, png_bytes, clock):
        updated = service.save_signature(job.id, " Hans Müller ", png_bytes, admin_pin)

        assert updated.signature_path == f"{job.id}/signature.png"
        assert updated.signature_name == "Hans Müller"
        assert updated.signature_at == clock()
        assert storage.download(updated.signature_path) == png_bytes

    def test_resign_overwrites(self, service, storage, job, admin_pin, png_bytes):
        service.save_signature(job.id, "A", b"old", admin_pin)
        service.save_signature(job.id, "B", png_bytes, admin_pin)

        assert storage.download(f"{job.id}/signature.png") == png_bytes

    def test_wrong_pin_first(self, service, store, job):
        with pytest.raises(AuthDenied):
            service.save_signature(job.id, "", b"", "0000")

        assert store.get_job(job.id).signature_path is None

    def test_name_required(self, service, job, admin_pin, png_bytes):
        with pytest.raises(ValidationError) as exc_info:
            service.save_signature(job.id, "  ", png_bytes, admin_pin)

        assert exc_info.value.context["field"] == "signature_name"


# =============================================================================
# Report / Archive
# =============================================================================


class TestReport:
    """build_report / collect_report_data 테스트."""

    def test_photos_capped_and_signature_excluded(self, service, job, admin_pin, png_bytes):
        for i in range(8):
            service.upload_photo(job.id, f"IMG_{i}.png", png_bytes, kind="damage")
        service.save_signature(job.id, "Hans", png_bytes, admin_pin)

        data = service.collect_report_data(job.id)

        assert len(data.photos) == 6
        assert all(p.name != "signature.png" for p in data.photos)
        assert data.signature is not None

    def test_running_entry_counted(self, service, lifecycle, job, clock):
        lifecycle.start_timer(job.id, "Esteban")
        clock.advance(minutes=20)

        data = service.collect_report_data(job.id)

        assert data.totals.total == 20
        assert data.now == clock()

    def test_entries_oldest_first(self, service, lifecycle, job, clock):
        lifecycle.start_timer(job.id, "Esteban")
        clock.advance(minutes=5)
        lifecycle.start_timer(job.id, "Eron")

        data = service.collect_report_data(job.id)

        assert [e.worker for e in data.entries] == ["Esteban", "Eron"]

    def test_unreadable_photo_skipped(self, service, storage, job, caplog):
        service.upload_photo(job.id, "x.jpg", b"x", kind="damage")

        with patch.object(
            storage, "download",
            side_effect=BackendError(ErrorCodes.BACKEND_REQUEST_FAILED, "gone"),
        ):
            data = service.collect_report_data(job.id)

        assert data.photos == []
        assert any("Skipping" in r.message for r in caplog.records)

    def test_build_xlsx(self, service, job):
        report = service.build_report(job.id, "XLSX")

        assert report.filename == f"rapport_ZH_12345_{job.id}.xlsx"
        assert report.content_type.endswith("spreadsheetml.sheet")
        assert load_workbook(BytesIO(report.content)).active["A1"].value

    def test_unsupported_format(self, service, job):
        with pytest.raises(ValidationError):
            service.build_report(job.id, "odt")


class TestArchive:
    """archive_job 테스트."""

    def test_archive_removes_everything(self, service, lifecycle, store, storage, ready_job, tmp_path):
        lifecycle.start_timer(ready_job.id, "Esteban")
        lifecycle.close(ready_job.id)

        target = service.archive_job(ready_job.id, tmp_path / "archive")

        assert target.exists()
        assert target.suffix == ".xlsx"
        assert store.get_job(ready_job.id) is None
        assert store.list_entries(ready_job.id) == []
        assert storage.list_objects(ready_job.id) == []

    def test_render_failure_deletes_nothing(self, service, store, storage, ready_job, tmp_path):
        with patch(
            "src.app.services.jobs.build_report",
            side_effect=BackendError(ErrorCodes.RENDER_FAILED, "boom"),
        ):
            with pytest.raises(BackendError):
                service.archive_job(ready_job.id, tmp_path / "archive")

        assert store.get_job(ready_job.id) is not None
        assert len(storage.list_objects(ready_job.id)) == 2

    def test_archive_purges_beyond_list_limit(self, service, lifecycle, store, storage, ready_job, tmp_path):
        for i in range(205):
            storage.upload(f"{ready_job.id}/schaden_{i:03d}.jpg", b"x", "image/jpeg")
        lifecycle.close(ready_job.id)

        service.archive_job(ready_job.id, tmp_path / "archive")

        assert storage.list_objects(ready_job.id) == []
        assert not any((storage.bucket_dir / ready_job.id).iterdir())
        assert store.get_job(ready_job.id) is None

    def test_archive_stuck_purge_keeps_job(self, service, store, storage, ready_job, tmp_path):
        with patch.object(storage, "remove"):
            with pytest.raises(BackendError) as exc_info:
                service.archive_job(ready_job.id, tmp_path / "archive")

        assert exc_info.value.context["remaining"] == 2
        assert store.get_job(ready_job.id) is not None

    def test_archive_write_failure_deletes_nothing(self, service, store, storage, ready_job, tmp_path):
        archive_dir = tmp_path / "archive"
        archive_dir.write_text("not a folder", encoding="utf-8")

        with pytest.raises(BackendError) as exc_info:
            service.archive_job(ready_job.id, archive_dir)

        assert exc_info.value.code == ErrorCodes.ARCHIVE_WRITE_FAILED
        assert store.get_job(ready_job.id) is not None
        assert len(storage.list_objects(ready_job.id)) == 2
