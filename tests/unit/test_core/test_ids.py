"""
test_ids.py - ID / 사진 파일명 생성 테스트

DoD:
- job_id / entry_id 고유성
- 사진 파일명: {prefix}_{timestamp}_{hex8}.{ext}
- 확장자 정리: 소문자, [a-z0-9] 만, 없으면 jpg
"""

import re
from datetime import UTC, datetime

import pytest

from src.core.ids import (
    generate_entry_id,
    generate_job_id,
    generate_photo_name,
    sanitize_extension,
)

NOW = datetime(2026, 3, 2, 8, 30, 15, 123456, tzinfo=UTC)


class TestGenerateIds:
    """job_id / entry_id."""

    def test_job_ids_unique(self):
        ids = {generate_job_id() for _ in range(100)}
        assert len(ids) == 100

    def test_entry_ids_unique(self):
        ids = {generate_entry_id() for _ in range(100)}
        assert len(ids) == 100


class TestSanitizeExtension:
    """sanitize_extension 테스트."""

    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("IMG_0001.JPG", "jpg"),
            ("photo.HeIc", "heic"),
            ("scan.p-n g", "png"),
            ("no_extension", "jpg"),
            ("trailing.", "jpg"),
            ("archive.tar.gz", "gz"),
        ],
    )
    def test_sanitize(self, filename, expected):
        assert sanitize_extension(filename) == expected


class TestGeneratePhotoName:
    """generate_photo_name 테스트."""

    def test_without_prefix(self):
        name = generate_photo_name("IMG_0001.JPG", now=NOW)

        assert re.match(r"^2026-03-02T08-30-15-123456_[0-9a-f]{8}\.jpg$", name)

    def test_with_prefix(self):
        name = generate_photo_name("IMG_0001.JPG", prefix="km", now=NOW)

        assert name.startswith("km_2026-03-02T08-30-15-123456_")
        assert name.endswith(".jpg")

    def test_prefix_trailing_underscore_not_doubled(self):
        name = generate_photo_name("x.png", prefix="id_", now=NOW)

        assert name.startswith("id_2026-")

    def test_unique_for_same_instant(self):
        names = {generate_photo_name("x.jpg", now=NOW) for _ in range(20)}
        assert len(names) == 20
