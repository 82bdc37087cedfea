"""
Storage layer: 외부 관계형 스토어 + 오브젝트 스토리지 경계.

모델 교체처럼 백엔드 교체 가능 (default.yaml backend.kind).
"""

from .base import JobStore, PhotoStorage
from .local import LocalJobStore, LocalPhotoStorage
from .rest import RestClient, RestJobStore, RestPhotoStorage

__all__ = [
    "JobStore",
    "PhotoStorage",
    "LocalJobStore",
    "LocalPhotoStorage",
    "RestClient",
    "RestJobStore",
    "RestPhotoStorage",
]
