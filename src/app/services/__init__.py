"""
Application Services.

역할:
- jobs: 상세 조회, VIN/체크리스트 편집, 사진/서명, 리포트, 아카이브
"""

from .jobs import JobDetail, JobService, RenderedReport

__all__ = [
    "JobDetail",
    "JobService",
    "RenderedReport",
]
