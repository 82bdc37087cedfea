"""
FastAPI Routes.

페이지 라우트 (HTML) + API 라우트 (JSON) + 로컬 파일 서빙
"""

from . import admin, files, jobs

__all__ = ["admin", "files", "jobs"]
