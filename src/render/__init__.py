"""
Render layer: Rapport 출력 생성.

역할:
- Job 스냅샷(ReportData) → 최종 파일 바이트
- openpyxl (Excel), python-docx (Word), csv, Jinja2 + WeasyPrint (PDF)
"""

from .report import (
    REPORT_FORMATS,
    ReportData,
    ReportImage,
    build_report,
    report_filename,
)

__all__ = [
    "REPORT_FORMATS",
    "ReportData",
    "ReportImage",
    "build_report",
    "report_filename",
]
