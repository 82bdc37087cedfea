"""
PDF 렌더러: Jinja2 HTML → WeasyPrint.

WeasyPrint 는 선택 의존성 (extra "pdf"), 호출 시점에 import.
HTML 렌더링(render_html)은 WeasyPrint 없이도 동작.
"""

import base64
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from src.domain.errors import BackendError, ErrorCodes

from .report import TABLE_HEADER, ReportData, ReportImage

TEMPLATES_DIR = Path(__file__).parent / "templates"

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
)


def _data_uri(image: ReportImage) -> str:
    encoded = base64.b64encode(image.data).decode("ascii")
    return f"data:{image.content_type};base64,{encoded}"


def render_html(data: ReportData) -> str:
    """Rapport HTML 문자열 생성."""
    template = _env.get_template("report.html")
    return template.render(
        job=data.job,
        header_lines=data.header_lines(),
        table_header=TABLE_HEADER,
        rows=data.table_rows(),
        total_line=data.total_line(),
        checklist=data.checklist,
        photos=[{"name": p.name, "src": _data_uri(p)} for p in data.photos],
        signature=_data_uri(data.signature) if data.signature else None,
        signature_caption=data.signature_caption(),
    )


def render_pdf(data: ReportData) -> bytes:
    """
    PDF 바이트 생성.

    Raises:
        BackendError: RENDER_FAILED (weasyprint 미설치 포함)
    """
    try:
        from weasyprint import HTML
    except ImportError as e:
        raise BackendError(
            ErrorCodes.RENDER_FAILED,
            "PDF export requires weasyprint (pip install '.[pdf]')",
            job_id=data.job.id,
        ) from e

    html = render_html(data)
    try:
        return HTML(string=html).write_pdf()
    except Exception as e:
        raise BackendError(
            ErrorCodes.RENDER_FAILED,
            f"PDF: {e}",
            job_id=data.job.id,
        ) from e
