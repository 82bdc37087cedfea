"""
Word (DOCX) 렌더러: python-docx 기반.

구성:
- 제목, 머리말 정보
- 시간 테이블 + TOTAL
- 체크리스트
- 사진 (최대 REPORT_MAX_PHOTOS 장, 2열)
- 서명 이미지 + 이름/시각
"""

import logging
from io import BytesIO

from docx import Document
from docx.shared import Mm, Pt

from src.domain.errors import BackendError, ErrorCodes

from .report import TABLE_HEADER, ReportData, ReportImage

logger = logging.getLogger(__name__)

PHOTO_WIDTH_MM = 80
SIGNATURE_WIDTH_MM = 60


class WordRenderer:
    """
    Rapport DOCX 렌더러.

    깨진 이미지는 건너뛰고 경고만 남김 (리포트 자체는 생성).
    """

    def render(self, data: ReportData) -> bytes:
        """
        DOCX 바이트 생성.

        Raises:
            BackendError: RENDER_FAILED
        """
        try:
            doc = Document()
            doc.add_heading("Pro Automobile – Rapport", level=1)

            for line in data.header_lines():
                doc.add_paragraph(line)

            self._add_table(doc, data)

            total = doc.add_paragraph()
            total.add_run(data.total_line()).bold = True

            if data.checklist:
                doc.add_heading("Checkliste", level=2)
                for label, checked in data.checklist:
                    doc.add_paragraph(f"{'☑' if checked else '☐'} {label}")

            if data.photos:
                doc.add_heading("Fotos", level=2)
                self._add_photos(doc, data.photos)

            if data.signature:
                doc.add_heading("Unterschrift", level=2)
                self._add_image(doc, data.signature, SIGNATURE_WIDTH_MM)
                caption = doc.add_paragraph(data.signature_caption())
                caption.runs[0].font.size = Pt(9)

            buffer = BytesIO()
            doc.save(buffer)
            return buffer.getvalue()

        except BackendError:
            raise
        except Exception as e:
            raise BackendError(
                ErrorCodes.RENDER_FAILED,
                f"DOCX: {e}",
                job_id=data.job.id,
            ) from e

    def _add_table(self, doc, data: ReportData) -> None:
        rows = data.table_rows()
        table = doc.add_table(rows=1, cols=len(TABLE_HEADER))
        table.style = "Table Grid"

        for cell, title in zip(table.rows[0].cells, TABLE_HEADER):
            cell.text = ""
            cell.paragraphs[0].add_run(title).bold = True

        for values in rows:
            cells = table.add_row().cells
            for cell, value in zip(cells, values):
                cell.text = value

    def _add_photos(self, doc, photos: list[ReportImage]) -> None:
        cols = 2
        table = doc.add_table(rows=0, cols=cols)
        for i in range(0, len(photos), cols):
            cells = table.add_row().cells
            for cell, photo in zip(cells, photos[i:i + cols]):
                paragraph = cell.paragraphs[0]
                try:
                    paragraph.add_run().add_picture(
                        BytesIO(photo.data), width=Mm(PHOTO_WIDTH_MM)
                    )
                except Exception as e:
                    logger.warning("Skipping photo %s in DOCX: %s", photo.name, e)
                    paragraph.add_run(photo.name)

    def _add_image(self, doc, image: ReportImage, width_mm: int) -> None:
        try:
            doc.add_picture(BytesIO(image.data), width=Mm(width_mm))
        except Exception as e:
            logger.warning("Skipping image %s in DOCX: %s", image.name, e)


def render_docx(data: ReportData) -> bytes:
    """DOCX 리포트 생성 (간편 함수)."""
    return WordRenderer().render(data)
