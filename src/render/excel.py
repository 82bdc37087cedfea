"""
Excel (XLSX) 렌더러: openpyxl 기반.

시트 구성 (Rapport):
- 1행: 제목
- 머리말 정보 (Auftrag, Kunde, ...)
- 시간 테이블 (헤더 굵게)
- 체크리스트
- TOTAL
"""

from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

from src.domain.errors import BackendError, ErrorCodes

from .report import TABLE_HEADER, ReportData

TITLE = "Pro Automobile – Rapport"
HEADER_FILL = PatternFill("solid", fgColor="141414")


class ExcelRenderer:
    """
    Rapport XLSX 렌더러.

    Usage:
        renderer = ExcelRenderer()
        xlsx_bytes = renderer.render(data)
    """

    def __init__(self, sheet_title: str = "Rapport"):
        self.sheet_title = sheet_title

    def render(self, data: ReportData) -> bytes:
        """
        XLSX 바이트 생성.

        Raises:
            BackendError: RENDER_FAILED
        """
        try:
            wb = Workbook()
            ws = wb.active
            ws.title = self.sheet_title

            ws["A1"] = TITLE
            ws["A1"].font = Font(bold=True, size=14)

            row = 3
            for line in data.header_lines():
                ws.cell(row=row, column=1, value=line)
                row += 1

            row = self._fill_table(ws, data, row + 1)
            row = self._fill_checklist(ws, data, row + 1)

            ws.cell(row=row + 1, column=1, value=data.total_line()).font = Font(bold=True)

            for col, width in zip("ABCDEF", (16, 16, 22, 22, 8, 14)):
                ws.column_dimensions[col].width = width

            buffer = BytesIO()
            wb.save(buffer)
            return buffer.getvalue()

        except Exception as e:
            raise BackendError(
                ErrorCodes.RENDER_FAILED,
                f"XLSX: {e}",
                job_id=data.job.id,
            ) from e

    def _fill_table(self, ws, data: ReportData, start_row: int) -> int:
        """시간 테이블 채우기. 다음 빈 행 번호 반환."""
        for col, title in enumerate(TABLE_HEADER, start=1):
            cell = ws.cell(row=start_row, column=col, value=title)
            cell.font = Font(bold=True, color="FFFFFF")
            cell.fill = HEADER_FILL

        rows = data.table_rows() or [["-"] * len(TABLE_HEADER)]
        row = start_row + 1
        for values in rows:
            for col, value in enumerate(values, start=1):
                # Min 컬럼은 숫자로
                if col == 5 and value.isdigit():
                    ws.cell(row=row, column=col, value=int(value))
                else:
                    ws.cell(row=row, column=col, value=value)
            row += 1
        return row

    def _fill_checklist(self, ws, data: ReportData, start_row: int) -> int:
        if not data.checklist:
            return start_row
        ws.cell(row=start_row, column=1, value="Checkliste").font = Font(bold=True)
        row = start_row + 1
        for label, checked in data.checklist:
            ws.cell(row=row, column=1, value="☑" if checked else "☐")
            ws.cell(row=row, column=2, value=label)
            row += 1
        return row


def render_xlsx(data: ReportData) -> bytes:
    """XLSX 리포트 생성 (간편 함수)."""
    return ExcelRenderer().render(data)
