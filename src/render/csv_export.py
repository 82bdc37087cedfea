"""
CSV 렌더러: 시간 테이블 + TOTAL 행.

Excel(de-CH) 에서 바로 열리도록 ';' 구분자 + UTF-8 BOM.
"""

import csv
from io import StringIO

from src.core.clock import fmt_minutes

from .report import TABLE_HEADER, ReportData

DELIMITER = ";"


def render_csv(data: ReportData) -> bytes:
    buffer = StringIO()
    writer = csv.writer(buffer, delimiter=DELIMITER, lineterminator="\r\n")

    writer.writerow(["Auftrag", data.job.title])
    writer.writerow(["Kontrollschild", data.job.plate or ""])
    writer.writerow([])
    writer.writerow(TABLE_HEADER)
    writer.writerows(data.table_rows())
    writer.writerow(["TOTAL", "", "", "", str(data.totals.total), fmt_minutes(data.totals.total)])

    return buffer.getvalue().encode("utf-8-sig")
