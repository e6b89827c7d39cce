"""
Spreadsheet → delimited text conversion.

Default implementation of the ``sheetToDelimitedText`` collaborator: the
first worksheet of an ``.xlsx`` workbook is rendered as comma-separated
text so the structural parser can treat it exactly like a CSV export.

Cell rendering:
- empty cells become empty fields
- dates / datetimes become ISO dates (time kept only when non-midnight)
- integral floats lose their ``.0`` (Excel stores every number as float)
"""

from __future__ import annotations

import csv
import datetime as dt
from io import BytesIO, StringIO
from typing import Any

import openpyxl

from statement_ingest.errors import UnreadableSource
from statement_ingest.logging_setup import get_logger

logger = get_logger("spreadsheet")


def _render_cell(val: Any) -> str:
    if val is None:
        return ""
    if isinstance(val, dt.datetime):
        if val.time() == dt.time(0, 0):
            return val.date().isoformat()
        return val.isoformat(sep=" ")
    if isinstance(val, dt.date):
        return val.isoformat()
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val).strip()


def sheet_to_delimited_text(content: bytes, delimiter: str = ",") -> str:
    """Render the first worksheet of an ``.xlsx`` workbook as delimited text.

    Raises
    ------
    UnreadableSource
        The bytes are not a readable workbook.
    """
    try:
        wb = openpyxl.load_workbook(BytesIO(content), read_only=True, data_only=True)
    except Exception as exc:
        raise UnreadableSource(f"Spreadsheet could not be opened: {exc}") from exc

    try:
        if not wb.sheetnames:
            raise UnreadableSource("Workbook has no worksheets")
        sheet_name = wb.sheetnames[0]
        ws = wb[sheet_name]

        buf = StringIO()
        writer = csv.writer(buf, delimiter=delimiter, lineterminator="\n")
        rows = 0
        # read_only sheets parse their XML lazily, so damage surfaces here
        for row in ws.iter_rows(values_only=True):
            cells = [_render_cell(v) for v in row]
            if not any(cells):
                continue
            writer.writerow(cells)
            rows += 1
    except UnreadableSource:
        raise
    except Exception as exc:
        raise UnreadableSource(f"Spreadsheet could not be read: {exc}") from exc
    finally:
        wb.close()

    logger.info("Converted sheet %r: %d non-empty rows", sheet_name, rows)
    return buf.getvalue()
