"""Saving, loading and exporting sheets.

JSON is the native format.  XLSX (openpyxl) and PDF (reportlab) exports
need the ``export`` extra; both libraries are imported on first use.
"""

from __future__ import annotations

import json
import logging
import math
import os
from typing import Any

from gridcalc._address import column_letters
from gridcalc._cell import Alignment
from gridcalc._errors import SheetIOError
from gridcalc._sheet import Sheet
from gridcalc._undo import DEFAULT_UNDO_LIMIT

logger = logging.getLogger(__name__)

PathLike = str | os.PathLike[str]

# PDF layout (millimetres, A4 portrait)
PDF_MAX_COLUMNS = 10
PDF_MARGIN_TOP = 20.0
PDF_MARGIN_BOTTOM = 20.0
PDF_MARGIN_LEFT = 10.0
PDF_CELL_WIDTH = 19.0
PDF_ROW_HEIGHT = 10.0
PDF_FONT = "Helvetica"
PDF_FONT_SIZE = 10

_XLSX_ALIGN = {
    Alignment.LEFT: "left",
    Alignment.CENTER: "center",
    Alignment.RIGHT: "right",
}


def save_json(sheet: Sheet, path: PathLike) -> None:
    """Write ``sheet.to_dict()`` as pretty-printed JSON."""
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(sheet.to_dict(), f, indent=2)
    except OSError as e:
        raise SheetIOError(f"Cannot save {os.fspath(path)}: {e}") from e
    logger.debug("Saved sheet to %s", path)


def load_json(path: PathLike, undo_limit: int = DEFAULT_UNDO_LIMIT) -> Sheet:
    """Read a sheet written by :func:`save_json`.

    Every formula is re-evaluated and the dependency graph rebuilt; the
    loaded sheet starts with empty undo history.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data: Any = json.load(f)
    except OSError as e:
        raise SheetIOError(f"Cannot load {os.fspath(path)}: {e}") from e
    except json.JSONDecodeError as e:
        raise SheetIOError(f"Invalid JSON in {os.fspath(path)}: {e}") from e
    if not isinstance(data, dict):
        raise SheetIOError(f"Invalid sheet document in {os.fspath(path)}")
    try:
        sheet = Sheet.from_dict(data, undo_limit=undo_limit)
    except ValueError as e:
        raise SheetIOError(f"Cannot load {os.fspath(path)}: {e}") from e
    logger.debug("Loaded %r from %s", sheet, path)
    return sheet


def export_xlsx(sheet: Sheet, path: PathLike, title: str = "Sheet") -> None:
    """Write the sheet to an Excel workbook.

    Formula cells are written as ``=`` formulas so Excel recomputes them;
    alignment and column widths carry over.
    """
    from openpyxl import Workbook
    from openpyxl.styles import Alignment as XlsxAlignment

    wb = Workbook()
    ws = wb.active
    ws.title = title
    widths: dict[int, int] = {}
    for address, cell in sheet.iter_cells():
        if cell.is_formula:
            value: Any = f"={cell.formula}"
        else:
            value = cell.value
        target = ws.cell(row=address.row + 1, column=address.column + 1, value=value)
        target.alignment = XlsxAlignment(horizontal=_XLSX_ALIGN[cell.alignment])
        widths[address.column] = max(widths.get(address.column, 0), cell.width)
    for column, width in widths.items():
        ws.column_dimensions[column_letters(column)].width = width
    try:
        wb.save(os.fspath(path))
    except OSError as e:
        raise SheetIOError(f"Cannot export {os.fspath(path)}: {e}") from e
    logger.debug("Exported %d cell(s) to %s", len(widths), path)


def export_pdf(sheet: Sheet, path: PathLike) -> int:
    """Render the grid's display values to an A4 PDF; returns the page count.

    At most the first ten columns are drawn.  Each page repeats the column
    headers and carries a ``Page i of n`` footer.
    """
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.units import mm
    from reportlab.pdfgen import canvas

    page_width, page_height = A4
    content_height = page_height / mm - PDF_MARGIN_TOP - PDF_MARGIN_BOTTOM
    rows_per_page = int(content_height // PDF_ROW_HEIGHT) - 1  # header row
    n_cols = min(sheet.max_cols, PDF_MAX_COLUMNS)
    page_count = max(1, math.ceil(sheet.max_rows / rows_per_page))

    c = canvas.Canvas(os.fspath(path), pagesize=A4)
    c.setTitle("Spreadsheet Export")
    for page in range(page_count):
        c.setFont(PDF_FONT, PDF_FONT_SIZE)
        y = page_height - PDF_MARGIN_TOP * mm
        x = (PDF_MARGIN_LEFT + PDF_CELL_WIDTH) * mm
        for column in range(n_cols):
            c.drawString(x, y, column_letters(column))
            x += PDF_CELL_WIDTH * mm
        y -= PDF_ROW_HEIGHT * mm

        first_row = page * rows_per_page
        for row in range(first_row, min(first_row + rows_per_page, sheet.max_rows)):
            c.drawString(PDF_MARGIN_LEFT * mm, y, str(row + 1))
            x = (PDF_MARGIN_LEFT + PDF_CELL_WIDTH) * mm
            for values in sheet.iter_rows(min_row=row, max_row=row, max_col=n_cols - 1):
                for cell in values:
                    c.drawString(x, y, cell.display)
                    x += PDF_CELL_WIDTH * mm
            y -= PDF_ROW_HEIGHT * mm

        c.drawCentredString(page_width / 2, PDF_MARGIN_BOTTOM / 2 * mm, f"Page {page + 1} of {page_count}")
        c.showPage()
    try:
        c.save()
    except OSError as e:
        raise SheetIOError(f"Cannot export {os.fspath(path)}: {e}") from e
    logger.debug("Exported %d page(s) to %s", page_count, path)
    return page_count
