"""gridcalc - a bounded spreadsheet with reactive formulas.

Usage::

    from gridcalc import Sheet

    sheet = Sheet(max_rows=20, max_cols=10)
    sheet.update_cell("A1", "1")
    sheet.update_cell("A2", "2")
    sheet.update_cell("B1", "=SUM(A1:A2)*2")
    print(sheet["B1"].display)     # "6"

    sheet.update_cell("A2", "6")   # B1 recomputes to 14
    sheet.undo()                   # B1 back to 6
"""

from gridcalc._address import CellAddress, CellRange, GridBounds, column_index, column_letters
from gridcalc._cell import Alignment, Cell
from gridcalc._commands import CommandProcessor
from gridcalc._errors import (
    CycleError,
    FormulaSyntaxError,
    InvalidAddressError,
    LockedError,
    SheetError,
    SheetIOError,
)
from gridcalc._io import export_pdf, export_xlsx, load_json, save_json
from gridcalc._sheet import Sheet
from gridcalc._undo import ActionKind, UndoAction, UndoLog
from gridcalc.calc import CellDelta, EvalError, RecalcResult

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ActionKind",
    "Alignment",
    "Cell",
    "CellAddress",
    "CellDelta",
    "CellRange",
    "CommandProcessor",
    "CycleError",
    "EvalError",
    "FormulaSyntaxError",
    "GridBounds",
    "InvalidAddressError",
    "LockedError",
    "RecalcResult",
    "Sheet",
    "SheetError",
    "SheetIOError",
    "UndoAction",
    "UndoLog",
    "column_index",
    "column_letters",
    "export_pdf",
    "export_xlsx",
    "load_json",
    "save_json",
]
