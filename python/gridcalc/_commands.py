"""Text command surface over a Sheet.

Each command line maps to one sheet operation and produces a one-line
status message.  Rejected operations never raise; they are reported as
``ERROR: ...`` messages.
"""

from __future__ import annotations

import logging
import re

from gridcalc._address import CellAddress
from gridcalc._errors import SheetError
from gridcalc._io import export_pdf, export_xlsx, load_json, save_json
from gridcalc._sheet import Sheet

logger = logging.getLogger(__name__)

_DIM_RE = re.compile(r"dim(?:\s+(?P<cell>[^\s(]+))?\s*\((?P<height>[^,)]*),(?P<width>[^)]*)\)")


class CommandProcessor:
    """Parses and runs commands such as ``i A1 =B1+1`` or ``sort A1:B5 0``.

    Keeps a cursor (the cell ``lock``/``align``/``dim`` act on when no cell
    is named) and replaces its sheet on ``load``.
    """

    def __init__(self, sheet: Sheet | None = None) -> None:
        self.sheet = sheet if sheet is not None else Sheet()
        self.cursor = CellAddress(0, 0)
        self.running = True
        self.status = ""

    def execute(self, line: str) -> str:
        """Run one command line; returns (and stores) the status message."""
        cmd = line.strip()
        if not cmd:
            self.status = ""
            return self.status
        name, _, rest = cmd.partition(" ")
        rest = rest.strip()
        logger.debug("Command %r", cmd)
        try:
            self.status = self._dispatch(name, rest, cmd)
        except SheetError as e:
            self.status = f"ERROR: {e}"
        except ValueError as e:
            self.status = f"ERROR: {e}"
        return self.status

    def _dispatch(self, name: str, rest: str, cmd: str) -> str:
        if name == "q":
            self.running = False
            return "BYE"
        if name == "i":
            return self._insert(rest)
        if name == "j":
            if not rest:
                return "INVALID JUMP COMMAND"
            self.cursor = self.sheet.address(rest)
            return f"AT {self.cursor}"
        if name == "mi":
            parts = rest.split(None, 1)
            if len(parts) != 2:
                return "INVALID MULTI-INSERT COMMAND"
            self.sheet.multi_insert(parts[0], parts[1])
            return "MULTIPLE INSERTS"
        if name == "sort":
            parts = rest.split()
            if len(parts) != 2 or parts[1] not in ("0", "1"):
                return "INVALID SORT COMMAND"
            self.sheet.sort_range(parts[0], ascending=parts[1] == "1")
            return "ROW SORT APPLIED"
        if name in ("align", "allign"):
            parts = rest.split()
            if len(parts) == 1:
                self.sheet.set_alignment(self.cursor, parts[0])
            elif len(parts) == 2:
                self.sheet.set_alignment(parts[0], parts[1])
            else:
                return "INVALID ALIGNMENT COMMAND"
            return "ALIGNMENT CHANGED"
        if name.startswith("dim"):
            return self._dimension(cmd)
        if name == "lock":
            self.sheet.lock_cell(rest or self.cursor)
            return "CELL LOCKED"
        if name == "unlock":
            self.sheet.unlock_cell(rest or self.cursor)
            return "CELL UNLOCKED"
        if name == "find":
            return self._find(rest)
        if name in ("next", "prev"):
            match = self.sheet.find_next() if name == "next" else self.sheet.find_prev()
            if match is None:
                return "NO ACTIVE SEARCH"
            self.cursor = match
            return f"MATCH AT {match}"
        if name == "undo":
            return "NOTHING TO UNDO" if self.sheet.undo() is None else "UNDO APPLIED"
        if name == "redo":
            return "NOTHING TO REDO" if self.sheet.redo() is None else "REDO APPLIED"
        if name.startswith("saveas_"):
            return self._save(name[len("saveas_"):], rest)
        if name == "load":
            if not rest:
                return "INVALID LOAD COMMAND"
            self.sheet = load_json(rest, undo_limit=self.sheet.history.capacity)
            self.cursor = CellAddress(0, 0)
            return "FILE LOADED"
        return "INVALID COMMAND"

    def _insert(self, rest: str) -> str:
        parts = rest.split(None, 1)
        if len(parts) != 2:
            return "INVALID INSERT COMMAND - use: i <cell> <value>"
        address = self.sheet.address(parts[0])
        result = self.sheet.update_cell(address, parts[1])
        self.cursor = address
        cell = self.sheet.cell(address)
        if result.errors:
            logger.debug("Insert into %s left errors: %s", address, [str(d.address) for d in result.errors])
        return f"{address} = {cell.display}"

    def _dimension(self, cmd: str) -> str:
        m = _DIM_RE.fullmatch(cmd)
        if m is None:
            return "INVALID DIMENSION FORMAT - use: dim [cell] (h,w)"
        height_text, width_text = m.group("height").strip(), m.group("width").strip()
        if (height_text and not height_text.isdigit()) or (width_text and not width_text.isdigit()):
            return "INVALID DIMENSION COMMAND"
        self.sheet.set_dimension(
            m.group("cell") or self.cursor,
            height=int(height_text) if height_text else None,
            width=int(width_text) if width_text else None,
        )
        return "DIMENSION CHANGED"

    def _find(self, query: str) -> str:
        if not query:
            return "INVALID FIND COMMAND"
        matches = self.sheet.find(query)
        if not matches:
            return "NO MATCHES FOUND"
        self.cursor = matches[0]
        return f"{len(matches)} MATCHES FOUND"

    def _save(self, fmt: str, path: str) -> str:
        if not path:
            return "USAGE: saveas_<format> <filename>"
        try:
            if fmt == "json":
                save_json(self.sheet, path)
            elif fmt == "xlsx":
                export_xlsx(self.sheet, path)
            elif fmt == "pdf":
                export_pdf(self.sheet, path)
                return f"PDF SAVED TO {path}"
            else:
                return "UNSUPPORTED FORMAT - use saveas_json, saveas_xlsx or saveas_pdf"
        except ImportError as e:
            return f"SAVE ERROR: {e.name or e} is not installed (pip install gridcalc[export])"
        return f"FILE SAVED TO {path}"
