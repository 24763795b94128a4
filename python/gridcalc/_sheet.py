"""Sheet: cell store, dependency graph and undo history behind one API.

Every mutation - single edit, batch insert, sort, format change, undo and
redo - goes through :meth:`Sheet._apply`, which validates, rewires the
dependency graph, records history, stores the new cells and recomputes all
affected formulas once each in topological order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import replace
from typing import Any

from gridcalc._address import CellAddress, CellRange, GridBounds
from gridcalc._cell import EMPTY_CELL, Alignment, Cell
from gridcalc._errors import CycleError, InvalidAddressError, LockedError
from gridcalc._undo import DEFAULT_UNDO_LIMIT, ActionKind, UndoAction, UndoLog
from gridcalc.calc._evaluator import FormulaEvaluator
from gridcalc.calc._functions import EvalError, FunctionRegistry
from gridcalc.calc._graph import DependencyGraph
from gridcalc.calc._protocol import CellDelta, RecalcResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROWS = 10
DEFAULT_MAX_COLS = 10

SCHEMA_VERSION = 1

CellRef = str | CellAddress
RangeRefLike = str | CellRange


class Sheet:
    """A bounded grid of cells with reactive formulas.

    Usage::

        sheet = Sheet(max_rows=20, max_cols=5)
        sheet.update_cell("B1", "1")
        sheet.update_cell("A1", "=SUM(B1:B3)")
        sheet["A1"].display        # "1"
        sheet.update_cell("B2", "10")
        sheet["A1"].display        # "11"
        sheet.undo()
    """

    __slots__ = (
        "bounds", "_cells", "_graph", "_evaluator", "_history", "_evaluating",
        "_find_query", "_find_matches", "_find_index",
    )

    def __init__(
        self,
        max_rows: int = DEFAULT_MAX_ROWS,
        max_cols: int = DEFAULT_MAX_COLS,
        undo_limit: int = DEFAULT_UNDO_LIMIT,
        functions: FunctionRegistry | None = None,
    ) -> None:
        self.bounds = GridBounds(max_rows, max_cols)
        # Sparse: an absent address is an empty default cell.
        self._cells: dict[CellAddress, Cell] = {}
        self._graph = DependencyGraph()
        self._evaluator = FormulaEvaluator(self.bounds, functions)
        self._history = UndoLog(undo_limit)
        self._evaluating: set[CellAddress] = set()
        self._find_query = ""
        self._find_matches: list[CellAddress] = []
        self._find_index = 0

    @property
    def max_rows(self) -> int:
        return self.bounds.max_rows

    @property
    def max_cols(self) -> int:
        return self.bounds.max_cols

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def address(self, ref: CellRef) -> CellAddress:
        """Resolve ``"A1"`` or a CellAddress, enforcing the grid bounds."""
        if isinstance(ref, CellAddress):
            if not ref.is_within(self.bounds):
                raise InvalidAddressError(ref.label, "address out of bounds")
            return ref
        return CellAddress.parse(ref, self.bounds)

    def cell_range(self, ref: RangeRefLike) -> CellRange:
        if isinstance(ref, CellRange):
            if not ref.is_within(self.bounds):
                raise InvalidAddressError(str(ref), "range out of bounds")
            return ref
        return CellRange.parse(ref, self.bounds)

    def cell(self, ref: CellRef) -> Cell:
        """Current state of a cell (a default cell if never written)."""
        return self._lookup(self.address(ref))

    def __getitem__(self, ref: CellRef) -> Cell:
        """``sheet['A1']`` -> Cell."""
        return self.cell(ref)

    def _lookup(self, address: CellAddress) -> Cell:
        return self._cells.get(address, EMPTY_CELL)

    def iter_cells(self) -> Iterator[tuple[CellAddress, Cell]]:
        """Non-default cells in row-major order."""
        for address in sorted(self._cells):
            yield address, self._cells[address]

    def iter_rows(
        self,
        min_row: int = 0,
        max_row: int | None = None,
        min_col: int = 0,
        max_col: int | None = None,
        values_only: bool = False,
    ) -> Iterator[tuple[Any, ...]]:
        """Iterate rows of the used area (zero-based, inclusive bounds)."""
        used_rows, used_cols = self.dimensions
        r_max = used_rows - 1 if max_row is None else max_row
        c_max = used_cols - 1 if max_col is None else max_col
        for r in range(min_row, r_max + 1):
            cells = (self._lookup(CellAddress(c, r)) for c in range(min_col, c_max + 1))
            if values_only:
                yield tuple(cell.value for cell in cells)
            else:
                yield tuple(cells)

    @property
    def dimensions(self) -> tuple[int, int]:
        """``(rows, columns)`` spanned by non-default cells."""
        if not self._cells:
            return (0, 0)
        return (
            max(a.row for a in self._cells) + 1,
            max(a.column for a in self._cells) + 1,
        )

    @property
    def formula_cells(self) -> list[CellAddress]:
        return [a for a, cell in self.iter_cells() if cell.is_formula]

    # ------------------------------------------------------------------
    # Dependency inspection
    # ------------------------------------------------------------------

    @property
    def graph(self) -> DependencyGraph:
        """Copy of the dependency graph."""
        return self._graph.copy()

    def dependencies_of(self, ref: CellRef) -> list[CellAddress]:
        return self._graph.dependencies_of(self.address(ref))

    def dependents_of(self, ref: CellRef) -> list[CellAddress]:
        return self._graph.dependents_of(self.address(ref))

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def update_cell(self, ref: CellRef, raw: str) -> RecalcResult:
        """Set a cell's raw text (a formula when it starts with ``=``).

        Raises LockedError or CycleError without changing anything.  A
        formula that fails to evaluate is still committed; the cell then
        holds an EvalError (see ``RecalcResult.errors``).
        """
        if not isinstance(raw, str):
            raise TypeError(f"Cell input must be str, got {type(raw).__name__}")
        address = self.address(ref)
        self._check_unlocked([address])
        return self._apply({address: Cell.from_raw(raw, self._lookup(address))}, ActionKind.EDIT)

    def clear_cell(self, ref: CellRef) -> RecalcResult:
        """Reset a cell to the default state (content and format)."""
        address = self.address(ref)
        self._check_unlocked([address])
        return self._apply({address: EMPTY_CELL}, ActionKind.CLEAR)

    def multi_insert(self, ref: RangeRefLike, raw: str) -> RecalcResult:
        """Write the same value or formula into every cell of a range."""
        block = self.cell_range(ref)
        self._check_unlocked(block)
        changes = {address: Cell.from_raw(raw, self._lookup(address)) for address in block}
        return self._apply(changes, ActionKind.MULTI_INSERT)

    def sort_range(self, ref: RangeRefLike, ascending: bool = True) -> RecalcResult:
        """Reorder whole rows of the sheet by the value in the block's first column.

        Only the block's rows move, but each moves across every column of the
        sheet so records stay together.  Numbers sort before text and compare
        numerically; rows with an empty key go last in both directions.
        Cells move with their format and formula text moves unchanged.
        """
        block = self.cell_range(ref)
        key_column = block.start.column
        span = CellRange(CellAddress(0, block.start.row), CellAddress(self.max_cols - 1, block.end.row))
        self._check_unlocked(span)
        rows = [[self._lookup(CellAddress(c, r)) for c in span.columns] for r in span.rows]
        keyed = [row for row in rows if row[key_column].value not in (None, "")]
        blanks = [row for row in rows if row[key_column].value in (None, "")]
        keyed.sort(key=lambda row: _sort_key(row[key_column]), reverse=not ascending)

        changes: dict[CellAddress, Cell] = {}
        for r_offset, row in enumerate(keyed + blanks):
            for c_offset, cell in enumerate(row):
                target = span.start.offset(c_offset, r_offset)
                if cell != self._lookup(target):
                    changes[target] = cell
        return self._apply(changes, ActionKind.SORT)

    # ------------------------------------------------------------------
    # Format and lock
    # ------------------------------------------------------------------

    def lock_cell(self, ref: CellRef) -> RecalcResult:
        address = self.address(ref)
        return self._apply({address: replace(self._lookup(address), locked=True)}, ActionKind.LOCK)

    def unlock_cell(self, ref: CellRef) -> RecalcResult:
        address = self.address(ref)
        return self._apply({address: replace(self._lookup(address), locked=False)}, ActionKind.UNLOCK)

    def set_alignment(self, ref: CellRef, alignment: str | Alignment) -> RecalcResult:
        """Align a cell left/center/right (``"l"``, ``"c"``, ``"r"`` accepted)."""
        address = self.address(ref)
        align = Alignment.coerce(alignment)
        self._check_unlocked([address])
        return self._apply({address: replace(self._lookup(address), alignment=align)}, ActionKind.ALIGN)

    def set_dimension(self, ref: CellRef, height: int | None = None, width: int | None = None) -> RecalcResult:
        """Change a cell's height and/or width (positive integers)."""
        address = self.address(ref)
        for name, value in (("height", height), ("width", width)):
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value <= 0):
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        self._check_unlocked([address])
        current = self._lookup(address)
        updated = replace(
            current,
            height=current.height if height is None else height,
            width=current.width if width is None else width,
        )
        return self._apply({address: updated}, ActionKind.DIMENSION)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def undo(self) -> RecalcResult | None:
        """Undo the most recent mutation; None when there is nothing to undo."""
        return self._replay(self._history.undo)

    def redo(self) -> RecalcResult | None:
        """Redo the most recently undone mutation; None when there is none."""
        return self._replay(self._history.redo)

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def history(self) -> UndoLog:
        return self._history

    def _replay(self, step: Any) -> RecalcResult | None:
        outcome: list[RecalcResult] = []

        def restore(action: UndoAction) -> UndoAction:
            inverse = UndoAction(action.kind, {a: self._lookup(a) for a in action.cells})
            outcome.append(self._apply(dict(action.cells), action.kind, record=False))
            return inverse

        if step(restore) is None:
            return None
        return outcome[0]

    # ------------------------------------------------------------------
    # Find
    # ------------------------------------------------------------------

    def find(self, query: str) -> list[CellAddress]:
        """Cells whose display text contains *query*, scanned column by column."""
        self._find_query = query
        self._find_index = 0
        if not query:
            self._find_matches = []
        else:
            self._find_matches = sorted(
                (a for a, cell in self._cells.items() if query in cell.display),
                key=lambda a: (a.column, a.row),
            )
        return list(self._find_matches)

    def find_next(self) -> CellAddress | None:
        if not self._find_matches:
            return None
        self._find_index = (self._find_index + 1) % len(self._find_matches)
        return self._find_matches[self._find_index]

    def find_prev(self) -> CellAddress | None:
        if not self._find_matches:
            return None
        self._find_index = (self._find_index - 1) % len(self._find_matches)
        return self._find_matches[self._find_index]

    @property
    def find_matches(self) -> list[CellAddress]:
        return list(self._find_matches)

    @property
    def current_match(self) -> CellAddress | None:
        if not self._find_matches:
            return None
        return self._find_matches[self._find_index]

    # ------------------------------------------------------------------
    # Persistence schema
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Logical document: bounds plus every non-default cell."""
        return {
            "version": SCHEMA_VERSION,
            "max_rows": self.max_rows,
            "max_cols": self.max_cols,
            "cells": [
                {
                    "address": address.label,
                    "raw": cell.raw,
                    "formula": cell.formula,
                    "locked": cell.locked,
                    "alignment": cell.alignment.value,
                    "width": cell.width,
                    "height": cell.height,
                }
                for address, cell in self.iter_cells()
            ],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], undo_limit: int = DEFAULT_UNDO_LIMIT) -> Sheet:
        """Rebuild a sheet from :meth:`to_dict` output.

        The dependency graph is rebuilt by re-evaluating every formula in one
        batch; cyclic input raises CycleError.
        """
        try:
            sheet = cls(int(data["max_rows"]), int(data["max_cols"]), undo_limit=undo_limit)
            changes: dict[CellAddress, Cell] = {}
            for item in data.get("cells", ()):
                address = sheet.address(item["address"])
                template = Cell(
                    locked=bool(item.get("locked", False)),
                    alignment=Alignment.coerce(item.get("alignment", Alignment.CENTER)),
                    width=int(item.get("width", EMPTY_CELL.width)),
                    height=int(item.get("height", EMPTY_CELL.height)),
                )
                changes[address] = Cell.from_raw(str(item.get("raw", "")), template)
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed sheet data: {e}") from e
        sheet._apply(changes, ActionKind.LOAD, record=False)
        return sheet

    # ------------------------------------------------------------------
    # Commit path
    # ------------------------------------------------------------------

    def _check_unlocked(self, addresses: Iterable[CellAddress]) -> None:
        for address in addresses:
            if self._lookup(address).locked:
                logger.info("Rejected write to locked cell %s", address)
                raise LockedError(address)

    def _apply(self, changes: Mapping[CellAddress, Cell], kind: ActionKind, record: bool = True) -> RecalcResult:
        """Commit *changes* and propagate.

        Either raises (CycleError) with the sheet untouched, or commits the
        whole batch, records one history entry and recomputes every affected
        formula exactly once.
        """
        before = {address: self._lookup(address) for address in changes}
        if all(before[a] == cell for a, cell in changes.items()):
            logger.debug("%s: no change", kind.value)
            return RecalcResult(kind=kind.value, edited=tuple(changes), deltas=())

        self._rewire(changes)
        if record:
            self._history.push(UndoAction(kind, before))
        for address, cell in changes.items():
            self._store(address, cell)
        logger.debug("%s: committed %d cell(s)", kind.value, len(changes))

        order = self._graph.topological_order(*changes, include_sources=True)
        old_values = {address: cell.value for address, cell in before.items()}
        recalculated: list[CellAddress] = []
        for address in order:
            cell = self._lookup(address)
            if not cell.is_formula:
                continue
            old_values.setdefault(address, cell.value)
            self._evaluate_cell(address, cell)
            recalculated.append(address)
        logger.debug("%s: recalculated %s", kind.value, [a.label for a in recalculated])

        deltas: list[CellDelta] = []
        for address in order:
            cell = self._lookup(address)
            old_value = old_values.get(address)
            if _values_differ(old_value, cell.value):
                deltas.append(CellDelta(address, old_value, cell.value, cell.formula))
        return RecalcResult(
            kind=kind.value,
            edited=tuple(changes),
            deltas=tuple(deltas),
            recalculated=tuple(recalculated),
            max_chain_depth=self._graph.max_depth(changes),
        )

    def _rewire(self, changes: Mapping[CellAddress, Cell]) -> None:
        """Replace the outgoing edges of every changed cell.

        All old edges of the batch are dropped first, then the new ones are
        added cell by cell after a cycle check.  On a cycle the graph is put
        back exactly and CycleError is raised.
        """
        new_edges = {
            address: self._evaluator.references(cell.formula) if cell.formula is not None else ()
            for address, cell in changes.items()
        }
        removed = {address: self._graph.remove_dependencies(address) for address in changes}
        added: list[CellAddress] = []
        try:
            for address, refs in new_edges.items():
                if refs and self._graph.would_cycle(address, refs):
                    via = next(r for r in refs if self._graph.would_cycle(address, (r,)))
                    logger.info("Rejected circular reference %s -> %s", address, via)
                    raise CycleError(address, via)
                added.append(address)
                for dep in refs:
                    self._graph.add_dependency(address, dep)
        except CycleError:
            for address in added:
                self._graph.remove_dependencies(address)
            for address, deps in removed.items():
                for dep in deps:
                    self._graph.add_dependency(address, dep)
            raise

    def _store(self, address: CellAddress, cell: Cell) -> None:
        if cell.is_default:
            self._cells.pop(address, None)
        else:
            self._cells[address] = cell

    def _evaluate_cell(self, address: CellAddress, cell: Cell) -> None:
        """Recompute one formula cell from its neighbours' current values."""
        if address in self._evaluating:
            raise CycleError(address)
        self._evaluating.add(address)
        try:
            result = self._evaluator.evaluate(cell.formula or "", self._lookup)
        finally:
            self._evaluating.discard(address)
        if result.error is not None:
            logger.debug("%s evaluates to %s", address, result.error)
        self._cells[address] = replace(cell, value=result.value)

    def __repr__(self) -> str:
        return f"<Sheet {self.max_rows}x{self.max_cols} cells={len(self._cells)}>"


def _sort_key(cell: Cell) -> tuple[int, float, str]:
    value = cell.value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, float(value), "")
    if isinstance(value, EvalError):
        return (2, 0.0, value.code)
    return (1, 0.0, str(value))


def _values_differ(a: Any, b: Any) -> bool:
    """Check if two cell values differ (1 and 1.0 are the same value)."""
    if a is None and b is None:
        return False
    if a is None or b is None:
        return True
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return float(a) != float(b)
    return type(a) is not type(b) or a != b
