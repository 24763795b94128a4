"""Exceptions raised by sheet operations.

Cell-local problems (division by zero, bad operands, malformed formulas) are
never raised: they are stored in the cell as :class:`~gridcalc.calc.EvalError`
values.  The exceptions below abort a whole mutation and leave the sheet
unchanged.
"""

from __future__ import annotations


class SheetError(Exception):
    """Base class for errors that reject a sheet operation."""


class InvalidAddressError(SheetError, ValueError):
    """Malformed or out-of-bounds cell address or range."""

    def __init__(self, text: str, reason: str = "invalid address") -> None:
        self.text = text
        self.reason = reason
        super().__init__(f"{reason}: {text!r}")


class FormulaSyntaxError(SheetError, ValueError):
    """Malformed formula text."""


class CycleError(SheetError, ValueError):
    """Committing the mutation would create a circular reference."""

    def __init__(self, cell: object, via: object | None = None) -> None:
        self.cell = cell
        self.via = via
        if via is None:
            message = f"Circular reference detected involving {cell}"
        else:
            message = f"Circular reference detected: {cell} depends on {via}"
        super().__init__(message)


class LockedError(SheetError):
    """Write attempted on a locked cell."""

    def __init__(self, cell: object) -> None:
        self.cell = cell
        super().__init__(f"Cell {cell} is locked")


class SheetIOError(SheetError, OSError):
    """Loading or saving a sheet failed."""
