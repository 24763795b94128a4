"""Cell addresses: ``"A1"`` notation <-> zero-based ``(column, row)`` pairs."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

from gridcalc._errors import InvalidAddressError

MAX_ROWS_LIMIT = 999
MAX_COLS_LIMIT = 18278  # ZZZ

# Letters then a row number without leading zeros.
_ADDRESS_RE = re.compile(r"([A-Za-z]+)([1-9][0-9]*)")


def column_letters(column: int) -> str:
    """Zero-based column index -> letters (0 -> "A", 25 -> "Z", 26 -> "AA")."""
    if column < 0:
        raise ValueError(f"Negative column index: {column}")
    letters = ""
    column += 1
    while column > 0:
        column, remainder = divmod(column - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def column_index(letters: str) -> int:
    """Column letters -> zero-based index ("A" -> 0, "AA" -> 26)."""
    if not letters or not letters.isascii() or not letters.isalpha():
        raise ValueError(f"Invalid column letters: {letters!r}")
    index = 0
    for char in letters.upper():
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index - 1


@dataclass(frozen=True)
class GridBounds:
    """Fixed size of a sheet."""

    max_rows: int
    max_cols: int

    def __post_init__(self) -> None:
        if not 1 <= self.max_rows <= MAX_ROWS_LIMIT:
            raise ValueError(f"max_rows must be in 1..{MAX_ROWS_LIMIT}, got {self.max_rows}")
        if not 1 <= self.max_cols <= MAX_COLS_LIMIT:
            raise ValueError(f"max_cols must be in 1..{MAX_COLS_LIMIT}, got {self.max_cols}")

    def contains(self, column: int, row: int) -> bool:
        return 0 <= column < self.max_cols and 0 <= row < self.max_rows


@dataclass(frozen=True, order=True)
class CellAddress:
    """Zero-based cell position.  Ordering is row-major."""

    row: int
    column: int

    def __init__(self, column: int, row: int) -> None:
        if column < 0 or row < 0:
            raise ValueError(f"Negative cell index: ({column}, {row})")
        object.__setattr__(self, "column", column)
        object.__setattr__(self, "row", row)

    @classmethod
    def parse(cls, text: str, bounds: GridBounds | None = None) -> CellAddress:
        """Parse ``"B12"`` (case-insensitive).

        Raises InvalidAddressError for malformed text or, when *bounds* is
        given, for an address outside the grid.
        """
        m = _ADDRESS_RE.fullmatch(text.strip()) if isinstance(text, str) else None
        if m is None:
            raise InvalidAddressError(str(text))
        address = cls(column_index(m.group(1)), int(m.group(2)) - 1)
        if bounds is not None and not address.is_within(bounds):
            raise InvalidAddressError(text.strip(), "address out of bounds")
        return address

    @property
    def label(self) -> str:
        return f"{column_letters(self.column)}{self.row + 1}"

    def is_within(self, bounds: GridBounds) -> bool:
        return bounds.contains(self.column, self.row)

    def offset(self, columns: int = 0, rows: int = 0) -> CellAddress:
        return CellAddress(self.column + columns, self.row + rows)

    def __str__(self) -> str:
        return self.label

    def __repr__(self) -> str:
        return f"CellAddress({self.label})"


@dataclass(frozen=True)
class CellRange:
    """Rectangular block of cells with normalised corners."""

    start: CellAddress
    end: CellAddress

    def __post_init__(self) -> None:
        top = min(self.start.row, self.end.row)
        bottom = max(self.start.row, self.end.row)
        left = min(self.start.column, self.end.column)
        right = max(self.start.column, self.end.column)
        object.__setattr__(self, "start", CellAddress(left, top))
        object.__setattr__(self, "end", CellAddress(right, bottom))

    @classmethod
    def parse(cls, text: str, bounds: GridBounds | None = None) -> CellRange:
        """Parse ``"A1:B3"``; surrounding brackets (``"[A1:B3]"``) are allowed."""
        clean = text.strip()
        if clean.startswith("[") and clean.endswith("]"):
            clean = clean[1:-1]
        parts = clean.split(":")
        if len(parts) != 2:
            raise InvalidAddressError(text, "invalid range")
        return cls(CellAddress.parse(parts[0], bounds), CellAddress.parse(parts[1], bounds))

    @property
    def rows(self) -> range:
        return range(self.start.row, self.end.row + 1)

    @property
    def columns(self) -> range:
        return range(self.start.column, self.end.column + 1)

    @property
    def shape(self) -> tuple[int, int]:
        """``(n_rows, n_cols)``."""
        return len(self.rows), len(self.columns)

    def is_within(self, bounds: GridBounds) -> bool:
        return self.start.is_within(bounds) and self.end.is_within(bounds)

    def __iter__(self) -> Iterator[CellAddress]:
        for row in self.rows:
            for column in self.columns:
                yield CellAddress(column, row)

    def __len__(self) -> int:
        n_rows, n_cols = self.shape
        return n_rows * n_cols

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, CellAddress):
            return False
        return address.row in self.rows and address.column in self.columns

    def __str__(self) -> str:
        return f"{self.start.label}:{self.end.label}"
