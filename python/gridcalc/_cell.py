"""Cell value/format/lock state."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, replace
from typing import Any

DEFAULT_WIDTH = 5
DEFAULT_HEIGHT = 1

FORMULA_SIGIL = "="

_INT_RE = re.compile(r"[+-]?\d+")


class Alignment(str, enum.Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"

    @classmethod
    def coerce(cls, value: str | Alignment) -> Alignment:
        """Accept an Alignment, its value, its name, or the one-letter form."""
        if isinstance(value, Alignment):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if text in (member.value, member.value[0], member.name.lower()):
                return member
        raise ValueError(f"Unknown alignment: {value!r}")


def parse_literal(raw: str) -> Any:
    """Value of non-formula input: int, float, text, or None when empty."""
    text = raw.strip()
    if not text:
        return None
    if _INT_RE.fullmatch(text):
        return int(text)
    try:
        num = float(text)
    except ValueError:
        return raw
    # "nan"/"inf" stay text
    if num != num or num in (float("inf"), float("-inf")):
        return raw
    return num


def format_value(value: Any) -> str:
    """Display text for an evaluated value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


@dataclass(frozen=True)
class Cell:
    """State held at one address.

    ``raw`` is exactly what the user typed; ``formula`` is the formula body
    (without the ``=`` sigil) when ``raw`` is a formula; ``value`` is the
    last evaluation result, possibly an ``EvalError``.
    """

    raw: str = ""
    value: Any = None
    formula: str | None = None
    locked: bool = False
    alignment: Alignment = Alignment.CENTER
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Cell dimensions must be positive, got ({self.height}, {self.width})")

    @classmethod
    def from_raw(cls, raw: str, template: Cell | None = None) -> Cell:
        """Build a cell for *raw* input, keeping the format of *template*.

        Formula cells start with ``value=None``; the sheet fills in the value
        during recalculation.
        """
        base = template if template is not None else EMPTY_CELL
        if raw.startswith(FORMULA_SIGIL):
            return replace(base, raw=raw, formula=raw[len(FORMULA_SIGIL):], value=None)
        return replace(base, raw=raw, formula=None, value=parse_literal(raw))

    @property
    def is_formula(self) -> bool:
        return self.formula is not None

    @property
    def is_empty(self) -> bool:
        return not self.raw

    @property
    def is_default(self) -> bool:
        return self == EMPTY_CELL

    @property
    def display(self) -> str:
        return format_value(self.value)

    def render(self) -> str:
        """``display`` truncated to ``width`` and padded by ``alignment``."""
        width = self.width
        text = self.display
        if len(text) > width:
            text = f"{text[:width - 2]}.." if width >= 3 else "." * width
        if self.alignment is Alignment.LEFT:
            return text.ljust(width)
        if self.alignment is Alignment.RIGHT:
            return text.rjust(width)
        padding = width - len(text)
        left = padding // 2
        return " " * left + text + " " * (padding - left)


EMPTY_CELL = Cell()
