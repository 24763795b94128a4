"""Result dataclasses returned by sheet mutations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from gridcalc._address import CellAddress
from gridcalc.calc._functions import EvalError


@dataclass(frozen=True)
class CellDelta:
    """A single cell's value change from a mutation."""

    address: CellAddress
    old_value: Any
    new_value: Any
    formula: str | None = None  # the formula that produced new_value

    @property
    def error(self) -> EvalError | None:
        return self.new_value if isinstance(self.new_value, EvalError) else None


@dataclass(frozen=True)
class RecalcResult:
    """Outcome of one committed mutation and its propagation."""

    kind: str
    edited: tuple[CellAddress, ...]  # cells written directly
    deltas: tuple[CellDelta, ...]  # cells whose value changed
    recalculated: tuple[CellAddress, ...] = ()  # formula cells evaluated, in order
    max_chain_depth: int = 0  # longest dependency chain from the edited cells

    @property
    def errors(self) -> tuple[CellDelta, ...]:
        """Deltas whose new value is an evaluation error."""
        return tuple(d for d in self.deltas if d.error is not None)

    @property
    def propagated_cells(self) -> int:
        """Dependents (not edited directly) whose value changed."""
        edited = set(self.edited)
        return sum(1 for d in self.deltas if d.address not in edited)

    def delta_for(self, address: CellAddress) -> CellDelta | None:
        for delta in self.deltas:
            if delta.address == address:
                return delta
        return None
