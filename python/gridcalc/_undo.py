"""Bounded undo/redo history of sheet mutations."""

from __future__ import annotations

import enum
import logging
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable

from gridcalc._address import CellAddress
from gridcalc._cell import Cell

logger = logging.getLogger(__name__)

DEFAULT_UNDO_LIMIT = 3


class ActionKind(str, enum.Enum):
    EDIT = "edit"
    CLEAR = "clear"
    MULTI_INSERT = "multi_insert"
    SORT = "sort"
    LOCK = "lock"
    UNLOCK = "unlock"
    ALIGN = "align"
    DIMENSION = "dimension"
    LOAD = "load"


@dataclass(frozen=True)
class UndoAction:
    """Prior state of every cell one logical operation touched.

    Single-cell edits and batch operations share this record: restoring it
    puts back each listed cell exactly as it was.
    """

    kind: ActionKind
    cells: Mapping[CellAddress, Cell] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "cells", MappingProxyType(dict(self.cells)))

    @property
    def addresses(self) -> tuple[CellAddress, ...]:
        return tuple(self.cells)


Restore = Callable[[UndoAction], UndoAction]


class UndoLog:
    """Two bounded stacks; the oldest undo entry is evicted when full.

    ``undo``/``redo`` take a *restore* callback that applies an action to
    the sheet and returns the inverse action (the state it replaced).
    """

    __slots__ = ("_undo", "_redo", "capacity")

    def __init__(self, capacity: int = DEFAULT_UNDO_LIMIT) -> None:
        if capacity < 1:
            raise ValueError(f"Undo capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._undo: deque[UndoAction] = deque(maxlen=capacity)
        self._redo: deque[UndoAction] = deque(maxlen=capacity)

    def push(self, action: UndoAction) -> None:
        """Record a new forward action; clears the redo history."""
        if len(self._undo) == self.capacity:
            logger.debug("Undo history full, dropping oldest %s entry", self._undo[0].kind.value)
        self._undo.append(action)
        self._redo.clear()

    def undo(self, restore: Restore) -> UndoAction | None:
        """Undo the most recent action; returns it, or None if there is none."""
        return self._transfer(self._undo, self._redo, restore)

    def redo(self, restore: Restore) -> UndoAction | None:
        """Re-apply the most recently undone action."""
        return self._transfer(self._redo, self._undo, restore)

    @staticmethod
    def _transfer(source: deque[UndoAction], target: deque[UndoAction], restore: Restore) -> UndoAction | None:
        if not source:
            return None
        action = source.pop()
        try:
            inverse = restore(action)
        except Exception:
            source.append(action)
            raise
        target.append(inverse)
        return action

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def peek_undo(self) -> UndoAction | None:
        return self._undo[-1] if self._undo else None

    def peek_redo(self) -> UndoAction | None:
        return self._redo[-1] if self._redo else None
