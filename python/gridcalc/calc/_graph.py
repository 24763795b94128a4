"""Dependency graph between cells with cycle checks and propagation order."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Iterator

from gridcalc._address import CellAddress
from gridcalc._errors import CycleError

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Tracks which cells read which.

    ``dependencies[A]`` holds the cells A's formula reads from and
    ``dependents[A]`` the cells whose formula reads A; the two maps are kept
    exact inverses.  Edge sets are dicts used as insertion-ordered sets so
    traversal order (and therefore propagation order) is reproducible.
    All traversals use an explicit stack.
    """

    __slots__ = ("dependencies", "dependents")

    def __init__(self) -> None:
        # cell -> cells it reads from
        self.dependencies: dict[CellAddress, dict[CellAddress, None]] = {}
        # cell -> cells that read from it (reverse edges)
        self.dependents: dict[CellAddress, dict[CellAddress, None]] = {}

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def add_dependency(self, dependent: CellAddress, dependency: CellAddress) -> None:
        """Record that *dependent* reads *dependency*."""
        self.dependencies.setdefault(dependent, {})[dependency] = None
        self.dependents.setdefault(dependency, {})[dependent] = None

    def remove_dependencies(self, of: CellAddress) -> list[CellAddress]:
        """Drop all outgoing edges of *of*; returns the removed dependencies."""
        deps = self.dependencies.pop(of, {})
        for dep in deps:
            readers = self.dependents.get(dep)
            if readers is None:
                continue
            readers.pop(of, None)
            if not readers:
                del self.dependents[dep]
        return list(deps)

    def set_dependencies(self, dependent: CellAddress, dependencies: Iterable[CellAddress]) -> None:
        """Replace the outgoing edges of *dependent*."""
        self.remove_dependencies(dependent)
        for dep in dependencies:
            self.add_dependency(dependent, dep)

    def dependencies_of(self, cell: CellAddress) -> list[CellAddress]:
        return list(self.dependencies.get(cell, ()))

    def dependents_of(self, cell: CellAddress) -> list[CellAddress]:
        return list(self.dependents.get(cell, ()))

    def edges(self) -> Iterator[tuple[CellAddress, CellAddress]]:
        """``(dependent, dependency)`` pairs from the forward map."""
        for dependent, deps in self.dependencies.items():
            for dep in deps:
                yield dependent, dep

    def is_consistent(self) -> bool:
        """True when ``dependents`` is the exact inverse of ``dependencies``."""
        forward = set(self.edges())
        backward = {
            (dependent, dependency)
            for dependency, readers in self.dependents.items()
            for dependent in readers
        }
        return forward == backward

    def copy(self) -> DependencyGraph:
        graph = DependencyGraph()
        graph.dependencies = {k: dict(v) for k, v in self.dependencies.items()}
        graph.dependents = {k: dict(v) for k, v in self.dependents.items()}
        return graph

    def __len__(self) -> int:
        return sum(len(deps) for deps in self.dependencies.values())

    # ------------------------------------------------------------------
    # Traversals
    # ------------------------------------------------------------------

    def would_cycle(self, dependent: CellAddress, new_dependencies: Iterable[CellAddress]) -> bool:
        """Would making *dependent* read *new_dependencies* close a cycle?

        True when any candidate is *dependent* itself or can already reach
        it along existing ``dependencies`` edges.
        """
        stack: list[CellAddress] = []
        for dep in new_dependencies:
            if dep == dependent:
                return True
            stack.append(dep)
        visited: set[CellAddress] = set(stack)
        while stack:
            cell = stack.pop()
            for dep in self.dependencies.get(cell, ()):
                if dep == dependent:
                    return True
                if dep not in visited:
                    visited.add(dep)
                    stack.append(dep)
        return False

    def topological_order(self, *sources: CellAddress, include_sources: bool = False) -> list[CellAddress]:
        """Transitive dependents of *sources*, each after its dependencies.

        Depth-first along ``dependents`` with an explicit stack, post-order
        reversed.  Sources and edges are walked back to front so that
        independent cells keep the order they were given or discovered in,
        and the result is deterministic.  With *include_sources* the sources themselves are
        part of the order; otherwise a source only appears when another
        source reaches it.

        Raises CycleError if a cycle is met; committed graphs are acyclic.
        """
        post_order: list[CellAddress] = []
        done: set[CellAddress] = set()
        on_stack: set[CellAddress] = set()

        for source in reversed(sources):
            if source in done:
                continue
            stack: list[tuple[CellAddress, Iterator[CellAddress]]] = [
                (source, reversed(list(self.dependents.get(source, ())))),
            ]
            on_stack.add(source)
            while stack:
                cell, children = stack[-1]
                child = next(children, None)
                if child is None:
                    stack.pop()
                    on_stack.discard(cell)
                    done.add(cell)
                    post_order.append(cell)
                    continue
                if child in on_stack:
                    raise CycleError(child, cell)
                if child not in done:
                    on_stack.add(child)
                    stack.append((child, reversed(list(self.dependents.get(child, ())))))

        post_order.reverse()
        if include_sources:
            return post_order
        reached = self._reachable(sources)
        return [cell for cell in post_order if cell in reached]

    def _reachable(self, sources: Iterable[CellAddress]) -> set[CellAddress]:
        """Cells reachable from *sources* by at least one dependents edge."""
        reached: set[CellAddress] = set()
        queue: deque[CellAddress] = deque(sources)
        while queue:
            cell = queue.popleft()
            for dep in self.dependents.get(cell, ()):
                if dep not in reached:
                    reached.add(dep)
                    queue.append(dep)
        return reached

    def max_depth(self, roots: Iterable[CellAddress]) -> int:
        """Longest dependency chain from *roots* through their dependents."""
        depth: dict[CellAddress, int] = {}
        max_d = 0
        for cell in self.topological_order(*roots, include_sources=True):
            current = depth.get(cell, 0)
            for dep in self.dependents.get(cell, ()):
                if current + 1 > depth.get(dep, 0):
                    depth[dep] = current + 1
                    max_d = max(max_d, current + 1)
        return max_d
