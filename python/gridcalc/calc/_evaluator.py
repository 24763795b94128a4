"""FormulaEvaluator: evaluates parsed formula trees against a cell lookup.

Formulas are parsed once per source string and validated against the
function registry; evaluation walks the tree.  Every problem local to one
cell comes back as an :class:`EvalError` value, never as an exception, and
the evaluator never writes to the cell store.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from gridcalc._address import CellAddress, CellRange, GridBounds
from gridcalc._errors import FormulaSyntaxError, InvalidAddressError
from gridcalc.calc._functions import EvalError, FunctionRegistry, RangeValue, first_error
from gridcalc.calc._parser import (
    BinaryOp,
    Call,
    Expression,
    Negate,
    Number,
    RangeRef,
    Reference,
    Text,
    parse_formula,
    walk,
)

if TYPE_CHECKING:
    from gridcalc._cell import Cell

logger = logging.getLogger(__name__)

Lookup = Callable[[CellAddress], "Cell"]

# Distinct formula sources kept parsed at once
COMPILE_CACHE_SIZE = 1024


@dataclass(frozen=True)
class Evaluation:
    """Result of evaluating one formula.

    ``references`` lists every in-bounds address the formula reads, whether
    or not evaluation succeeded, so dependency edges can still be built for
    a formula whose value is an error.
    """

    value: Any
    references: tuple[CellAddress, ...] = ()

    @property
    def error(self) -> EvalError | None:
        return self.value if isinstance(self.value, EvalError) else None

    @property
    def ok(self) -> bool:
        return self.error is None


def _binary_op(left: Any, op: str, right: Any) -> Any:
    """Evaluate an arithmetic binary operation."""
    # Error propagation: if either operand is an error, propagate it
    err = first_error(left, right)
    if err is not None:
        return err
    left = _as_number(left)
    right = _as_number(right)
    if left is None or right is None:
        return EvalError.NON_NUMERIC
    if op == '+':
        return left + right
    if op == '-':
        return left - right
    if op == '*':
        return left * right
    if op == '/':
        return EvalError.DIV_ZERO if right == 0 else left / right
    raise ValueError(f"Unknown operator {op!r}")


def _as_number(value: Any) -> int | float | None:
    """Operand in arithmetic context; empty cells read as 0."""
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class FormulaEvaluator:
    """Evaluates formulas for cells of a grid with fixed bounds.

    Usage::

        evaluator = FormulaEvaluator(GridBounds(10, 10))
        result = evaluator.evaluate("SUM(A1:A3)*2", sheet.cell)
        result.value, result.references
    """

    def __init__(
        self,
        bounds: GridBounds,
        functions: FunctionRegistry | None = None,
        cache_size: int = COMPILE_CACHE_SIZE,
    ) -> None:
        self.bounds = bounds
        self._functions = functions if functions is not None else FunctionRegistry()
        self._compile = functools.lru_cache(maxsize=cache_size)(self._parse_and_validate)

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def compile(self, source: str) -> Expression | EvalError:
        """Parse and validate *source*; cached per source string.

        Returns the expression tree, ``EvalError.PARSE`` for malformed
        syntax or misused arguments, or ``EvalError.UNKNOWN_FUNCTION``.
        """
        return self._compile(source)

    def cache_info(self) -> functools._CacheInfo:
        """Hit/miss statistics of the bounded compile cache."""
        return self._compile.cache_info()

    def _parse_and_validate(self, source: str) -> Expression | EvalError:
        try:
            tree = parse_formula(source)
        except FormulaSyntaxError as e:
            logger.debug("Cannot parse formula %r: %s", source, e)
            return EvalError.PARSE
        except RecursionError:
            logger.debug("Formula nested too deeply: %.40r...", source)
            return EvalError.PARSE
        return self._validate(tree)

    def _validate(self, tree: Expression) -> Expression | EvalError:
        for node in walk(tree):
            if not isinstance(node, Call):
                continue
            spec = self._functions.get(node.name)
            if spec is None:
                logger.debug("Unsupported function: %s", node.name)
                return EvalError.UNKNOWN_FUNCTION
            if not node.args:
                logger.debug("%s called without arguments", node.name)
                return EvalError.PARSE
            if spec.arity is not None and len(node.args) != spec.arity:
                logger.debug("%s takes %d argument(s), got %d", node.name, spec.arity, len(node.args))
                return EvalError.PARSE
            if not spec.aggregate and any(isinstance(a, RangeRef) for a in node.args):
                logger.debug("%s does not accept ranges", node.name)
                return EvalError.PARSE
        return tree

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def references(self, source: str) -> tuple[CellAddress, ...]:
        """In-bounds addresses *source* reads, ranges expanded row-major."""
        compiled = self.compile(source)
        if isinstance(compiled, EvalError):
            return ()
        return self._collect_references(compiled)

    def evaluate(self, source: str, lookup: Lookup) -> Evaluation:
        """Evaluate a formula body against *lookup* (address -> Cell)."""
        compiled = self.compile(source)
        if isinstance(compiled, EvalError):
            return Evaluation(compiled, ())
        refs = self._collect_references(compiled)
        try:
            value = self._eval(compiled, lookup)
        except (ValueError, TypeError, ArithmeticError) as e:
            logger.debug("Error evaluating %r: %s", source, e)
            value = EvalError.NON_NUMERIC
        except RecursionError:
            logger.debug("Formula nested too deeply to evaluate: %.40r...", source)
            value = EvalError.PARSE
        return Evaluation(value, refs)

    # ------------------------------------------------------------------
    # Reference resolution
    # ------------------------------------------------------------------

    def resolve(self, label: str) -> CellAddress | None:
        """In-bounds address for *label*, or None."""
        try:
            return CellAddress.parse(label, self.bounds)
        except InvalidAddressError:
            return None

    def resolve_range(self, node: RangeRef) -> CellRange | None:
        start = self.resolve(node.start)
        end = self.resolve(node.end)
        if start is None or end is None:
            return None
        return CellRange(start, end)

    def _collect_references(self, tree: Expression) -> tuple[CellAddress, ...]:
        seen: dict[CellAddress, None] = {}
        for node in walk(tree):
            if isinstance(node, Reference):
                address = self.resolve(node.label)
                if address is not None:
                    seen.setdefault(address, None)
            elif isinstance(node, RangeRef):
                cells = self.resolve_range(node)
                if cells is not None:
                    for address in cells:
                        seen.setdefault(address, None)
        return tuple(seen)

    # ------------------------------------------------------------------
    # Tree evaluation
    # ------------------------------------------------------------------

    def _eval(self, node: Expression, lookup: Lookup) -> Any:
        if isinstance(node, Number):
            return node.value
        if isinstance(node, Text):
            return node.value
        if isinstance(node, Reference):
            address = self.resolve(node.label)
            if address is None:
                return EvalError.INVALID_ADDRESS
            value = lookup(address).value
            return 0 if value is None else value
        if isinstance(node, RangeRef):
            return self._eval_range(node, lookup)
        if isinstance(node, Negate):
            operand = self._eval(node.operand, lookup)
            if isinstance(operand, EvalError):
                return operand
            num = _as_number(operand)
            return EvalError.NON_NUMERIC if num is None else -num
        if isinstance(node, BinaryOp):
            # left-leaning chains are folded iteratively
            chain: list[BinaryOp] = []
            while isinstance(node, BinaryOp):
                chain.append(node)
                node = node.left
            value = self._eval(node, lookup)
            for op_node in reversed(chain):
                value = _binary_op(value, op_node.op, self._eval(op_node.right, lookup))
            return value
        if isinstance(node, Call):
            return self._eval_call(node, lookup)
        raise TypeError(f"Unknown expression node: {node!r}")

    def _eval_range(self, node: RangeRef, lookup: Lookup) -> RangeValue | EvalError:
        cells = self.resolve_range(node)
        if cells is None:
            return EvalError.INVALID_ADDRESS
        n_rows, n_cols = cells.shape
        values = [lookup(address).value for address in cells]
        return RangeValue(values=values, n_rows=n_rows, n_cols=n_cols)

    def _eval_call(self, node: Call, lookup: Lookup) -> Any:
        spec = self._functions.get(node.name)
        if spec is None:
            return EvalError.UNKNOWN_FUNCTION
        args = [self._eval(arg, lookup) for arg in node.args]
        err = first_error(*args)
        if err is not None:
            return err
        return spec.func(args)
