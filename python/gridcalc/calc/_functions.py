"""Error values and builtin function implementations for formula evaluation."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable


# ---------------------------------------------------------------------------
# EvalError: typed error values that propagate through formula chains
# ---------------------------------------------------------------------------


class EvalError:
    """Error value stored in a cell whose formula could not be evaluated.

    Use the class attributes (``EvalError.DIV_ZERO`` ...) or
    ``EvalError.of(kind)``; instances are cached singletons per kind.  The
    ``code`` is the marker shown in the cell.
    """

    __slots__ = ("kind", "code")
    _cache: dict[str, EvalError] = {}

    DIV_ZERO: EvalError
    NON_NUMERIC: EvalError
    INVALID_ADDRESS: EvalError
    INSUFFICIENT_DATA: EvalError
    DOMAIN: EvalError
    UNKNOWN_FUNCTION: EvalError
    PARSE: EvalError

    def __init__(self, kind: str, code: str) -> None:
        self.kind = kind
        self.code = code

    @classmethod
    def of(cls, kind: str, code: str | None = None) -> EvalError:
        canon = kind.upper()
        if canon not in cls._cache:
            if code is None:
                raise KeyError(f"Unknown error kind: {kind}")
            cls._cache[canon] = cls(canon, code)
        return cls._cache[canon]

    @classmethod
    def from_code(cls, code: str) -> EvalError | None:
        """Error whose display marker is *code*, or None."""
        for err in cls._cache.values():
            if err.code == code:
                return err
        return None

    def __repr__(self) -> str:
        return f"EvalError.{self.kind}"

    def __str__(self) -> str:
        return self.code

    def __eq__(self, other: object) -> bool:
        if isinstance(other, EvalError):
            return self.kind == other.kind
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.kind)


# Singletons
EvalError.DIV_ZERO = EvalError.of("DIV_ZERO", "#DIV/0!")
EvalError.NON_NUMERIC = EvalError.of("NON_NUMERIC", "#VALUE!")
EvalError.INVALID_ADDRESS = EvalError.of("INVALID_ADDRESS", "#REF!")
EvalError.INSUFFICIENT_DATA = EvalError.of("INSUFFICIENT_DATA", "#N/A")
EvalError.DOMAIN = EvalError.of("DOMAIN", "#NUM!")
EvalError.UNKNOWN_FUNCTION = EvalError.of("UNKNOWN_FUNCTION", "#NAME?")
EvalError.PARSE = EvalError.of("PARSE", "#ERROR!")


def is_error(val: Any) -> bool:
    """Return True if *val* is an EvalError instance."""
    return isinstance(val, EvalError)


def first_error(*values: Any) -> EvalError | None:
    """Return the first EvalError found in *values*, or None."""
    for v in values:
        if isinstance(v, EvalError):
            return v
        if isinstance(v, RangeValue):
            err = first_error(*v.values)
            if err is not None:
                return err
    return None


# ---------------------------------------------------------------------------
# RangeValue: shape-aware 2D range container
# ---------------------------------------------------------------------------


@dataclass
class RangeValue:
    """A resolved cell range: row-major values plus the 2D shape."""

    values: list[Any]
    n_rows: int
    n_cols: int

    def __iter__(self):
        return iter(self.values)

    def __len__(self):
        return len(self.values)


# ---------------------------------------------------------------------------
# Builtin implementations - pure Python, no external deps.
# Each takes a list of resolved argument values and returns a value or an
# EvalError.  Errors in the arguments have already been propagated by the
# evaluator.
# ---------------------------------------------------------------------------


def _coerce_numeric(values: list[Any]) -> list[float]:
    """Flatten and coerce values to floats, skipping None/str.

    Scalar arguments and range members are treated alike: anything that is
    not a number does not take part in the aggregate.
    """
    result: list[float] = []
    for v in values:
        if isinstance(v, RangeValue):
            result.extend(_coerce_numeric(v.values))
        elif isinstance(v, bool):
            result.append(float(v))
        elif isinstance(v, (int, float)):
            result.append(float(v))
        # Skip None, str
    return result


def _single_number(name: str, args: list[Any]) -> float | EvalError:
    if len(args) != 1:
        raise ValueError(f"{name} requires exactly 1 argument")
    arg = args[0]
    if arg is None:
        return 0.0
    if isinstance(arg, bool) or not isinstance(arg, (int, float)):
        return EvalError.NON_NUMERIC
    return float(arg)


def _builtin_sum(args: list[Any]) -> float:
    return sum(_coerce_numeric(args))


def _builtin_min(args: list[Any]) -> float:
    nums = _coerce_numeric(args)
    if not nums:
        return 0.0
    return min(nums)


def _builtin_max(args: list[Any]) -> float:
    nums = _coerce_numeric(args)
    if not nums:
        return 0.0
    return max(nums)


def _builtin_avg(args: list[Any]) -> float | EvalError:
    nums = _coerce_numeric(args)
    if not nums:
        return EvalError.DIV_ZERO
    return sum(nums) / len(nums)


def _builtin_stdev(args: list[Any]) -> float | EvalError:
    """Population standard deviation."""
    nums = _coerce_numeric(args)
    if len(nums) < 2:
        return EvalError.INSUFFICIENT_DATA
    mean = sum(nums) / len(nums)
    variance = sum((x - mean) ** 2 for x in nums) / len(nums)
    return math.sqrt(variance)


def _builtin_sqrt(args: list[Any]) -> float | EvalError:
    num = _single_number("SQRT", args)
    if isinstance(num, EvalError):
        return num
    if num < 0:
        return EvalError.DOMAIN
    return math.sqrt(num)


def _builtin_log(args: list[Any]) -> float | EvalError:
    """Natural logarithm."""
    num = _single_number("LOG", args)
    if isinstance(num, EvalError):
        return num
    if num <= 0:
        return EvalError.DOMAIN
    return math.log(num)


def _builtin_abs(args: list[Any]) -> float | EvalError:
    num = _single_number("ABS", args)
    if isinstance(num, EvalError):
        return num
    return abs(num)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

# Aggregates accept ranges and any number of arguments.
_AGGREGATES: dict[str, Callable[[list[Any]], Any]] = {
    "SUM": _builtin_sum,
    "MIN": _builtin_min,
    "MAX": _builtin_max,
    "AVG": _builtin_avg,
    "STDEV": _builtin_stdev,
}

# Unary functions take exactly one scalar expression.
_UNARY: dict[str, Callable[[list[Any]], Any]] = {
    "SQRT": _builtin_sqrt,
    "LOG": _builtin_log,
    "ABS": _builtin_abs,
}


@dataclass(frozen=True)
class FunctionSpec:
    name: str
    func: Callable[[list[Any]], Any]
    aggregate: bool

    @property
    def arity(self) -> int | None:
        """Required argument count, or None for any count >= 1."""
        return None if self.aggregate else 1


class FunctionRegistry:
    """Registry of callable function implementations.

    Starts with builtins and can be extended with custom functions.
    """

    def __init__(self) -> None:
        self._functions: dict[str, FunctionSpec] = {}
        for name, func in _AGGREGATES.items():
            self._functions[name] = FunctionSpec(name, func, aggregate=True)
        for name, func in _UNARY.items():
            self._functions[name] = FunctionSpec(name, func, aggregate=False)

    def register(self, name: str, func: Callable[[list[Any]], Any], aggregate: bool = False) -> None:
        canon = name.upper()
        self._functions[canon] = FunctionSpec(canon, func, aggregate)

    def get(self, name: str) -> FunctionSpec | None:
        return self._functions.get(name.upper())

    def has(self, name: str) -> bool:
        return name.upper() in self._functions

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())


def is_supported(func_name: str) -> bool:
    """Check if a function name is a builtin."""
    canon = func_name.upper()
    return canon in _AGGREGATES or canon in _UNARY
