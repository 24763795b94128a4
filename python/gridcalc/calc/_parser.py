"""Formula parser: recursive descent into a tagged expression tree.

The splitter works on the formula text directly: find the rightmost
lowest-precedence operator outside parentheses and strings and split there,
peeling a chain of such operators in a loop and folding it left; otherwise
peel parentheses, function calls, unary signs and atoms.
The result is a closed set of frozen node classes that the evaluator walks.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Union

from gridcalc._errors import FormulaSyntaxError

# ---------------------------------------------------------------------------
# Expression nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Number:
    value: int | float


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Reference:
    """Single-cell reference such as ``B3``, kept as (normalised) text.

    Bounds are only known to the evaluator, so the label is not resolved
    here.
    """

    label: str


@dataclass(frozen=True)
class RangeRef:
    """``A1:B3`` - only valid as an aggregate function argument."""

    start: str
    end: str


@dataclass(frozen=True)
class Negate:
    operand: Expression


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Expression
    right: Expression


@dataclass(frozen=True)
class Call:
    name: str
    args: tuple[Expression, ...]


Expression = Union[Number, Text, Reference, RangeRef, Negate, BinaryOp, Call]

# ---------------------------------------------------------------------------
# Lexical patterns
# ---------------------------------------------------------------------------

_REF_RE = re.compile(r"[A-Za-z]+[0-9]+")
_RANGE_RE = re.compile(r"([A-Za-z]+[0-9]+)\s*:\s*([A-Za-z]+[0-9]+)")
_FUNC_RE = re.compile(r"([A-Za-z][A-Za-z0-9_]*)\s*\(")
_NUMBER_RE = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_INT_RE = re.compile(r"\d+")

# ---------------------------------------------------------------------------
# Splitting helpers
# ---------------------------------------------------------------------------


def _find_matching_paren(expr: str, start: int) -> int:
    """Index of the ``')'`` matching the ``'('`` at *expr[start]*, or -1."""
    depth = 1
    i = start + 1
    in_string = False
    while i < len(expr):
        ch = expr[i]
        if ch == '"':
            in_string = not in_string
        elif not in_string:
            if ch == '(':
                depth += 1
            elif ch == ')':
                depth -= 1
                if depth == 0:
                    return i
        i += 1
    return -1


def _check_balanced(expr: str) -> None:
    depth = 0
    in_string = False
    for ch in expr:
        if ch == '"':
            in_string = not in_string
        elif not in_string:
            if ch == '(':
                depth += 1
            elif ch == ')':
                depth -= 1
                if depth < 0:
                    raise FormulaSyntaxError(f"Unbalanced ')' in {expr!r}")
    if in_string:
        raise FormulaSyntaxError(f"Unterminated string in {expr!r}")
    if depth:
        raise FormulaSyntaxError(f"Unbalanced '(' in {expr!r}")


def _match_function_call(expr: str) -> tuple[str, str] | None:
    """If *expr* is exactly ``FUNC(balanced_args)``, return ``(name, args_str)``.

    ``SUM(A1:A5)*2`` is NOT matched (there's trailing content after the
    close-paren).
    """
    m = _FUNC_RE.match(expr)
    if not m:
        return None
    open_idx = m.end() - 1  # position of '('
    close_idx = _find_matching_paren(expr, open_idx)
    # The close-paren must be the very last character
    if close_idx >= 0 and close_idx == len(expr) - 1:
        return (m.group(1), expr[open_idx + 1 : close_idx])
    return None


def _find_top_level_split(expr: str) -> tuple[str, str, str] | None:
    """Find the rightmost lowest-precedence binary operator at paren depth 0.

    Precedence (lowest to highest)::

        1. additive       (+, -)
        2. multiplicative (*, /)

    Right-to-left scan produces correct left-to-right associativity.
    Returns ``(left, op, right)`` or ``None``.
    """
    for operators in (('+', '-'), ('*', '/')):
        depth = 0
        in_string = False
        i = len(expr) - 1
        while i > 0:
            ch = expr[i]

            if ch == '"':
                in_string = not in_string
                i -= 1
                continue
            if in_string:
                i -= 1
                continue

            # Track parentheses (inverted for right-to-left)
            if ch == ')':
                depth += 1
            elif ch == '(':
                depth -= 1
            elif depth == 0 and ch in operators:
                # Verify it's a binary operator (not unary prefix)
                j = i - 1
                while j >= 0 and expr[j] == ' ':
                    j -= 1
                if j >= 0 and expr[j] not in ('(', ',', '+', '-', '*', '/'):
                    # Skip +/- that are part of scientific notation (e.g. 2.5e-1)
                    if not (ch in ('+', '-') and expr[j] in ('e', 'E') and _is_exponent(expr, j)):
                        left = expr[:i].strip()
                        right = expr[i + 1:].strip()
                        if not right:
                            raise FormulaSyntaxError(f"Missing operand after {ch!r} in {expr!r}")
                        return (left, ch, right)
            i -= 1

    return None


def _is_exponent(expr: str, e_idx: int) -> bool:
    """True when the ``e`` at *e_idx* ends a numeric mantissa like ``2.5e``."""
    k = e_idx - 1
    while k >= 0 and (expr[k].isdigit() or expr[k] == '.'):
        k -= 1
    mantissa = expr[k + 1:e_idx]
    if not mantissa or not any(c.isdigit() for c in mantissa):
        return False
    # A letter before the mantissa makes it a reference (e.g. "AE1-2" is not).
    return k < 0 or not (expr[k].isalnum() or expr[k] == '_')


def split_top_level_args(args_str: str) -> list[str]:
    """Split on commas at depth 0 WITHOUT resolving - returns raw strings."""
    args: list[str] = []
    depth = 0
    in_string = False
    current = ""
    for ch in args_str:
        if ch == '"':
            in_string = not in_string
            current += ch
        elif not in_string:
            if ch == '(':
                depth += 1
                current += ch
            elif ch == ')':
                depth -= 1
                current += ch
            elif ch == ',' and depth == 0:
                args.append(current)
                current = ""
            else:
                current += ch
        else:
            current += ch
    args.append(current)
    return args


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def parse_formula(formula: str) -> Expression:
    """Parse a formula body (a leading ``=`` is tolerated) into a tree.

    Raises FormulaSyntaxError for malformed input.
    """
    body = formula.strip()
    if body.startswith('='):
        body = body[1:]
    _check_balanced(body)
    return _parse_expr(body)


def _parse_expr(expr: str) -> Expression:
    """Dispatch order (first match wins):

    1. Binary split at top level (paren-aware, precedence-correct)
    2. Parenthesized sub-expression ``(...)``
    3. Function call ``FUNC(balanced_args)``
    4. Unary minus / plus
    5. Numeric literal
    6. String literal
    7. Cell reference
    """
    expr = expr.strip()
    if not expr:
        raise FormulaSyntaxError("Empty expression")

    # 1. Binary split (additive -> multiplicative), peeled right to left and
    #    folded left without recursing per operator
    split = _find_top_level_split(expr)
    if split:
        tail: list[tuple[str, str]] = []
        while split:
            left, op, right = split
            tail.append((op, right))
            split = _find_top_level_split(left)
        node = _parse_expr(left)
        for op, right in reversed(tail):
            node = BinaryOp(op, node, _parse_expr(right))
        return node

    # 2. Parenthesized sub-expression: (expr)
    if expr.startswith('('):
        close = _find_matching_paren(expr, 0)
        if close == len(expr) - 1:
            return _parse_expr(expr[1:close])
        raise FormulaSyntaxError(f"Unexpected content after ')' in {expr!r}")

    # 3. Function call: FUNC(balanced_args)
    func = _match_function_call(expr)
    if func:
        name, args_str = func
        if not args_str.strip():
            return Call(name.upper(), ())
        args = tuple(_parse_arg(a) for a in split_top_level_args(args_str))
        return Call(name.upper(), args)

    # 4. Unary minus / plus
    if expr.startswith('-'):
        return Negate(_parse_expr(expr[1:]))
    if expr.startswith('+'):
        return _parse_expr(expr[1:])

    # 5. Numeric literal (int, float, and scientific notation like 1E3)
    if _NUMBER_RE.fullmatch(expr):
        if _INT_RE.fullmatch(expr):
            return Number(int(expr))
        return Number(float(expr))

    # 6. String literal
    if len(expr) >= 2 and expr[0] == '"' and expr[-1] == '"' and '"' not in expr[1:-1]:
        return Text(expr[1:-1])

    # 7. Cell reference
    if _REF_RE.fullmatch(expr):
        return Reference(expr.upper())

    if _RANGE_RE.fullmatch(expr):
        raise FormulaSyntaxError(f"Range {expr!r} is only allowed as a function argument")
    raise FormulaSyntaxError(f"Cannot parse {expr!r}")


def _parse_arg(arg: str) -> Expression:
    """Parse one function argument; ranges are allowed here."""
    clean = arg.strip()
    if not clean:
        raise FormulaSyntaxError("Empty function argument")
    m = _RANGE_RE.fullmatch(clean)
    if m:
        return RangeRef(m.group(1).upper(), m.group(2).upper())
    return _parse_expr(clean)


# ---------------------------------------------------------------------------
# Tree helpers
# ---------------------------------------------------------------------------


def walk(node: Expression) -> Iterator[Expression]:
    """Yield every node of the tree in pre-order (explicit stack)."""
    stack: list[Expression] = [node]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, Negate):
            stack.append(current.operand)
        elif isinstance(current, BinaryOp):
            stack.append(current.right)
            stack.append(current.left)
        elif isinstance(current, Call):
            stack.extend(reversed(current.args))


def reference_labels(node: Expression) -> list[str]:
    """Labels of single references and range corners, in source order."""
    labels: list[str] = []
    for current in walk(node):
        if isinstance(current, Reference):
            labels.append(current.label)
        elif isinstance(current, RangeRef):
            labels.extend((current.start, current.end))
    return labels


def function_names(node: Expression) -> list[str]:
    """Upper-cased function names used in the tree, without duplicates."""
    names: list[str] = []
    for current in walk(node):
        if isinstance(current, Call) and current.name not in names:
            names.append(current.name)
    return names
