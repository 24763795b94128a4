"""gridcalc.calc - Formula evaluation engine for gridcalc sheets."""

from gridcalc.calc._evaluator import Evaluation, FormulaEvaluator
from gridcalc.calc._functions import EvalError, FunctionRegistry, RangeValue, is_error, is_supported
from gridcalc.calc._graph import DependencyGraph
from gridcalc.calc._parser import (
    BinaryOp,
    Call,
    Expression,
    Negate,
    Number,
    RangeRef,
    Reference,
    Text,
    function_names,
    parse_formula,
    reference_labels,
)
from gridcalc.calc._protocol import CellDelta, RecalcResult

__all__ = [
    "BinaryOp",
    "Call",
    "CellDelta",
    "DependencyGraph",
    "EvalError",
    "Evaluation",
    "Expression",
    "FormulaEvaluator",
    "FunctionRegistry",
    "Negate",
    "Number",
    "RangeRef",
    "RangeValue",
    "RecalcResult",
    "Reference",
    "Text",
    "function_names",
    "is_error",
    "is_supported",
    "parse_formula",
    "reference_labels",
]
