"""Spreadsheet formula parsing and evaluation.

Public API::

    from gridcalc.formulas import parse_formula, extract_refs, evaluate_formula
"""

from gridcalc.formulas.ast import (
    BinaryOp,
    BinaryOperator,
    CellReference,
    FormulaNode,
    Negate,
    Number,
    format_tree,
    to_formula_text,
)
from gridcalc.formulas.errors import (
    FormulaError,
    FormulaParseError,
    FormulaRefError,
)
from gridcalc.formulas.evaluator import CellResolver, evaluate_formula
from gridcalc.formulas.parser import extract_refs, parse_formula

__all__ = [
    "BinaryOp",
    "BinaryOperator",
    "CellReference",
    "CellResolver",
    "FormulaError",
    "FormulaNode",
    "FormulaParseError",
    "FormulaRefError",
    "Negate",
    "Number",
    "evaluate_formula",
    "extract_refs",
    "format_tree",
    "parse_formula",
    "to_formula_text",
]
