"""Lark-based parser for spreadsheet cell formulas.

Supports:
- Numeric literals: ``5``, ``2.75``, ``.5``, ``1e3``
- Cell references: ``A1``, ``ZD11``, ``AA100`` (same syntax as cell identifiers)
- Binary ``+ - * /`` (left-associative), unary ``-`` and parentheses

The parse tree is transformed directly into the immutable node types of
:mod:`gridcalc.formulas.ast`.
"""

from __future__ import annotations

from lark import Lark, Transformer, v_args
from lark.exceptions import (
    LarkError,
    UnexpectedCharacters,
    UnexpectedEOF,
    UnexpectedToken,
)

from gridcalc.formulas.ast import (
    BinaryOp,
    BinaryOperator,
    CellReference,
    FormulaNode,
    Negate,
    Number,
    cell_references,
)
from gridcalc.formulas.errors import FormulaParseError

FORMULA_MARKER = "="

# LALR(1) grammar.
# Operator precedence (lowest to highest):
#   1. Addition/subtraction: + -
#   2. Multiplication/division: * /
#   3. Unary minus: -
#   4. Atoms: number, cell reference, parenthesized expr
GRAMMAR = r"""
start: "=" expr

?expr: addition

?addition: multiplication
    | addition "+" multiplication  -> add
    | addition "-" multiplication  -> sub

?multiplication: unary
    | multiplication "*" unary  -> mul
    | multiplication "/" unary  -> div

?unary: atom
    | "-" unary  -> neg

?atom: NUMBER       -> number
    | CELL_REF      -> cell_ref
    | "(" expr ")"

CELL_REF: /[A-Z]+[1-9][0-9]*/

NUMBER: /(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?/

%import common.WS
%ignore WS
"""


@v_args(inline=True)
class _AstBuilder(Transformer):
    """Build :mod:`~gridcalc.formulas.ast` nodes while parsing."""

    def start(self, expr: FormulaNode) -> FormulaNode:
        return expr

    def add(self, left: FormulaNode, right: FormulaNode) -> BinaryOp:
        return BinaryOp(BinaryOperator.ADD, left, right)

    def sub(self, left: FormulaNode, right: FormulaNode) -> BinaryOp:
        return BinaryOp(BinaryOperator.SUB, left, right)

    def mul(self, left: FormulaNode, right: FormulaNode) -> BinaryOp:
        return BinaryOp(BinaryOperator.MUL, left, right)

    def div(self, left: FormulaNode, right: FormulaNode) -> BinaryOp:
        return BinaryOp(BinaryOperator.DIV, left, right)

    def neg(self, operand: FormulaNode) -> Negate:
        return Negate(operand)

    def number(self, token) -> Number:
        return Number(float(token))

    def cell_ref(self, token) -> CellReference:
        return CellReference(str(token))


_parser = Lark(GRAMMAR, parser="lalr", start="start", transformer=_AstBuilder())


def _describe(exc: LarkError) -> str:
    if isinstance(exc, UnexpectedCharacters):
        return f"unexpected character {exc.char!r}"
    if isinstance(exc, UnexpectedEOF):
        return "unexpected end of formula"
    if isinstance(exc, UnexpectedToken):
        if exc.token.type == "$END":
            return "unexpected end of formula"
        return f"unexpected token {str(exc.token)!r}"
    return str(exc)


def parse_formula(text: str) -> FormulaNode:
    """Parse a formula string (must start with ``=``) into a formula tree.

    Args:
        text: The formula text, e.g. ``"=A1 + -5.23 * (2 + A4) / ZD11"``.

    Returns:
        The root node of the parsed tree.

    Raises:
        FormulaParseError: If the formula has invalid syntax.
    """
    text = text.strip()
    if not text.startswith(FORMULA_MARKER):
        raise FormulaParseError(f"Formula must start with {FORMULA_MARKER!r}", position=0)
    try:
        return _parser.parse(text)
    except LarkError as exc:
        pos = getattr(exc, "pos_in_stream", None)
        if pos is not None and pos < 0:
            pos = len(text)
        raise FormulaParseError(_describe(exc), position=pos) from exc


def extract_refs(tree: FormulaNode) -> set[str]:
    """Extract all cell identifiers referenced by a parsed formula tree.

    Args:
        tree: A tree from ``parse_formula()``.

    Returns:
        Set of referenced cell identifiers (duplicates collapse).
    """
    return cell_references(tree)
