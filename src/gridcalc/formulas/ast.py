"""Immutable abstract syntax tree for cell formulas.

A formula tree is a tagged union of four frozen node types.  Numbers and
cell references are leaves; binary operators and negation are interior
nodes.  Trees are built by :func:`gridcalc.formulas.parser.parse_formula`
and never modified afterwards.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Union


class BinaryOperator(str, Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"


@dataclass(frozen=True)
class Number:
    """Numeric literal."""

    value: float


@dataclass(frozen=True)
class CellReference:
    """Reference to another cell by identifier."""

    cell_id: str


@dataclass(frozen=True)
class BinaryOp:
    """Binary arithmetic: ``left <op> right``."""

    op: BinaryOperator
    left: FormulaNode
    right: FormulaNode


@dataclass(frozen=True)
class Negate:
    """Unary minus."""

    operand: FormulaNode


FormulaNode = Union[Number, CellReference, BinaryOp, Negate]


def iter_nodes(node: FormulaNode) -> Iterator[FormulaNode]:
    """Yield every node of the tree in pre-order (parent before children)."""
    stack: list[FormulaNode] = [node]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, BinaryOp):
            stack.append(current.right)
            stack.append(current.left)
        elif isinstance(current, Negate):
            stack.append(current.operand)


def cell_references(node: FormulaNode) -> set[str]:
    """Return the identifiers of every cell reference leaf in the tree."""
    return {n.cell_id for n in iter_nodes(node) if isinstance(n, CellReference)}


# Binding strength used when re-rendering; higher binds tighter.
_PRECEDENCE = {
    BinaryOperator.ADD: 1,
    BinaryOperator.SUB: 1,
    BinaryOperator.MUL: 2,
    BinaryOperator.DIV: 2,
}
_UNARY_PRECEDENCE = 3


def _format_number(value: float) -> str:
    if math.isfinite(value) and value == int(value):
        return str(int(value))
    return repr(value)


def _render(node: FormulaNode) -> tuple[str, int]:
    """Return (text, precedence) for *node*."""
    if isinstance(node, Number):
        return _format_number(node.value), 4
    if isinstance(node, CellReference):
        return node.cell_id, 4
    if isinstance(node, Negate):
        text, prec = _render(node.operand)
        if prec < _UNARY_PRECEDENCE:
            text = f"({text})"
        return f"-{text}", _UNARY_PRECEDENCE
    if isinstance(node, BinaryOp):
        prec = _PRECEDENCE[node.op]
        left, left_prec = _render(node.left)
        right, right_prec = _render(node.right)
        if left_prec < prec:
            left = f"({left})"
        # Operators are left-associative, so an equal-precedence right
        # operand needs parentheses: 1-(2-3) must not become 1-2-3.
        if right_prec <= prec:
            right = f"({right})"
        return f"{left}{node.op.value}{right}", prec
    raise TypeError(f"Not a formula node: {node!r}")


def to_formula_text(node: FormulaNode) -> str:
    """Render a tree back to canonical formula text (with leading ``=``).

    Whitespace and redundant parentheses from the original text are not
    preserved, but parsing the result yields an equal tree.
    """
    text, _ = _render(node)
    return f"={text}"


def format_tree(node: FormulaNode, indent: int = 2) -> str:
    """Produce an indented dump of the tree, one node per line.

    Example for ``=A1 + -2``::

        +
          A1
          negate
            2
    """
    lines: list[str] = []
    stack: list[tuple[FormulaNode, int]] = [(node, 0)]
    while stack:
        current, depth = stack.pop()
        pad = " " * depth
        if isinstance(current, Number):
            lines.append(f"{pad}{_format_number(current.value)}")
        elif isinstance(current, CellReference):
            lines.append(f"{pad}{current.cell_id}")
        elif isinstance(current, Negate):
            lines.append(f"{pad}negate")
            stack.append((current.operand, depth + indent))
        elif isinstance(current, BinaryOp):
            lines.append(f"{pad}{current.op.value}")
            stack.append((current.right, depth + indent))
            stack.append((current.left, depth + indent))
        else:
            raise TypeError(f"Not a formula node: {current!r}")
    return "\n".join(lines)
