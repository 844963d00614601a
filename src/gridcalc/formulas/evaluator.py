"""Post-order evaluator for parsed formula trees.

Cell references are resolved through a :class:`CellResolver`, which either
returns the referenced cell's number or raises
:class:`~gridcalc.formulas.errors.FormulaRefError`.  The walk uses an
explicit stack, so long chains like ``=1+1+...+1`` do not depend on the
interpreter recursion limit.
"""

from __future__ import annotations

from typing import Protocol

from gridcalc.formulas.ast import (
    BinaryOp,
    BinaryOperator,
    CellReference,
    FormulaNode,
    Negate,
    Number,
)
from gridcalc.formulas.errors import FormulaError


class CellResolver(Protocol):
    """Protocol for resolving cell references to numbers."""

    def resolve_cell(self, cell_id: str) -> float:
        """Return the numeric value of *cell_id* or raise ``FormulaRefError``."""
        ...


def _apply(op: BinaryOperator, left: float, right: float) -> float:
    if op is BinaryOperator.ADD:
        return left + right
    if op is BinaryOperator.SUB:
        return left - right
    if op is BinaryOperator.MUL:
        return left * right
    if op is BinaryOperator.DIV:
        # Not special-cased: ZeroDivisionError propagates to the caller.
        return left / right
    raise FormulaError(f"Unknown operator: {op!r}")


def evaluate_formula(tree: FormulaNode, resolver: CellResolver) -> float:
    """Evaluate a formula tree.

    Args:
        tree: Root node from ``parse_formula()``.
        resolver: Supplies the values of referenced cells.

    Returns:
        The computed value.

    Raises:
        FormulaRefError: A referenced cell cannot supply a number.
        FormulaError: The tree contains an unknown node.
        ZeroDivisionError: Division by zero.
    """
    values: list[float] = []
    # (node, children_done)
    stack: list[tuple[FormulaNode, bool]] = [(tree, False)]

    while stack:
        node, children_done = stack.pop()

        if isinstance(node, Number):
            values.append(node.value)
        elif isinstance(node, CellReference):
            values.append(resolver.resolve_cell(node.cell_id))
        elif isinstance(node, Negate):
            if children_done:
                values.append(-values.pop())
            else:
                stack.append((node, True))
                stack.append((node.operand, False))
        elif isinstance(node, BinaryOp):
            if children_done:
                right = values.pop()
                left = values.pop()
                values.append(_apply(node.op, left, right))
            else:
                stack.append((node, True))
                stack.append((node.right, False))
                stack.append((node.left, False))
        else:
            raise FormulaError(f"Unknown node type: {type(node).__name__}")

    if len(values) != 1:
        raise FormulaError("Malformed formula tree")
    return values[0]
