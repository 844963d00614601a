"""Error types for formula parsing and evaluation."""

from __future__ import annotations

from gridcalc.errors import SheetError


class FormulaError(SheetError):
    """Base class for all formula-related errors."""


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression.

    Attributes:
        position: Character position where the error was detected.
        message: Human-readable description.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class FormulaRefError(FormulaError):
    """Reference to a cell that cannot supply a number.

    Raised during evaluation when the referenced cell is empty, holds a
    string, or is itself in error.

    Attributes:
        cell_id: The unusable reference.
        reason: Short description of why the cell is unusable.
    """

    def __init__(self, cell_id: str, reason: str) -> None:
        self.cell_id = cell_id
        self.reason = reason
        super().__init__(f"Unusable reference {cell_id}: {reason}")
