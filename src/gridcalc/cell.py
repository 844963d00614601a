"""Spreadsheet cells: numbers, strings and formulas.

Cells are created with :func:`make_cell` and are replaced, never edited,
when their contents change.  The only mutable state is a formula cell's
cached value and error flag, which change only through
:meth:`Cell.evaluate`.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Mapping

from gridcalc.formulas.ast import FormulaNode
from gridcalc.formulas.errors import FormulaRefError
from gridcalc.formulas.evaluator import evaluate_formula
from gridcalc.formulas.parser import FORMULA_MARKER, extract_refs, parse_formula

ERROR_DISPLAY = "ERROR"

# Plain decimal literals only; float() would also accept "nan", "inf"
# and digit separators, which are kept as strings.
_NUMBER_RE = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


class CellKind(str, Enum):
    number = "number"
    string = "string"
    formula = "formula"


def _format_value(value: float) -> str:
    return f"{value:.1f}"


class Cell:
    """Base class for the three cell kinds."""

    __slots__ = ("_contents",)

    kind: CellKind

    def __init__(self, contents: str) -> None:
        self._contents = contents

    @property
    def contents(self) -> str:
        """Raw (trimmed) text the cell was created from."""
        return self._contents

    @property
    def is_error(self) -> bool:
        return False

    @property
    def display_text(self) -> str:
        raise NotImplementedError

    @property
    def numeric_value(self) -> float | None:
        return None

    def upstream_references(self) -> frozenset[str]:
        """Identifiers this cell reads from."""
        return frozenset()

    def evaluate(self, lookup: Mapping[str, Cell]) -> None:
        """Recompute the cell value from *lookup*.  No-op except for formulas."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._contents!r})"


class NumberCell(Cell):
    __slots__ = ("_value",)

    kind = CellKind.number

    def __init__(self, contents: str) -> None:
        super().__init__(contents)
        self._value = float(contents)

    @property
    def display_text(self) -> str:
        return _format_value(self._value)

    @property
    def numeric_value(self) -> float:
        return self._value


class StringCell(Cell):
    __slots__ = ()

    kind = CellKind.string

    @property
    def display_text(self) -> str:
        return self._contents


class _MappingResolver:
    """Resolve references against an id -> Cell mapping."""

    __slots__ = ("_cells",)

    def __init__(self, cells: Mapping[str, Cell]) -> None:
        self._cells = cells

    def resolve_cell(self, cell_id: str) -> float:
        cell = self._cells.get(cell_id)
        if cell is None:
            raise FormulaRefError(cell_id, "cell is empty")
        if cell.kind is CellKind.string:
            raise FormulaRefError(cell_id, "cell holds a string")
        value = cell.numeric_value
        if cell.is_error or value is None:
            raise FormulaRefError(cell_id, "cell is in error")
        return value


class FormulaCell(Cell):
    """Cell whose value is computed from a formula tree.

    A new formula cell is in error until its first :meth:`evaluate`.
    """

    __slots__ = ("_formula", "_refs", "_value", "_error", "_error_message")

    kind = CellKind.formula

    def __init__(self, contents: str, formula: FormulaNode) -> None:
        super().__init__(contents)
        self._formula = formula
        self._refs = frozenset(extract_refs(formula))
        self._value = 0.0
        self._error = True
        self._error_message: str | None = "not evaluated"

    @property
    def formula(self) -> FormulaNode:
        return self._formula

    @property
    def is_error(self) -> bool:
        return self._error

    @property
    def error_message(self) -> str | None:
        """Why the last evaluation failed, or ``None`` after a success."""
        return self._error_message

    @property
    def display_text(self) -> str:
        if self._error:
            return ERROR_DISPLAY
        return _format_value(self._value)

    @property
    def numeric_value(self) -> float | None:
        if self._error:
            return None
        return self._value

    def upstream_references(self) -> frozenset[str]:
        return self._refs

    def evaluate(self, lookup: Mapping[str, Cell]) -> None:
        """Evaluate the formula; any failure puts the cell in error."""
        try:
            value = evaluate_formula(self._formula, _MappingResolver(lookup))
        except Exception as exc:
            self._error = True
            self._error_message = str(exc) or type(exc).__name__
            return
        self._value = value
        self._error = False
        self._error_message = None


def make_cell(raw_contents: str | None) -> Cell | None:
    """Create a cell from user-entered text.

    Whitespace is trimmed.  Blank input yields ``None``.  Text that reads as
    a number becomes a :class:`NumberCell`; text starting with ``=`` is
    parsed into a :class:`FormulaCell`; anything else is a
    :class:`StringCell`.

    Raises:
        FormulaParseError: Formula text with invalid syntax.
    """
    if raw_contents is None:
        return None
    contents = raw_contents.strip()
    if not contents:
        return None
    if _NUMBER_RE.fullmatch(contents):
        return NumberCell(contents)
    if contents.startswith(FORMULA_MARKER):
        return FormulaCell(contents, parse_formula(contents))
    return StringCell(contents)
