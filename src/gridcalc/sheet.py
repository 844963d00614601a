"""Sheet: cells keyed by identifier plus the dependency graph between them.

Every edit goes through :meth:`Sheet.set_cell` or :meth:`Sheet.delete_cell`.
An edit either fails without touching the sheet (bad identifier, bad
formula, circular reference) or installs the new cell, evaluates it and
re-evaluates everything downstream of it.
"""

from __future__ import annotations

import re
from typing import Iterator

from gridcalc.cell import Cell, make_cell
from gridcalc.dag import DependencyGraph
from gridcalc.errors import InvalidCellIdError

CELL_ID_RE = re.compile(r"[A-Z]+[1-9][0-9]*")


def is_valid_cell_id(cell_id: str) -> bool:
    return isinstance(cell_id, str) and CELL_ID_RE.fullmatch(cell_id) is not None


def validate_cell_id(cell_id: str) -> None:
    """Raise :class:`InvalidCellIdError` unless *cell_id* is well formed."""
    if not is_valid_cell_id(cell_id):
        raise InvalidCellIdError(cell_id)


class Sheet:
    """In-memory spreadsheet with incremental recomputation.

    Usage::

        sheet = Sheet()
        sheet.set_cell("A1", "5")
        sheet.set_cell("B1", "=A1*2")
        sheet.display_text("B1")    # "10.0"
        sheet.set_cell("A1", "=B1")  # raises CycleError, sheet unchanged
    """

    def __init__(self) -> None:
        self._cells: dict[str, Cell] = {}
        self._graph = DependencyGraph()

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def set_cell(self, cell_id: str, contents: str | None) -> list[str]:
        """Set *cell_id* to *contents*; blank contents deletes the cell.

        Returns:
            Identifiers of the downstream cells that were re-evaluated.

        Raises:
            InvalidCellIdError: Malformed identifier.
            FormulaParseError: Formula text with invalid syntax.
            CycleError: The formula would create a circular reference.
        """
        validate_cell_id(cell_id)
        cell = make_cell(contents)
        if cell is None:
            return self.delete_cell(cell_id)

        self._graph.add(cell_id, cell.upstream_references())
        self._cells[cell_id] = cell
        cell.evaluate(self._cells)
        return self._propagate(cell_id)

    def delete_cell(self, cell_id: str) -> list[str]:
        """Remove *cell_id*; its dependents re-evaluate and go to error.

        No-op if the cell is empty.

        Returns:
            Identifiers of the downstream cells that were re-evaluated.

        Raises:
            InvalidCellIdError: Malformed identifier.
        """
        validate_cell_id(cell_id)
        if cell_id not in self._cells:
            return []
        del self._cells[cell_id]
        self._graph.remove(cell_id)
        return self._propagate(cell_id)

    def _propagate(self, cell_id: str) -> list[str]:
        """Re-evaluate every cell downstream of *cell_id*, each once."""
        order = self._graph.affected_order(cell_id)
        for dep in order:
            cell = self._cells.get(dep)
            if cell is not None:
                cell.evaluate(self._cells)
        return order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_cell(self, cell_id: str) -> Cell | None:
        return self._cells.get(cell_id)

    def display_text(self, cell_id: str) -> str:
        """Displayed value of *cell_id*, or ``""`` if the cell is empty."""
        cell = self._cells.get(cell_id)
        return cell.display_text if cell is not None else ""

    def contents(self, cell_id: str) -> str:
        """Raw contents of *cell_id*, or ``""`` if the cell is empty."""
        cell = self._cells.get(cell_id)
        return cell.contents if cell is not None else ""

    def upstream_of(self, cell_id: str) -> frozenset[str]:
        return self._graph.upstream_of(cell_id)

    def downstream_of(self, cell_id: str) -> frozenset[str]:
        return self._graph.downstream_of(cell_id)

    def dependency_snapshot(self) -> tuple[dict[str, set[str]], dict[str, set[str]]]:
        """Copies of the (upstream, downstream) maps."""
        return self._graph.snapshot()

    def cell_ids(self) -> list[str]:
        """Identifiers of non-empty cells in insertion order."""
        return list(self._cells)

    def items(self) -> Iterator[tuple[str, Cell]]:
        return iter(list(self._cells.items()))

    def error_cells(self) -> list[str]:
        return [cid for cid, cell in self._cells.items() if cell.is_error]

    def __contains__(self, cell_id: object) -> bool:
        return cell_id in self._cells

    def __len__(self) -> int:
        return len(self._cells)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def render(self, *, show_dependencies: bool = True) -> str:
        """Tabular view of cells followed by the dependency links::

                ID |  Value | Contents
            -------+--------+---------------
                A1 |    5.0 | '5'
                C1 |   10.0 | '=A1*2'

            Cell Dependencies
            Upstream Links:
              C1 : [A1]
            Downstream Links:
              A1 : [C1]
        """
        lines = [
            "    ID |  Value | Contents",
            "-------+--------+---------------",
        ]
        for cell_id, cell in self._cells.items():
            lines.append(f"{cell_id:>6} |{cell.display_text:>7} | '{cell.contents}'")
        text = "\n".join(lines) + "\n"
        if show_dependencies:
            text += "\nCell Dependencies\n" + self.render_dependencies()
        return text

    def render_dependencies(self) -> str:
        return str(self._graph)

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"Sheet(cells={len(self._cells)})"
