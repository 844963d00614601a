"""Error types raised by sheet operations."""

from __future__ import annotations


class SheetError(Exception):
    """Base class for all gridcalc errors."""


class InvalidCellIdError(SheetError, ValueError):
    """Cell identifier does not match ``[A-Z]+[1-9][0-9]*``.

    Attributes:
        cell_id: The rejected identifier.
    """

    def __init__(self, cell_id: str) -> None:
        self.cell_id = cell_id
        super().__init__(
            f"Invalid cell identifier: {cell_id!r} "
            "(expected uppercase letters followed by a number, e.g. A1)"
        )


class SheetFormatError(SheetError):
    """A saved sheet could not be reconstructed.

    Attributes:
        line_number: 1-based line of the offending record.
        line: The raw record text.
    """

    def __init__(self, message: str, line_number: int, line: str) -> None:
        self.line_number = line_number
        self.line = line
        super().__init__(f"Line {line_number}: {message} ({line!r})")
