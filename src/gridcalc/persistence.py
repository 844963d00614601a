"""Save and load sheets as ``identifier:contents`` text records.

One record per non-empty cell, one record per line::

    A1:5
    B1:=A1*2
    C1:hello: world

Only the first ``:`` separates the identifier from the contents.  Loading
replays :meth:`Sheet.set_cell` on a fresh sheet in file order, so forward
references are fine.  Any bad record fails the whole load.
"""

from __future__ import annotations

import re
from pathlib import Path

from gridcalc.errors import SheetError, SheetFormatError
from gridcalc.sheet import Sheet

RECORD_SEPARATOR = ":"
# Characters str.splitlines() treats as record boundaries.
_LINE_BREAKS = re.compile("[\n\r\v\f\x1c\x1d\x1e\x85\u2028\u2029]")


def to_save_string(sheet: Sheet) -> str:
    """Serialize *sheet* to the record format.

    Raises:
        SheetFormatError: A cell's contents contain a line break and
            cannot be written as a single record.
    """
    records = []
    for record_number, (cell_id, cell) in enumerate(sheet.items(), start=1):
        record = f"{cell_id}{RECORD_SEPARATOR}{cell.contents}"
        if _LINE_BREAKS.search(cell.contents):
            raise SheetFormatError(
                f"contents of {cell_id} contain a line break", record_number, record
            )
        records.append(record + "\n")
    return "".join(records)


def from_save_string(text: str) -> Sheet:
    """Rebuild a sheet from the record format.

    Blank lines are skipped.

    Raises:
        SheetFormatError: A record has no separator, or setting a cell
            from it failed (bad identifier, bad formula, cycle).
    """
    sheet = Sheet()
    for line_number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        if RECORD_SEPARATOR not in line:
            raise SheetFormatError(
                f"missing {RECORD_SEPARATOR!r} between identifier and contents",
                line_number,
                line,
            )
        cell_id, contents = line.split(RECORD_SEPARATOR, 1)
        try:
            sheet.set_cell(cell_id.strip(), contents)
        except SheetError as exc:
            raise SheetFormatError(str(exc), line_number, line) from exc
    return sheet


def save_sheet(sheet: Sheet, path: Path) -> Path:
    """Write *sheet* to *path* (UTF-8).  Returns the path written."""
    path = Path(path)
    path.write_text(to_save_string(sheet), encoding="utf-8")
    return path


def load_sheet(path: Path) -> Sheet:
    """Read a sheet saved with :func:`save_sheet`.

    Raises:
        FileNotFoundError: *path* does not exist.
        SheetFormatError: The file is not valid UTF-8, or its contents are
            malformed.
    """
    data = Path(path).read_bytes()
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        line_number = data.count(b"\n", 0, exc.start) + 1
        raw_line = data.split(b"\n")[line_number - 1].rstrip(b"\r")
        line = raw_line.decode("utf-8", errors="replace")
        raise SheetFormatError(
            f"invalid UTF-8 byte at offset {exc.start}", line_number, line
        ) from exc
    return from_save_string(text)
