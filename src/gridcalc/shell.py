"""Line-oriented command interpreter over a :class:`Sheet`.

Each call to :meth:`Session.execute` runs one command and returns the
text to show the user.  The interactive loop lives in ``cli_core``; this
module holds no I/O besides the save/load commands, so sessions can be
driven directly from tests.

Commands::

    set ID CONTENTS   set a cell (empty CONTENTS deletes it)
    delete ID         delete a cell
    get ID            show one cell's value and contents
    tree ID           show a formula cell's parsed tree
    graph [ID]        show dependency links (all, or for one cell)
    show              show the whole sheet
    save [FILE]       save to FILE (default: the session's sheet file)
    load [FILE]       replace the sheet with one loaded from FILE
    help              list commands
    quit              end the session
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from gridcalc.cell import FormulaCell
from gridcalc.dag import CycleError
from gridcalc.errors import InvalidCellIdError, SheetError, SheetFormatError
from gridcalc.formulas.ast import format_tree
from gridcalc.formulas.errors import FormulaParseError
from gridcalc.logging.events import (
    CYCLE_DETECTED,
    FORMULA_PARSE_ERROR,
    INVALID_CELL_ID,
    SHEET_FORMAT_ERROR,
    EventLevel,
    EventType,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    make_edit_event,
)
from gridcalc.persistence import load_sheet, save_sheet
from gridcalc.project import DEFAULT_CONFIG, load_project_config, sheet_path
from gridcalc.sheet import Sheet

HELP_TEXT = """\
Enter commands as follows
-------------------------
set id contents :  Set cell id to given contents
delete id       :  Delete contents of cell with given id
get id          :  Show the value and contents of a cell
tree id         :  Show the parsed formula of a cell
graph [id]      :  Show dependency links
show            :  Show the whole sheet
save [filename] :  Save the current sheet to named file
load [filename] :  Discard the current sheet and load from the named file
quit            :  Quit program"""


@dataclass
class CommandResult:
    output: str = ""
    quit: bool = False


def _error_code(exc: SheetError) -> str | None:
    if isinstance(exc, CycleError):
        return CYCLE_DETECTED
    if isinstance(exc, FormulaParseError):
        return FORMULA_PARSE_ERROR
    if isinstance(exc, InvalidCellIdError):
        return INVALID_CELL_ID
    if isinstance(exc, SheetFormatError):
        return SHEET_FORMAT_ERROR
    return None


class Session:
    """One interactive editing session.

    Args:
        sheet: Sheet to edit; a new empty sheet if omitted.
        project_dir: Project whose ``gridcalc.yaml`` supplies defaults.
        config: Explicit configuration (overrides *project_dir* lookup).
        sheet_file: Default file for ``save``/``load`` without argument.
    """

    def __init__(
        self,
        sheet: Sheet | None = None,
        *,
        project_dir: Path | None = None,
        config: dict[str, Any] | None = None,
        sheet_file: Path | None = None,
    ) -> None:
        self.sheet = sheet if sheet is not None else Sheet()
        self.project_dir = Path(project_dir) if project_dir is not None else None
        if config is not None:
            self.config = dict(config)
        elif self.project_dir is not None:
            self.config = load_project_config(self.project_dir)
        else:
            self.config = dict(DEFAULT_CONFIG)
        if sheet_file is not None:
            self.sheet_file: Path | None = Path(sheet_file)
        elif self.project_dir is not None:
            self.sheet_file = sheet_path(self.project_dir, self.config)
        else:
            self.sheet_file = None
        self.session_id = uuid.uuid4().hex[:12]

        self._commands = {
            "set": self._cmd_set,
            "delete": self._cmd_delete,
            "get": self._cmd_get,
            "tree": self._cmd_tree,
            "graph": self._cmd_graph,
            "show": self._cmd_show,
            "save": self._cmd_save,
            "load": self._cmd_load,
            "help": self._cmd_help,
            "quit": self._cmd_quit,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def start(self) -> None:
        emit_info(
            EventType.session_started,
            "Session started",
            {"session_id": self.session_id, "sheet_file": str(self.sheet_file or "")},
            session_id=self.session_id,
        )

    def end(self) -> None:
        emit_info(
            EventType.session_ended,
            "Session ended",
            {"session_id": self.session_id, "cells": len(self.sheet)},
            session_id=self.session_id,
        )

    def render(self) -> str:
        return self.sheet.render(show_dependencies=bool(self.config.get("show_dependencies", True)))

    def execute(self, line: str) -> CommandResult:
        """Run one command line."""
        parts = line.strip().split(maxsplit=1)
        if not parts:
            return CommandResult()
        command = parts[0]
        rest = parts[1] if len(parts) > 1 else ""
        handler = self._commands.get(command)
        if handler is None:
            return CommandResult(f"Unrecognized command '{command}'")
        return handler(rest)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _cmd_set(self, rest: str) -> CommandResult:
        args = rest.split(maxsplit=1)
        if not args:
            return CommandResult("usage: set id contents")
        cell_id = args[0]
        contents = args[1].strip() if len(args) > 1 else ""
        try:
            updated = self.sheet.set_cell(cell_id, contents)
        except SheetError as exc:
            self._emit_rejected(cell_id, contents, exc)
            return CommandResult(f"Could not set cell {cell_id} to {contents}:\n{exc}")

        self._emit_edit(
            EventType.cell_set if contents else EventType.cell_deleted,
            cell_id,
            contents,
            updated,
        )
        return CommandResult(self._autosave())

    def _cmd_delete(self, rest: str) -> CommandResult:
        cell_id = rest.strip()
        if not cell_id:
            return CommandResult("usage: delete id")
        try:
            updated = self.sheet.delete_cell(cell_id)
        except SheetError as exc:
            self._emit_rejected(cell_id, None, exc)
            return CommandResult(f"Could not delete cell {cell_id}:\n{exc}")
        self._emit_edit(EventType.cell_deleted, cell_id, None, updated)
        return CommandResult(self._autosave())

    def _cmd_get(self, rest: str) -> CommandResult:
        cell_id = rest.strip()
        cell = self.sheet.get_cell(cell_id)
        if cell is None:
            return CommandResult(f"{cell_id} is empty")
        out = f"{cell_id} = {cell.display_text} ('{cell.contents}', {cell.kind.value})"
        if isinstance(cell, FormulaCell) and cell.error_message:
            out += f"\n  error: {cell.error_message}"
        return CommandResult(out)

    def _cmd_tree(self, rest: str) -> CommandResult:
        cell_id = rest.strip()
        cell = self.sheet.get_cell(cell_id)
        if not isinstance(cell, FormulaCell):
            return CommandResult(f"{cell_id} does not hold a formula")
        return CommandResult(format_tree(cell.formula))

    def _cmd_graph(self, rest: str) -> CommandResult:
        cell_id = rest.strip()
        if not cell_id:
            return CommandResult(self.sheet.render_dependencies().rstrip("\n"))
        up = ", ".join(sorted(self.sheet.upstream_of(cell_id)))
        down = ", ".join(sorted(self.sheet.downstream_of(cell_id)))
        return CommandResult(f"{cell_id} upstream: [{up}]\n{cell_id} downstream: [{down}]")

    def _cmd_show(self, rest: str) -> CommandResult:
        return CommandResult(self.render().rstrip("\n"))

    def _cmd_save(self, rest: str) -> CommandResult:
        path = self._resolve_file(rest)
        if path is None:
            return CommandResult("usage: save filename")
        try:
            save_sheet(self.sheet, path)
        except (OSError, SheetError) as exc:
            self._emit_save_failed(path, exc)
            return CommandResult(f"Could not save sheet: {exc}")
        emit_info(
            EventType.sheet_saved,
            f"Saved {len(self.sheet)} cells to {path}",
            {"session_id": self.session_id, "path": str(path), "cells": len(self.sheet)},
            session_id=self.session_id,
        )
        return CommandResult(f"Saving sheet to '{path}'... done.")

    def _cmd_load(self, rest: str) -> CommandResult:
        path = self._resolve_file(rest)
        if path is None:
            return CommandResult("usage: load filename")
        try:
            sheet = load_sheet(path)
        except (OSError, SheetError) as exc:
            emit_error(
                EventType.sheet_load_failed,
                str(exc),
                {"session_id": self.session_id, "path": str(path)},
                error_code=SHEET_FORMAT_ERROR if isinstance(exc, SheetError) else None,
                session_id=self.session_id,
            )
            return CommandResult(f"Could not load sheet: {exc}")
        self.sheet = sheet
        emit_info(
            EventType.sheet_loaded,
            f"Loaded {len(sheet)} cells from {path}",
            {"session_id": self.session_id, "path": str(path), "cells": len(sheet)},
            session_id=self.session_id,
        )
        return CommandResult(f"Loading sheet from '{path}'... done.")

    def _cmd_help(self, rest: str) -> CommandResult:
        return CommandResult(HELP_TEXT)

    def _cmd_quit(self, rest: str) -> CommandResult:
        return CommandResult("Quitting...", quit=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_file(self, rest: str) -> Path | None:
        name = rest.strip()
        if name:
            return Path(name)
        return self.sheet_file

    def _autosave(self) -> str:
        if not self.config.get("autosave") or self.sheet_file is None:
            return ""
        try:
            save_sheet(self.sheet, self.sheet_file)
        except (OSError, SheetError) as exc:
            self._emit_save_failed(self.sheet_file, exc)
            return f"Autosave failed: {exc}"
        return ""

    def _emit_save_failed(self, path: Path, exc: Exception) -> None:
        emit_warning(
            EventType.sheet_save_failed,
            str(exc),
            {"session_id": self.session_id, "path": str(path)},
            error_code=SHEET_FORMAT_ERROR if isinstance(exc, SheetError) else None,
            session_id=self.session_id,
        )

    def _emit_edit(
        self,
        event_type: EventType,
        cell_id: str,
        contents: str | None,
        updated: list[str],
    ) -> None:
        emit(
            make_edit_event(
                event_type,
                EventLevel.info,
                f"{cell_id} updated, {len(updated)} dependents re-evaluated",
                cell_id=cell_id,
                contents=contents,
                extra={"session_id": self.session_id, "updated": updated},
            ),
            session_id=self.session_id,
        )

    def _emit_rejected(self, cell_id: str, contents: str | None, exc: SheetError) -> None:
        event_type = EventType.cycle_rejected if isinstance(exc, CycleError) else EventType.cell_rejected
        extra: dict[str, Any] = {"session_id": self.session_id}
        if isinstance(exc, CycleError):
            extra["cycle_path"] = exc.cycle_path
        emit(
            make_edit_event(
                event_type,
                EventLevel.warning,
                str(exc),
                cell_id=cell_id,
                contents=contents,
                error_code=_error_code(exc),
                extra=extra,
            ),
            session_id=self.session_id,
        )
