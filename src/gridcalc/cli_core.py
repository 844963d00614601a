"""Command-line interface for gridcalc."""

from __future__ import annotations

from pathlib import Path

import click

from gridcalc import __version__
from gridcalc.errors import SheetError


def _configure_logging(project_dir: Path) -> None:
    """Attach the event sink if *project_dir* is a gridcalc project."""
    from gridcalc.logging import set_project_dir
    from gridcalc.project import CONFIG_FILENAME

    if (project_dir / CONFIG_FILENAME).exists():
        set_project_dir(project_dir)


def _load(file: str):
    from gridcalc.persistence import load_sheet

    try:
        return load_sheet(Path(file))
    except SheetError as e:
        raise click.ClickException(f"Could not load {file}: {e}")


def _save(sheet, file: str) -> None:
    from gridcalc.persistence import save_sheet

    try:
        save_sheet(sheet, Path(file))
    except (OSError, SheetError) as e:
        raise click.ClickException(f"Could not save {file}: {e}")


@click.group()
@click.version_option(version=__version__, prog_name="gridcalc")
def main() -> None:
    """gridcalc -- spreadsheet cells with dependency tracking.

    Cells hold numbers, strings, or formulas (=A1*2+B3).  Editing a cell
    recomputes every cell that depends on it; edits that would create a
    circular reference are rejected.
    """


# ---------------------------------------------------------------------------
# New
# ---------------------------------------------------------------------------


@main.command()
@click.argument("directory", type=click.Path())
def new(directory: str) -> None:
    """Scaffold a new project at DIRECTORY."""
    from gridcalc.project import scaffold_project

    try:
        result = scaffold_project(Path(directory))
    except FileExistsError as e:
        raise click.ClickException(str(e))
    click.echo(f"Created project at {result}")


# ---------------------------------------------------------------------------
# Shell
# ---------------------------------------------------------------------------


@main.command()
@click.argument("file", required=False, type=click.Path(dir_okay=False))
@click.option("--project", "project", default=".", type=click.Path(file_okay=False), help="Project directory.")
def shell(file: str | None, project: str) -> None:
    """Edit a sheet interactively.

    FILE is loaded if it exists and is the default target of save/load;
    without FILE the project's configured sheet file is used.
    """
    from gridcalc.persistence import load_sheet
    from gridcalc.project import load_project_config, sheet_path
    from gridcalc.shell import HELP_TEXT, Session
    from gridcalc.sheet import Sheet

    project_dir = Path(project)
    try:
        cfg = load_project_config(project_dir)
    except ValueError as e:
        raise click.ClickException(str(e))
    _configure_logging(project_dir)

    target = Path(file) if file else sheet_path(project_dir, cfg)
    sheet = Sheet()
    if target.exists():
        try:
            sheet = load_sheet(target)
        except SheetError as e:
            raise click.ClickException(f"Could not load {target}: {e}")

    session = Session(sheet, project_dir=project_dir, config=cfg, sheet_file=target)

    click.echo(f"gridcalc {__version__}")
    click.echo(HELP_TEXT)
    session.start()
    try:
        while True:
            click.echo()
            click.echo(session.render())
            try:
                line = click.prompt(">", default="", show_default=False, prompt_suffix=" ")
            except click.Abort:
                line = "quit"
            result = session.execute(line)
            if result.output:
                click.echo(result.output)
            if result.quit:
                break
    finally:
        session.end()
    click.echo("Bye!")


# ---------------------------------------------------------------------------
# One-shot commands
# ---------------------------------------------------------------------------


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--no-deps", is_flag=True, help="Omit the dependency links.")
def show(file: str, no_deps: bool) -> None:
    """Show the cells of a saved sheet."""
    sheet = _load(file)
    click.echo(sheet.render(show_dependencies=not no_deps), nl=False)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.argument("cell_id")
def get(file: str, cell_id: str) -> None:
    """Print the displayed value of CELL_ID."""
    from gridcalc.sheet import validate_cell_id

    sheet = _load(file)
    try:
        validate_cell_id(cell_id)
    except SheetError as e:
        raise click.ClickException(str(e))
    click.echo(sheet.display_text(cell_id))


@main.command("set", context_settings={"ignore_unknown_options": True})
@click.argument("file", type=click.Path(dir_okay=False))
@click.argument("cell_id")
@click.argument("contents", nargs=-1)
def set_cmd(file: str, cell_id: str, contents: tuple[str, ...]) -> None:
    """Set CELL_ID to CONTENTS in FILE and save.

    FILE is created if missing.  Empty CONTENTS deletes the cell.
    """
    from gridcalc.sheet import Sheet

    sheet = _load(file) if Path(file).exists() else Sheet()
    text = " ".join(contents)
    try:
        updated = sheet.set_cell(cell_id, text)
    except SheetError as e:
        raise click.ClickException(f"Could not set cell {cell_id} to {text}:\n{e}")
    _save(sheet, file)
    click.echo(f"{cell_id} = {sheet.display_text(cell_id)}")
    for dep in updated:
        click.echo(f"  {dep} = {sheet.display_text(dep)}")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.argument("cell_id")
def delete(file: str, cell_id: str) -> None:
    """Delete CELL_ID from FILE and save."""
    sheet = _load(file)
    try:
        updated = sheet.delete_cell(cell_id)
    except SheetError as e:
        raise click.ClickException(str(e))
    _save(sheet, file)
    click.echo(f"Deleted {cell_id}")
    for dep in updated:
        click.echo(f"  {dep} = {sheet.display_text(dep)}")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def check(file: str) -> None:
    """Verify that FILE loads; list cells in error."""
    sheet = _load(file)
    errors = sheet.error_cells()
    click.echo(f"{file}: {len(sheet)} cells, {len(errors)} in error")
    for cell_id in errors:
        cell = sheet.get_cell(cell_id)
        reason = getattr(cell, "error_message", None) or ""
        click.echo(f"  {cell_id}: {reason}")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command("events")
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--session-id", default=None, help="Filter by session ID.")
@click.option("--cell", "cell_id", default=None, help="Filter by cell identifier.")
@click.option("--limit", default=100, type=int, help="Maximum events to show.")
def events_cmd(
    directory: str,
    level: str | None,
    event_type: str | None,
    session_id: str | None,
    cell_id: str | None,
    limit: int,
) -> None:
    """Show structured event log for DIRECTORY."""
    from gridcalc.logging.sink import EventSink

    sink = EventSink(Path(directory))
    events = sink.read_global(
        level=level,
        event_type=event_type,
        session_id=session_id,
        cell_id=cell_id,
        limit=limit,
    )

    if not events:
        click.echo("No events found.")
        return

    for evt in events:
        ts = evt.get("ts", "")
        lvl = evt.get("level", "").upper()
        etype = evt.get("event_type", "")
        msg = evt.get("message", "")
        err = evt.get("error_code")
        line = f"[{ts}] {lvl:7s} {etype}: {msg}"
        if err:
            line += f"  ({err})"
        click.echo(line)
