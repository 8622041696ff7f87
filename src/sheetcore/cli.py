"""Command-line interface for sheetcore."""

from __future__ import annotations

import json
from pathlib import Path

import click

from sheetcore import __version__


@click.group()
@click.version_option(version=__version__, prog_name="sheetcore")
def main() -> None:
    """sheetcore -- reactive spreadsheet formula engine.

    Edit a cell -> dependents recalculate -> sheet is saved
    """


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _parse_vars(items: tuple[str, ...]) -> dict[str, float]:
    bindings: dict[str, float] = {}
    for item in items:
        if "=" not in item:
            raise click.ClickException(f"Invalid --var format: {item!r}. Use NAME=VALUE.")
        name, raw = item.split("=", 1)
        try:
            bindings[name.strip()] = float(raw)
        except ValueError:
            raise click.ClickException(f"Invalid --var value for {name!r}: {raw!r} is not a number.")
    return bindings


def _open_sheet(project_dir: Path):
    """Load the project's sheet into a grid sized from the project config."""
    from sheetcore.formulas.errors import CircularDependencyError, SheetFormatError
    from sheetcore.persistence import load_sheet
    from sheetcore.project import load_project_config, sheet_path
    from sheetcore.spreadsheet import Spreadsheet

    config = load_project_config(project_dir)
    path = sheet_path(project_dir, config)
    sheet = Spreadsheet(int(config["rows"]), int(config["columns"]))
    try:
        load_sheet(sheet, path)
    except FileNotFoundError:
        raise click.ClickException(f"No sheet found at {path}. Run: sheetcore new {project_dir}")
    except (SheetFormatError, CircularDependencyError) as exc:
        raise click.ClickException(str(exc))
    return sheet, path


# ---------------------------------------------------------------------------
# New
# ---------------------------------------------------------------------------


@main.command()
@click.argument("directory", type=click.Path())
def new(directory: str) -> None:
    """Scaffold a new project at DIRECTORY."""
    from sheetcore.project import scaffold_project

    try:
        path = scaffold_project(Path(directory))
    except FileExistsError as exc:
        raise click.ClickException(str(exc))
    click.echo(f"Created project at {path}")


# ---------------------------------------------------------------------------
# Eval
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("expression")
@click.option("--var", "variables", multiple=True, help="Bind a variable as NAME=VALUE.")
def eval_cmd(expression: str, variables: tuple[str, ...]) -> None:
    """Evaluate a bare EXPRESSION (no leading '=') and print the result."""
    from sheetcore.formulas import ExpressionTree, FormulaError
    from sheetcore.spreadsheet import format_number

    bindings = _parse_vars(variables)
    try:
        tree = ExpressionTree(expression)
        for name, value in bindings.items():
            tree.set_variable(name, value)
        result = tree.evaluate()
    except FormulaError as exc:
        raise click.ClickException(str(exc))
    click.echo(format_number(result))


# ---------------------------------------------------------------------------
# Set / Show
# ---------------------------------------------------------------------------


@main.command("set")
@click.argument("directory", type=click.Path(exists=True))
@click.argument("cell")
@click.argument("text")
def set_cmd(directory: str, cell: str, text: str) -> None:
    """Commit TEXT into CELL of the sheet in DIRECTORY and save it."""
    from sheetcore.formulas.errors import CellEvaluationError, InvalidCellReferenceError
    from sheetcore.logging.events import set_log_dir
    from sheetcore.persistence import save_sheet

    project_dir = Path(directory)
    set_log_dir(project_dir)
    sheet, path = _open_sheet(project_dir)

    try:
        target = sheet.get_cell_by_name(cell)
    except InvalidCellReferenceError as exc:
        raise click.ClickException(str(exc))

    error: CellEvaluationError | None = None
    try:
        target.text = text
    except CellEvaluationError as exc:
        error = exc

    save_sheet(sheet, path)
    click.echo(f"{target.name} = {target.value}")
    if error is not None:
        click.echo(f"Error: {error}", err=True)
        raise SystemExit(2)


@main.command()
@click.argument("directory", type=click.Path(exists=True))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def show(directory: str, as_json: bool) -> None:
    """List every modified cell of the sheet in DIRECTORY."""
    from sheetcore.logging.events import set_log_dir

    project_dir = Path(directory)
    set_log_dir(project_dir)
    sheet, _ = _open_sheet(project_dir)
    rows = [
        {"name": c.name, "text": c.text, "value": c.value, "bg_color": c.bg_color}
        for c in sheet.modified_cells()
    ]

    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return

    if not rows:
        click.echo("Sheet is empty.")
        return
    for row in rows:
        click.echo(f"{row['name']:>6}  {row['text']!r:30s}  {row['value']}")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command("events")
@click.argument("directory", type=click.Path(exists=True))
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--cell", default=None, help="Filter by cell name.")
@click.option("--limit", default=100, type=int, help="Maximum events to show.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def events_cmd(
    directory: str,
    level: str | None,
    event_type: str | None,
    cell: str | None,
    limit: int,
    as_json: bool,
) -> None:
    """Show structured event log for DIRECTORY."""
    from sheetcore.logging.sink import EventSink

    sink = EventSink(Path(directory))
    events = sink.read_events(level=level, event_type=event_type, cell=cell, limit=limit)

    if as_json:
        click.echo(json.dumps(events, indent=2))
        return

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
