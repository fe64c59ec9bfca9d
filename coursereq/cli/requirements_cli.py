"""CLI for inspecting requirement groups and scoring students from a course fixture."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from coursereq.core.config import EngineConfig, load_course_fixture, load_engine_config
from coursereq.core.errors import FormulaError, ParseError, RequirementEngineError
from coursereq.core.policy import parse_aggregation_flag
from coursereq.formula.evaluator import evaluate as evaluate_formula
from coursereq.scoring.aggregator import VerdictState
from coursereq.scoring.results_view import CourseResultsView, export_csv
from coursereq.service import RequirementService, validate_formula

CONFIG_ENV_VAR = "COURSEREQ_CONFIG"

app = typer.Typer(help="Inspect requirement groups, bonus formulas, and course results.")
console = Console()

STATE_STYLES = {
    VerdictState.PASSED: "[green]passed[/green]",
    VerdictState.FAILED: "[red]failed[/red]",
    VerdictState.UNEVALUABLE: "[yellow]unevaluable[/yellow]",
}


def _configure_logging(verbose: bool, config: EngineConfig) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.log_level)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _load_config(path: Path | None) -> EngineConfig:
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else None
    if path is None:
        return EngineConfig()
    try:
        return load_engine_config(path)
    except FileNotFoundError:
        raise typer.BadParameter(f"Engine config not found at {path}") from None
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _load_service(course_file: Path, config: EngineConfig) -> tuple[RequirementService, str, List[str]]:
    if not course_file.exists():
        raise typer.BadParameter(f"Course file not found at {course_file}")
    try:
        fixture = load_course_fixture(course_file)
    except ValueError as exc:
        typer.echo(f"{exc}: {exc.__cause__}" if exc.__cause__ else str(exc), err=True)
        raise typer.Exit(code=2) from exc
    try:
        service = RequirementService.from_fixture(fixture, config=config)
    except RequirementEngineError as exc:
        typer.echo(f"Invalid requirements in {course_file}: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    return service, fixture.course_id, fixture.student_ids


def _format_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def _parse_bindings(raw: List[str]) -> Dict[str, float]:
    bindings: Dict[str, float] = {}
    for item in raw:
        task_id, sep, value = item.partition("=")
        if not sep or not task_id.strip():
            raise typer.BadParameter(f"Binding '{item}' must look like TASK_ID=VALUE")
        try:
            bindings[task_id.strip()] = float(value)
        except ValueError:
            raise typer.BadParameter(f"Binding '{item}' has a non-numeric value") from None
    return bindings


@app.command("validate-formula")
def validate_formula_command(
    formula: str = typer.Argument(..., help="Bonus formula, e.g. 'task(1) + task(2)'."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of text."),
) -> None:
    """Check that a formula parses; exits with code 2 on a syntax error."""

    check = validate_formula(formula)
    if as_json:
        payload: Dict[str, Any] = {"valid": check.valid, "tasks": sorted(check.referenced)}
        if check.error is not None:
            payload["error"] = {"message": check.error.reason, "position": check.error.position}
        typer.echo(json.dumps(payload, indent=2))
    elif check.valid:
        if not formula.strip():
            referenced = "all group tasks (blank formula)"
        else:
            referenced = ", ".join(sorted(check.referenced)) or "none"
        console.print(f"[green]Formula is valid.[/green] Referenced tasks: {referenced}")
    else:
        console.print(f"[red]{check.error.reason}[/red] at position {check.error.position}")
        console.print(f"  {formula}\n  {' ' * check.error.position}^")
    if not check.valid:
        raise typer.Exit(code=2)


@app.command("evaluate")
def evaluate_command(
    formula: str = typer.Argument(..., help="Bonus formula to evaluate."),
    bind: List[str] = typer.Option([], "--bind", "-b", help="Task score binding, TASK_ID=VALUE (repeatable)."),
) -> None:
    """Evaluate a formula against explicit task bindings."""

    bindings = _parse_bindings(bind)
    try:
        value = evaluate_formula(formula, bindings)
    except ParseError as exc:
        typer.echo(f"Parse error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    except FormulaError as exc:
        typer.echo(f"Evaluation failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(_format_value(value))


@app.command("groups")
def groups_command(
    course_file: Path = typer.Argument(..., help="Course fixture YAML."),
    config_path: Optional[Path] = typer.Option(None, "--config", help=f"Engine config YAML (defaults to ${CONFIG_ENV_VAR})."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """List requirement groups in creation order, plus unassigned tasks."""

    config = _load_config(config_path)
    _configure_logging(verbose, config)
    service, course_id, _ = _load_service(course_file, config)
    groups = service.list_groups(course_id)
    unassigned = service.unassigned_tasks(course_id)
    if as_json:
        payload = {
            "course_id": course_id,
            "groups": [group.to_dict() for group in groups],
            "unassigned": unassigned,
            "duplicate_names": service.store.duplicate_names(course_id),
        }
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    table = Table("ID", "Name", "Tasks", "Formula", "Threshold", "Points")
    for group in groups:
        table.add_row(
            group.id,
            group.name,
            ", ".join(group.tasks) or "-",
            group.formula or "[dim]sum of tasks[/dim]",
            _format_value(group.threshold),
            "hidden" if group.hide_points else "shown",
        )
    console.print(table)
    if unassigned:
        console.print(f"[dim]Unassigned tasks: {', '.join(unassigned)}[/dim]")
    for name in service.store.duplicate_names(course_id):
        console.print(f"[yellow]More than one group is named '{name}'.[/yellow]")


@app.command("score")
def score_command(
    course_file: Path = typer.Argument(..., help="Course fixture YAML."),
    student: str = typer.Argument(..., help="Student identifier."),
    config_path: Optional[Path] = typer.Option(None, "--config", help=f"Engine config YAML (defaults to ${CONFIG_ENV_VAR})."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Show one student's verdict for every requirement group."""

    config = _load_config(config_path)
    _configure_logging(verbose, config)
    service, course_id, _ = _load_service(course_file, config)
    verdicts = service.score_student(course_id, student)
    if as_json:
        typer.echo(json.dumps([verdict.to_dict() for verdict in verdicts], indent=2, ensure_ascii=False))
        return

    table = Table("Requirement", "State", "Bonus", "Threshold", "Inputs")
    for verdict in verdicts:
        inputs = ", ".join(f"{task}={_format_value(value)}" for task, value in verdict.inputs.items()) or "-"
        state = STATE_STYLES[verdict.state]
        if verdict.error is not None:
            state += f" ({verdict.error})"
        table.add_row(
            verdict.group_name,
            state,
            "hidden" if verdict.hide_points else _format_value(verdict.value),
            _format_value(verdict.threshold),
            inputs,
        )
    console.print(table)


def _print_results(view: CourseResultsView) -> None:
    headers = ["Student"] + [name for _, name in view.groups]
    headers += [column.name for column in view.task_columns]
    headers += ["All passed", "Bonus"]
    table = Table(*headers)
    for row in view.rows:
        by_group = {cell.group_id: cell for cell in row.cells}
        cells = []
        for group_id, _ in view.groups:
            cell = by_group.get(group_id)
            if cell is None:
                cells.append("-")
                continue
            text = STATE_STYLES[cell.state]
            if cell.display_bonus is not None:
                text += f" {_format_value(cell.display_bonus)}"
            cells.append(text)
        cells += [_format_value(row.task_scores.get(column.task_id)) for column in view.task_columns]
        cells += ["yes" if row.passed_all else "no", _format_value(row.total_bonus)]
        table.add_row(row.student_id, *cells)
    console.print(table)


@app.command("results")
def results_command(
    course_file: Path = typer.Argument(..., help="Course fixture YAML."),
    config_path: Optional[Path] = typer.Option(None, "--config", help=f"Engine config YAML (defaults to ${CONFIG_ENV_VAR})."),
    aggregation: Optional[str] = typer.Option(
        None, "--aggregation", "-a", help="Bonus total policy: sum-passing or all-or-nothing."
    ),
    details: bool = typer.Option(False, "--details", help="Add per-task score columns."),
    csv_path: Optional[Path] = typer.Option(None, "--csv", help="Also write the matrix to this CSV file."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Show the course results matrix for every student with submissions."""

    config = _load_config(config_path)
    _configure_logging(verbose, config)
    service, course_id, student_ids = _load_service(course_file, config)

    overrides: Dict[str, Any] = {}
    if aggregation is not None:
        try:
            overrides["aggregation"] = parse_aggregation_flag(aggregation)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
    if details:
        overrides["include_details"] = True
    view_config = config.results.model_copy(update=overrides)

    view = service.course_results(course_id, student_ids, view_config)
    if csv_path is not None:
        export_csv(view, csv_path.expanduser().resolve())
    if as_json:
        typer.echo(json.dumps(view.to_dict(), indent=2, ensure_ascii=False))
        return
    if not view.rows:
        console.print("[yellow]No submission results found for this course.[/yellow]")
        return
    _print_results(view)
    if csv_path is not None:
        console.print(f"[dim]Wrote {csv_path}[/dim]")


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    app()
