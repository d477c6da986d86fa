from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import NoReturn, Optional

import typer

from gantt_stream.core.apply.apply_action import apply_all
from gantt_stream.core.config import DEFAULT_CONFIG, EngineConfig, EngineConfigError, load_and_merge
from gantt_stream.core.dates import parse_date
from gantt_stream.core.edit.propagate import DateUpdate, edit_actions, on_section_moved, on_task_moved, on_task_resized
from gantt_stream.core.edit.section_resize import resize_section
from gantt_stream.core.errors import PlanError, PlanLoadError, PlanValidationError, sorted_errors
from gantt_stream.core.io.plan_io import dump_plan, load_plan, serialize_plan
from gantt_stream.core.io.render_gantt import render_gantt
from gantt_stream.core.lint.lint_plan import lint_plan
from gantt_stream.core.model import Plan
from gantt_stream.core.stream.pipeline import build_plan, chunk_text
from gantt_stream.core.validate.validate_gantt import summarize_plan, validate_gantt

app = typer.Typer(add_completion=False, no_args_is_help=True)

TOOL = "gantt-stream"


@app.callback()
def _callback(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level: DEBUG|INFO|WARNING|ERROR"),
) -> None:
    """Streaming gantt chart parser and dependency engine."""
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise typer.BadParameter(f"unknown log level: {log_level}", param_hint="--log-level")
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", force=True)


@app.command("parse")
def parse(
    path: str = typer.Argument(..., help="Path to a markdown/mermaid text file"),
    out: Optional[str] = typer.Option(None, "--out", help="Write the plan to this .json/.yaml file"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Characters per replayed fragment"),
    config_file: Optional[str] = typer.Option(None, "--config", help="Optional YAML engine config"),
    fenced: Optional[bool] = typer.Option(
        None,
        "--fenced/--bare",
        help="Only read chart lines inside ``` fences (default from config)",
    ),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Replay a text file as a fragment stream and build the plan."""
    _check_format(format, "parse")
    config = _load_config(config_file)
    if fenced is not None:
        config = replace(config, fenced=fenced)
    size = chunk_size if chunk_size is not None else config.chunk_size
    if size < 1:
        _fail([_invalid_option("E_PARSE_CHUNK_SIZE", "--chunk-size must be >= 1", "chunk_size")], 2)

    text = _read_text(path)
    outcome = build_plan(chunk_text(text, size), config)

    if out:
        dump_plan(outcome.plan, out)

    if format == "json":
        summary = outcome.summary
        payload = {
            "tool": TOOL,
            "command": "parse",
            "ok": True,
            "warning_count": len(outcome.warnings),
            "warnings": [w.to_item() for w in sorted_errors(outcome.warnings)],
            "summary": {
                "headers": [t.summary for t in summary.thinking],
                "tasks": summary.sketch.total_tasks,
                "milestones": summary.sketch.total_milestones,
                "duration_days": summary.sketch.duration,
                "actions": len(outcome.actions),
            },
            "plan": serialize_plan(outcome.plan),
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    _print_errors(outcome.warnings)
    typer.echo(summarize_plan(outcome.plan))
    if out:
        typer.echo(f"OK: wrote plan to {out}")


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a markdown/mermaid text file"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Check gantt chart syntax line by line."""
    _check_format(format, "validate")

    try:
        text = _read_text_or_raise(path)
    except PlanLoadError as e:
        if format == "json":
            _emit_json("validate", False, [e], 1)
        _fail([e], 1)

    errors = validate_gantt(text, file=path)
    if errors:
        if format == "json":
            _emit_json("validate", False, list(errors), 2)
        _fail(list(errors), 2)

    if format == "json":
        _emit_json("validate", True, [], 0)
    config = replace(DEFAULT_CONFIG, fenced="```" in text)
    typer.echo(summarize_plan(build_plan([text], config).plan))


@app.command("lint")
def lint(
    path: str = typer.Argument(..., help="Path to a saved plan (.json/.yaml/.yml)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Check dependency ordering in a saved plan."""
    _check_format(format, "lint")

    try:
        plan = load_plan(path)
    except PlanLoadError as e:
        if format == "json":
            _emit_json("lint", False, [e], 1)
        _fail([e], 1)

    errors: list[PlanError] = list(lint_plan(plan, file=path))
    if format == "json":
        _emit_json("lint", not errors, errors, 2 if errors else 0)
    if errors:
        _fail(errors, 2)
    typer.echo("OK: lint passed")


@app.command("move")
def move(
    path: str = typer.Argument(..., help="Path to a saved plan"),
    task_id: str = typer.Argument(..., help="Task or milestone id"),
    new_start: str = typer.Argument(..., help="New start date (YYYY-MM-DD)"),
    out: str = typer.Option(..., "--out", help="Path to write the updated plan"),
) -> None:
    """Move a task and cascade the change through its dependencies."""
    plan = _load_or_exit(path)
    start = _date_or_exit(new_start, "new_start")
    _require_task(plan, task_id, path)
    _write_edit(plan, on_task_moved(plan.sections, task_id, start), out)


@app.command("resize-task")
def resize_task(
    path: str = typer.Argument(..., help="Path to a saved plan"),
    task_id: str = typer.Argument(..., help="Task id"),
    days: int = typer.Argument(..., help="New duration in days (minimum 1)"),
    out: str = typer.Option(..., "--out", help="Path to write the updated plan"),
) -> None:
    """Change a task's duration and push its dependents."""
    plan = _load_or_exit(path)
    _require_task(plan, task_id, path)
    _write_edit(plan, on_task_resized(plan.sections, task_id, days), out)


@app.command("move-section")
def move_section(
    path: str = typer.Argument(..., help="Path to a saved plan"),
    section: str = typer.Argument(..., help="Section name"),
    new_start: str = typer.Argument(..., help="New start of the section's earliest task (YYYY-MM-DD)"),
    out: str = typer.Option(..., "--out", help="Path to write the updated plan"),
) -> None:
    """Shift every task in a section by the same number of days."""
    plan = _load_or_exit(path)
    start = _date_or_exit(new_start, "new_start")
    _require_section(plan, section, path)
    _write_edit(plan, on_section_moved(plan.sections, section, start), out)


@app.command("resize-section")
def resize_section_cmd(
    path: str = typer.Argument(..., help="Path to a saved plan"),
    section: str = typer.Argument(..., help="Section name"),
    ratio: float = typer.Argument(..., help="Scale factor for the section's span (e.g. 0.5, 2)"),
    out: str = typer.Option(..., "--out", help="Path to write the updated plan"),
) -> None:
    """Rescale a section proportionally and push dependents outside it."""
    plan = _load_or_exit(path)
    if ratio < 0:
        _fail([_invalid_option("E_RESIZE_RATIO", "ratio must be >= 0", "ratio")], 2)
    _require_section(plan, section, path)
    _write_edit(plan, resize_section(plan.sections, section, ratio).all_updates, out)


@app.command("render")
def render(
    path: str = typer.Argument(..., help="Path to a saved plan"),
    title: Optional[str] = typer.Option(None, "--title", help="Chart title"),
) -> None:
    """Print a saved plan as a mermaid gantt chart."""
    plan = _load_or_exit(path)
    typer.echo(render_gantt(plan, title=title), nl=False)


def _write_edit(plan: Plan, updates: list[DateUpdate], out: str) -> None:
    result = apply_all(plan, edit_actions(updates))
    _print_errors(result.warnings)
    dump_plan(result.plan, out)
    typer.echo(f"OK: wrote {out} (updates={len(updates)})")


def _load_config(config_file: Optional[str]) -> EngineConfig:
    try:
        return load_and_merge(config_file)
    except FileNotFoundError:
        _fail(
            [
                PlanLoadError(
                    code="E_CONFIG_FILE_NOT_FOUND",
                    message=f"config file not found: {config_file}",
                    file=None,
                    path="config",
                )
            ],
            1,
        )
    except EngineConfigError as e:
        _fail(
            [
                PlanValidationError(
                    code="E_CONFIG_FILE_INVALID",
                    message=str(e),
                    file=config_file,
                    path="config",
                )
            ],
            2,
        )


def _read_text_or_raise(path: str) -> str:
    p = Path(path)
    if not p.exists():
        raise PlanLoadError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p))
    return p.read_text(encoding="utf-8")


def _read_text(path: str) -> str:
    try:
        return _read_text_or_raise(path)
    except PlanLoadError as e:
        _fail([e], 1)


def _load_or_exit(path: str) -> Plan:
    try:
        return load_plan(path)
    except PlanLoadError as e:
        _fail([e], 1)


def _date_or_exit(value: str, where: str):
    parsed = parse_date(value)
    if parsed is None:
        _fail([_invalid_option("E_INVALID_DATE", f"invalid date: {value} (expected YYYY-MM-DD)", where)], 2)
    return parsed


def _require_task(plan: Plan, task_id: str, file: str) -> None:
    if plan.find_task(task_id) is None:
        _fail(
            [
                PlanValidationError(
                    code="E_UNKNOWN_TASK",
                    message=f"no task with id: {task_id}",
                    file=file,
                    path="task_id",
                )
            ],
            2,
        )


def _require_section(plan: Plan, name: str, file: str) -> None:
    if name not in plan.section_names():
        _fail(
            [
                PlanValidationError(
                    code="E_UNKNOWN_SECTION",
                    message=f"no section named: {name} (choose one of: {', '.join(plan.section_names())})",
                    file=file,
                    path="section",
                )
            ],
            2,
        )


def _check_format(format: str, command: str) -> None:
    if format not in ("text", "json"):
        _fail(
            [
                _invalid_option(
                    f"E_{command.upper()}_UNKNOWN_FORMAT",
                    f"unknown format: {format} (choose one of: text, json)",
                    "format",
                )
            ],
            2,
        )


def _invalid_option(code: str, message: str, path: str) -> PlanValidationError:
    return PlanValidationError(code=code, message=message, file=None, path=path)


def _emit_json(command: str, ok: bool, errors: list[PlanError], exit_code: int) -> None:
    payload = {
        "tool": TOOL,
        "command": command,
        "ok": ok,
        "error_count": len(errors),
        "errors": [e.to_item() for e in sorted_errors(errors)],
    }
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    raise typer.Exit(code=exit_code)


def _fail(errors: list[PlanError], exit_code: int) -> NoReturn:
    _print_errors(errors)
    raise typer.Exit(code=exit_code)


def _print_errors(errors: list[PlanError]) -> None:
    for e in sorted_errors(errors):
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name=TOOL)


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
