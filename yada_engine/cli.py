from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from yada_engine.core.config import ConfigError, ProjectConfig, find_project_root, load_config
from yada_engine.core.errors import DPLoadError, PlanStoreError, YadaError
from yada_engine.core.graph.graph import build_graph, detect_cycles
from yada_engine.core.io.load_dps import load_all, load_by_name
from yada_engine.core.logs import configure_logging
from yada_engine.core.model import CompiledPlan
from yada_engine.core.render.mermaid import mermaid_definition
from yada_engine.core.resolve.resolver import compile_project
from yada_engine.core.state.store import (
    get_status,
    mark_one,
    mark_through,
    plan_path,
    read_plan,
    reset_all,
    write_plan,
)
from yada_engine.core.validate.validate_dps import validate_all, validate_dp

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()


@dataclass(frozen=True)
class Project:
    root: Path
    config: ProjectConfig


@app.callback()
def _callback(
    ctx: typer.Context,
    root: Optional[Path] = typer.Option(
        None,
        "--root",
        envvar="YADA_ROOT",
        help="Project root holding dps/ (default: discovered from the current directory)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Verbose output"),
) -> None:
    """YADA: compile Design Prescriptions into a leveled workflow and track progress."""
    configure_logging(verbose)
    project_root = find_project_root(root)
    try:
        config = load_config(project_root)
    except ConfigError as e:
        typer.echo(f"{project_root}: E_CONFIG_INVALID: {e}", err=True)
        raise typer.Exit(code=1)
    ctx.obj = Project(root=project_root, config=config)


@app.command("compile")
def compile_cmd(
    ctx: typer.Context,
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Parse and validate all DPs, resolve the graph and write the workflow file."""
    project: Project = ctx.obj
    _check_format(format, "E_COMPILE_UNKNOWN_FORMAT")

    result = compile_project(project.root, project.config)
    if result.errors or result.plan is None:
        exit_code = 1 if any(isinstance(e, DPLoadError) for e in result.errors) else 2
        if format == "json":
            _emit_json("compile", False, exit_code, errors=result.errors, warnings=result.warnings)
        _print_errors(result.errors)
        raise typer.Exit(code=exit_code)

    plan = result.plan
    if not plan.levels:
        if format == "json":
            _emit_json("compile", True, 0, warnings=result.warnings, summary={"tasks": 0, "levels": 0})
        typer.echo(f"No DPs found in {project.config.dps_dir}/ directory.")
        return

    _write(project, plan)

    if format == "json":
        _emit_json(
            "compile",
            True,
            0,
            warnings=result.warnings,
            summary={"tasks": len(plan.entries()), "levels": len(plan.levels), "plan": plan.to_dict()},
        )

    _print_errors(result.warnings)
    typer.echo(f"OK: {len(plan.entries())} tasks across {len(plan.levels)} levels")
    for level in plan.levels:
        tag = " (parallel)" if len(level.entries) > 1 else ""
        typer.echo(f"Level {level.level}{tag}:")
        for entry in level.entries:
            typer.echo(f"  - {entry.id} ({entry.ref})")
    typer.echo(f"Wrote {plan_path(project.root, project.config)}")


@app.command("check")
def check_cmd(
    ctx: typer.Context,
    dp_id: Optional[str] = typer.Argument(None, help="Check a single DP by id (default: all)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate DPs for errors and missing dependencies."""
    project: Project = ctx.obj
    _check_format(format, "E_CHECK_UNKNOWN_FORMAT")

    parsed = load_all(project.root, project.config)
    if dp_id is not None:
        try:
            dp = load_by_name(project.root, dp_id, project.config)
        except DPLoadError as e:
            if format == "json":
                _emit_json("check", False, 1, errors=[e])
            _print_errors([e])
            raise typer.Exit(code=1)
        others = [d for d in parsed.dps if d.id != dp.id] + [dp]
        validation = validate_dp(dp, others, project.config)
        label = dp.id
    else:
        if parsed.errors:
            if format == "json":
                _emit_json("check", False, 1, errors=parsed.errors)
            _print_errors(parsed.errors)
            raise typer.Exit(code=1)
        validation = validate_all(parsed.dps, project.config)
        label = f"All {len(parsed.dps)} DPs"

    if format == "json":
        _emit_json(
            "check",
            validation.valid,
            0 if validation.valid else 2,
            errors=validation.errors,
            warnings=validation.warnings,
        )

    if not validation.valid:
        _print_errors(validation.errors)
        raise typer.Exit(code=2)

    _print_errors(validation.warnings)
    if dp_id is None and not parsed.dps:
        typer.echo("No DPs found.")
        return
    typer.echo(f"OK: {label} valid")


@app.command("mark")
def mark_cmd(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task id to mark as completed"),
    through: bool = typer.Option(
        False,
        "--through",
        help="Complete every task up to and including this one; later completed tasks revert to pending",
    ),
) -> None:
    """Mark a task as completed."""
    project: Project = ctx.obj
    try:
        if through:
            result = mark_through(project.root, task_id, project.config)
        else:
            result = mark_one(project.root, task_id, project.config)
    except PlanStoreError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    if not result.valid:
        _print_errors(result.errors)
        if any(e.code == "E_TASK_NOT_FOUND" for e in result.errors):
            typer.echo('Run "yada status" to see available tasks.', err=True)
        raise typer.Exit(code=1)

    if through:
        typer.echo(f"OK: marked tasks through '{task_id}' as completed")
    else:
        typer.echo(f"OK: marked '{task_id}' as completed")


@app.command("status")
def status_cmd(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON"),
) -> None:
    """Show completed and pending tasks."""
    project: Project = ctx.obj
    try:
        plan = read_plan(project.root, project.config)
        summary = get_status(project.root, project.config)
    except PlanStoreError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(json.dumps(summary.to_dict(), indent=2, sort_keys=True))
        return

    if plan is None:
        typer.echo(f"No {project.config.state_file} file found.")
        typer.echo('Run "yada compile" to generate the workflow.')
        return

    typer.echo(f"Progress: {summary.completed}/{summary.total} ({summary.percent_complete}%)")
    if summary.next_task:
        typer.echo(f"Next: {summary.next_task.id} ({summary.next_task.ref})")
    console.print(_status_table(plan))


@app.command("reset")
def reset_cmd(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Skip the confirmation hint and reset"),
) -> None:
    """Reset all completed tasks to pending."""
    project: Project = ctx.obj
    if not force:
        typer.echo("This will reset all completed tasks to pending.")
        typer.echo("Use --force to skip this confirmation.")
        return

    try:
        result = reset_all(project.root, project.config)
    except PlanStoreError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    if result.warnings:
        _print_errors(result.warnings)
        return
    typer.echo("OK: all tasks reset to pending")


@app.command("graph")
def graph_cmd(
    ctx: typer.Context,
    out: Optional[Path] = typer.Option(None, "--out", help="Write the Mermaid definition to this file"),
) -> None:
    """Print the dependency graph as a Mermaid flowchart."""
    project: Project = ctx.obj
    parsed = load_all(project.root, project.config)
    if parsed.errors:
        _print_errors(parsed.errors)
        raise typer.Exit(code=1)

    graph = build_graph(parsed.dps)
    cycles = detect_cycles(graph)
    if cycles.errors:
        _print_errors(cycles.errors)
        raise typer.Exit(code=2)

    text = mermaid_definition(graph)
    if out is None:
        typer.echo(text, nl=False)
        return
    if str(out.parent) not in (".", ""):
        out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text, encoding="utf-8")
    typer.echo(f"OK: wrote {out}")


def _write(project: Project, plan: CompiledPlan) -> None:
    try:
        write_plan(project.root, plan, project.config)
    except PlanStoreError as e:
        _print_errors([e])
        raise typer.Exit(code=1)


def _status_table(plan: CompiledPlan) -> Table:
    table = Table(title="Task Status")
    table.add_column("Level", justify="right")
    table.add_column("Id")
    table.add_column("Ref")
    table.add_column("Status")
    for level in plan.levels:
        for entry in level.entries:
            table.add_row(str(level.level), entry.id, entry.ref, entry.status)
    return table


def _check_format(format: str, code: str) -> None:
    if format not in ("text", "json"):
        _print_errors(
            [
                YadaError(
                    code=code,
                    message=f"unknown format: {format} (choose one of: text, json)",
                    path="format",
                )
            ]
        )
        raise typer.Exit(code=2)


def _to_item(e: YadaError) -> dict:
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": e.severity,
    }


def _emit_json(
    command: str,
    ok: bool,
    exit_code: int,
    *,
    errors: Optional[list] = None,
    warnings: Optional[list] = None,
    summary: Optional[dict] = None,
) -> None:
    errors = errors or []
    warnings = warnings or []
    payload = {
        "tool": "yada",
        "command": command,
        "ok": ok,
        "error_count": len(errors),
        "errors": [_to_item(e) for e in errors],
        "warnings": [_to_item(w) for w in warnings],
        "summary": summary,
    }
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    raise typer.Exit(code=exit_code)


def _print_errors(errors: list) -> None:
    for e in sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code)):
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="yada")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
