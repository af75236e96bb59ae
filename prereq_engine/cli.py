"""CLI entry point for the prerequisite engine."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from prereq_engine.autofix.autofix import FIX_TYPES
from prereq_engine.engine import PrerequisiteEngine
from prereq_engine.errors import CycleDetectedError, PrereqEngineError
from prereq_engine.models.config import EngineConfig
from prereq_engine.models.validation import ValidationResult

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_engine(config: str) -> PrerequisiteEngine:
    try:
        cfg = EngineConfig.load(config)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Run 'prereq-engine init' to create a default config.")
        sys.exit(1)
    return PrerequisiteEngine(cfg)


def _fail(error: Exception) -> None:
    console.print(f"[red]{error}[/red]")
    sys.exit(1)


def _print_validation(result: ValidationResult) -> None:
    status = "[green]valid[/green]" if result.valid else "[red]invalid[/red]"
    console.print(f"Validation: {status} ({len(result.errors)} errors, {len(result.warnings)} warnings)")
    if result.issues:
        table = Table(title="Issues")
        table.add_column("Severity", style="bold")
        table.add_column("Type")
        table.add_column("Message")
        table.add_column("Fix")
        for issue in result.issues:
            color = "red" if issue.is_error else "yellow"
            fix = ""
            if issue.suggested_fix:
                auto = "auto" if issue.suggested_fix.auto_applicable else "manual"
                fix = f"{issue.suggested_fix.type} ({auto})"
            table.add_row(f"[{color}]{issue.severity}[/{color}]", issue.type, issue.message, fix)
        console.print(table)
    if result.execution_order is not None:
        console.print("Execution order: " + ", ".join(result.execution_order))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Prerequisite dependency validation and execution planning"""
    setup_logging(verbose)


@cli.command()
@click.option("--data-dir", "-d", default="./test-data", help="Directory holding suites and test cases")
@click.option("--config", "-c", default="prereq-config.json", help="Config file path")
def init(data_dir: str, config: str) -> None:
    """Create a default configuration file and data directory."""
    config_path = Path(config)
    if config_path.exists():
        if not click.confirm(f"{config} already exists. Overwrite?"):
            return

    cfg = EngineConfig(data_dir=data_dir)
    cfg.save(config_path)
    engine = PrerequisiteEngine(cfg)
    if engine.repository.find_suite_by_name(cfg.default_suite_name) is None:
        engine.repository.create_suite(cfg.default_suite_name, "Default test suite")
    console.print(f"[green]Created {config_path}[/green] (data in [blue]{data_dir}[/blue])")


@cli.command("suites")
@click.option("--config", "-c", default="prereq-config.json", help="Config file path")
def list_suites(config: str) -> None:
    """List suites and their test counts."""
    engine = _load_engine(config)
    suites = engine.repository.list_suites()
    if not suites:
        console.print("[yellow]No suites found[/yellow]")
        return
    table = Table(title="Suites")
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Tests", justify="right")
    table.add_column("Version", justify="right")
    for suite in suites:
        table.add_row(suite.id, suite.name, str(len(suite.test_case_ids)), str(suite.version))
    console.print(table)


@cli.command()
@click.argument("suite_id")
@click.option("--config", "-c", default="prereq-config.json", help="Config file path")
def validate(suite_id: str, config: str) -> None:
    """Validate a suite's dependencies."""
    engine = _load_engine(config)
    try:
        result = engine.validate_suite(suite_id)
    except PrereqEngineError as e:
        _fail(e)
    _print_validation(result)
    if not result.valid:
        sys.exit(1)


@cli.command("validate-test")
@click.argument("test_case_id")
@click.option("--config", "-c", default="prereq-config.json", help="Config file path")
def validate_test(test_case_id: str, config: str) -> None:
    """Validate a single test case's prerequisites."""
    engine = _load_engine(config)
    try:
        result = engine.validate_test_case(test_case_id)
    except PrereqEngineError as e:
        _fail(e)
    _print_validation(result)
    if not result.valid:
        sys.exit(1)


@cli.command()
@click.argument("suite_id")
@click.option("--config", "-c", default="prereq-config.json", help="Config file path")
def graph(suite_id: str, config: str) -> None:
    """Print the suite's dependency graph as JSON."""
    engine = _load_engine(config)
    try:
        summary = engine.build_dependency_graph(suite_id).to_summary()
    except PrereqEngineError as e:
        _fail(e)
    click.echo(summary.model_dump_json(indent=2))


@cli.command()
@click.argument("suite_id")
@click.option("--config", "-c", default="prereq-config.json", help="Config file path")
def order(suite_id: str, config: str) -> None:
    """Print the dependency-respecting execution order."""
    engine = _load_engine(config)
    try:
        execution_order = engine.generate_execution_order(suite_id)
    except CycleDetectedError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except PrereqEngineError as e:
        _fail(e)
    for i, test_case_id in enumerate(execution_order, 1):
        console.print(f"  {i}. {test_case_id}")


@cli.command()
@click.argument("suite_id")
@click.option("--output", "-o", default=None, help="Write the plan JSON to this file")
@click.option("--config", "-c", default="prereq-config.json", help="Config file path")
def plan(suite_id: str, output: str | None, config: str) -> None:
    """Generate the suite execution plan."""
    engine = _load_engine(config)
    try:
        suite_plan = engine.generate_suite_execution_plan(suite_id)
    except PrereqEngineError as e:
        _fail(e)

    if output:
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(suite_plan.model_dump(), f, indent=2)
        console.print(f"[green]Plan written to[/green] [blue]{path}[/blue]")
        return

    table = Table(title=f"Execution plan for {suite_id}")
    table.add_column("#", justify="right")
    table.add_column("Test", style="bold")
    table.add_column("Depends on")
    table.add_column("Prerequisites", justify="right")
    table.add_column("Cached deps")
    for step in suite_plan.steps:
        cached = ", ".join(h.test_case_id for h in step.cache_hints if h.cached)
        table.add_row(
            str(step.position + 1), f"{step.name} ({step.test_case_id})",
            ", ".join(step.depends_on), str(step.prerequisite_count), cached,
        )
    console.print(table)
    console.print(f"Estimated duration: {suite_plan.estimated_duration_ms / 1000:.1f}s")


@cli.command()
@click.argument("suite_id")
@click.option("--type", "fix_type", type=click.Choice(list(FIX_TYPES)),
              required=True, help="Fix to apply")
@click.option("--config", "-c", default="prereq-config.json", help="Config file path")
def fix(suite_id: str, fix_type: str, config: str) -> None:
    """Apply an automatic dependency fix to a suite."""
    engine = _load_engine(config)
    try:
        result = engine.auto_fix_dependencies(suite_id, fix_type)
    except PrereqEngineError as e:
        _fail(e)

    if not result.changed:
        console.print("[yellow]Suite already up to date[/yellow]")
    elif result.added_test_case_ids:
        console.print(f"[green]Added to suite:[/green] {', '.join(result.added_test_case_ids)}")
    else:
        console.print(f"[green]Reordered suite:[/green] {', '.join(result.new_order)}")
    if result.validation is not None:
        _print_validation(result.validation)


if __name__ == "__main__":
    cli()
