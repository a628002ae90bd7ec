"""CLI entry point for the autonomous test orchestrator."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from autopilot.classifier.error_classifier import classify, route
from autopilot.loader import DEFAULT_FEATURES_DIR, SuiteLoadError, load_test_suite
from autopilot.models.config import DEFAULT_CONFIG_PATH, RunConfig
from autopilot.models.test_result import TestError
from autopilot.orchestrator import TestOrchestrator
from autopilot.reporter.reporter import exit_code

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(config: str) -> RunConfig:
    try:
        return RunConfig.load(config)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Run 'autopilot init' to create a default config.")
        sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Autonomous browser test orchestrator"""
    setup_logging(verbose)


@cli.command()
@click.option("--config", "-c", default=DEFAULT_CONFIG_PATH, help="Config file path")
@click.option("--features-dir", "-d", default=str(DEFAULT_FEATURES_DIR), help="Test definition directory")
def run(config: str, features_dir: str) -> None:
    """Run the test suite: launch Chrome → execute → remediate → report."""
    cfg = _load_config(config)

    orchestrator = TestOrchestrator(cfg, features_dir=features_dir)
    try:
        report = orchestrator.run_sync()
    except Exception as e:
        logging.getLogger(__name__).exception("Test run aborted")
        console.print(f"[red]Test run aborted: {e}[/red]")
        sys.exit(1)

    summary = report.summary
    table = Table(title="Results Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Run ID", report.run_id)
    table.add_row("Duration", f"{report.duration / 1000:.1f}s")
    table.add_row("Total Tests", str(summary.total))
    table.add_row("Passed", f"[green]{summary.passed}[/green]")
    table.add_row("Failed", f"[red]{summary.failed}[/red]")
    table.add_row("Skipped", f"[yellow]{summary.skipped}[/yellow]")
    table.add_row("Retried", str(summary.retried))
    console.print(table)

    sys.exit(exit_code(report))


@cli.command("list")
@click.option("--config", "-c", default=DEFAULT_CONFIG_PATH, help="Config file path")
@click.option("--features-dir", "-d", default=str(DEFAULT_FEATURES_DIR), help="Test definition directory")
def list_tests(config: str, features_dir: str) -> None:
    """Show the tests a run would execute."""
    features = RunConfig.load(config).features if Path(config).exists() else []
    try:
        tests = load_test_suite(features_dir, features)
    except SuiteLoadError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if not tests:
        console.print("[yellow]No tests found[/yellow]")
        return

    table = Table(title=f"Test Suite ({len(tests)} tests)")
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Module")
    table.add_column("Steps", justify="right")
    for t in tests:
        table.add_row(t.id, t.name, t.module, str(len(t.steps)))
    console.print(table)


@cli.command()
@click.option("--config", "-c", default=DEFAULT_CONFIG_PATH, help="Config file path")
def init(config: str) -> None:
    """Create a default configuration file."""
    config_path = Path(config)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    RunConfig().save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print(f"\nAdd test definitions under [blue]{DEFAULT_FEATURES_DIR}/[/blue] and run:")
    console.print("  [blue]autopilot run[/blue]")


@cli.command("classify")
@click.argument("message")
@click.option("--selector", default=None, help="Selector the failing step used")
@click.option("--stack", default=None, help="Stack trace captured with the error")
@click.option("--element-found", is_flag=True, help="The step's element was present")
def classify_cmd(message: str, selector: str | None, stack: str | None, element_found: bool) -> None:
    """Classify an error message and show which handler it routes to."""
    error = TestError(message=message, selector=selector, stack=stack, element_found=element_found)
    kind = classify(error)
    console.print(f"Kind:    [bold]{kind.value}[/bold]")
    console.print(f"Handler: [blue]{route(kind)}[/blue]")


if __name__ == "__main__":
    cli()
