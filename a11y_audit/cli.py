"""CLI entry point for the accessibility audit suite."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from a11y_audit.checkers.registry import CheckerRegistry
from a11y_audit.engine import AuditEngine, SuiteOptions
from a11y_audit.models.config import AuditConfig, PageConfig
from a11y_audit.models.results import RunResult
from a11y_audit.reporter.issues import extract_from_latest_report

console = Console()

DEFAULT_CONFIG = "a11y-config.json"


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def _load_config(config: Optional[str], pages: Optional[str]) -> AuditConfig:
    config_path = Path(config) if config else None
    if config_path is not None and not config_path.exists():
        # The default config is optional: A11Y_* variables can stand in for it
        if config != DEFAULT_CONFIG:
            console.print(f"[red]Config file not found: {config}[/red]")
            sys.exit(1)
        config_path = None
    try:
        return AuditConfig.load(config_path, pages_path=pages)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        console.print("Run 'a11y-audit init' to create a default config.")
        sys.exit(1)


def _print_summary(run: RunResult) -> None:
    console.print(
        "\n[bold green]Audit Complete[/bold green]" if run.success
        else "\n[bold red]Audit Finished With Errors[/bold red]"
    )
    table = Table(title="Results Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Duration", f"{run.duration_seconds}s")
    table.add_row("Pages Scanned", str(run.pages_scanned))
    table.add_row("Violations", f"[red]{run.total_violations}[/red]")
    checks = [c for p in run.extra_check_results for c in p.checks.values()]
    table.add_row("Checks Passed", f"[green]{sum(1 for c in checks if c.success)}[/green]/{len(checks)}")
    table.add_row("Errors", f"[red]{len(run.errors)}[/red]")
    table.add_row("Warnings", f"[yellow]{len(run.warnings)}[/yellow]")
    table.add_row("Screenshots", str(len(run.screenshots)))
    console.print(table)

    for outcome in run.reports:
        if outcome.success:
            console.print(f"  {outcome.format.upper()} report: [blue]{outcome.path}[/blue]")
        else:
            console.print(f"  [red]{outcome.format.upper()} report failed: {outcome.error}[/red]")
    if run.summary_report:
        console.print(f"  Summary: [blue]{run.summary_report}[/blue]")
    for err in run.errors:
        where = f" ({err.page})" if err.page else ""
        console.print(f"  [red]{err.phase}{where}: {err.message}[/red]")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Accessibility audit suite for Electron desktop applications"""
    setup_logging(verbose)


@cli.command()
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
@click.option("--pages", "-p", default=None, help="Pages JSON file (overrides config pages)")
@click.option("--output", "-o", default=None, help="Report output directory")
@click.option("--format", "-f", "formats", multiple=True,
              type=click.Choice(["html", "json"]), help="Report format (repeatable)")
@click.option("--debug", is_flag=True, help="Debug mode: verbose logs and app debug flags")
@click.option("--dry-run", is_flag=True, help="Validate configuration without running")
@click.option("--sequential", is_flag=True, help="Process pages and checks one at a time")
@click.option("--continue-on-error/--stop-on-error", default=True,
              help="Keep going after a page fails (default) or stop at the first failure")
@click.option("--no-reports", is_flag=True, help="Skip report generation")
@click.option("--no-extra-checks", is_flag=True, help="Only run the rule engine scan")
@click.option("--timeout", type=int, default=None, help="Operation timeout in milliseconds")
@click.option("--concurrency", type=int, default=None, help="Maximum concurrent operations")
@click.option("--clean", is_flag=True, help="Remove old reports and screenshots first")
def run(
    config: str,
    pages: Optional[str],
    output: Optional[str],
    formats: tuple[str, ...],
    debug: bool,
    dry_run: bool,
    sequential: bool,
    continue_on_error: bool,
    no_reports: bool,
    no_extra_checks: bool,
    timeout: Optional[int],
    concurrency: Optional[int],
    clean: bool,
) -> None:
    """Launch the application and audit every configured page."""
    cfg = _load_config(config, pages)

    updates = {}
    if output:
        updates["report_dir"] = output
    if formats:
        updates["report_formats"] = list(formats)
    if debug:
        updates["debug"] = True
        logging.getLogger().setLevel(logging.DEBUG)
    if timeout is not None:
        updates["timeout_ms"] = timeout
    if sequential:
        updates["max_concurrency"] = 1
    elif concurrency is not None:
        updates["max_concurrency"] = concurrency
    if updates:
        try:
            cfg = cfg.with_updates(**updates)
        except ValidationError as e:
            console.print(f"[red]Invalid option:[/red] {e}")
            sys.exit(1)

    engine = AuditEngine(cfg)
    problems = engine.validate_configuration()

    if dry_run:
        table = Table(title="Configuration")
        table.add_column("Setting", style="bold")
        table.add_column("Value")
        table.add_row("Executable", cfg.exe_path)
        table.add_row("Process name", cfg.process_name)
        table.add_row("Pages", ", ".join(p.name for p in cfg.pages) or "-")
        table.add_row("Report dir", cfg.report_dir)
        table.add_row("Formats", ", ".join(cfg.report_formats))
        table.add_row("Concurrency", str(cfg.max_concurrency))
        table.add_row("Timeout", f"{cfg.timeout_ms}ms")
        console.print(table)
        if problems:
            for p in problems:
                console.print(f"  [red]{p}[/red]")
            sys.exit(1)
        console.print("[green]Configuration is valid[/green]")
        return

    if problems:
        for p in problems:
            console.print(f"[red]{p}[/red]")
        sys.exit(1)

    result = asyncio.run(engine.run_suite(SuiteOptions(
        concurrency=cfg.max_concurrency,
        continue_on_error=continue_on_error,
        skip_reports=no_reports,
        skip_extra_checks=no_extra_checks,
        clean_old_files=clean,
    )))
    _print_summary(result)
    sys.exit(0 if result.success else 1)


@cli.command()
@click.option("--exe", "-e", prompt="Application executable path", help="Path to the app executable")
def init(exe: str) -> None:
    """Create a default configuration file."""
    config_path = Path("a11y-config.json")
    if config_path.exists():
        if not click.confirm("a11y-config.json already exists. Overwrite?"):
            return

    cfg = AuditConfig(
        exe_path=exe,
        pages=[PageConfig(name="Home", selector="[data-testid='nav-home']")],
    )
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nEdit the pages list to match your app's navigation, then run:")
    console.print("  [blue]a11y-audit run --dry-run[/blue]")
    console.print("  [blue]a11y-audit run[/blue]")


@cli.command()
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def checkers(config: str) -> None:
    """List the available checkers and whether they are enabled."""
    cfg = _load_config(config, None)
    registry = CheckerRegistry.with_defaults(cfg)
    table = Table(title="Checkers")
    table.add_column("Priority")
    table.add_column("Name", style="bold")
    table.add_column("Enabled")
    table.add_column("Description")
    for info in sorted(registry.available_checkers(), key=lambda i: i["priority"]):
        enabled = "[green]yes[/green]" if info["enabled"] else "[yellow]no[/yellow]"
        table.add_row(str(info["priority"]), info["name"], enabled, info["description"])
    console.print(table)


@cli.command()
@click.option("--reports", "-r", default="axe-reports", help="Directory holding JSON reports")
@click.option("--output", "-o", default="a11y-issues", help="Issue output directory")
def issues(reports: str, output: str) -> None:
    """Export issues from the latest JSON report as Markdown files and a CSV index."""
    try:
        found, csv_path = extract_from_latest_report(reports, output)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        console.print("Run 'a11y-audit run' with the json format first.")
        sys.exit(1)
    console.print(f"[green]Exported {len(found)} issue(s)[/green]")
    console.print(f"  CSV index: [blue]{csv_path}[/blue]")


if __name__ == "__main__":
    cli()
