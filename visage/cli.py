"""CLI entry point for visage."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from visage.environment import Environment, resolve_environment
from visage.errors import AggregateCaptureError, VisageError
from visage.models.config import CONFIG_FILENAME, VisageConfig
from visage.models.fingerprint import RegressionStatus, RunReport
from visage.orchestrator import Orchestrator

console = Console()

STATUS_STYLES = {
    RegressionStatus.CREATED: "cyan",
    RegressionStatus.PASSED: "green",
    RegressionStatus.FAILED: "red",
    RegressionStatus.SKIPPED: "yellow",
}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _fail(message: str) -> NoReturn:
    console.print(f"[red]{escape(message)}[/red]")
    sys.exit(1)


def _load(ctx: click.Context, project: str | None) -> tuple[VisageConfig, Environment]:
    """Resolve the environment and config once for a command."""
    try:
        env = resolve_environment(config_path=ctx.obj.get("config"))
        cfg = VisageConfig.load(env.config_path)
    except (VisageError, FileNotFoundError) as e:
        _fail(str(e))

    if project:
        root = Path(project)
    elif cfg.project_root:
        root = env.config_path.parent / cfg.project_root
    else:
        root = env.cwd
    env = env.model_copy(update={"project_root": root.resolve()})
    return cfg, env


def render_report(report: RunReport) -> None:
    table = Table(title=f"Visual Regression: {report.run_id}")
    table.add_column("Component", style="bold")
    table.add_column("Story")
    table.add_column("Status")
    table.add_column("Visual Hash", overflow="fold")
    table.add_column("Expected Visual Hash", overflow="fold")
    for r in report.results:
        style = STATUS_STYLES[r.status]
        table.add_row(
            r.component_name,
            r.story_name,
            f"[{style}]{r.status.value}[/{style}]",
            r.current.visual_hash if r.current else "-",
            r.baseline.visual_hash if r.baseline else "-",
        )
    console.print(table)

    console.print(
        f"[cyan]{report.count(RegressionStatus.CREATED)} created[/cyan], "
        f"[green]{report.count(RegressionStatus.PASSED)} passed[/green], "
        f"[red]{report.count(RegressionStatus.FAILED)} failed[/red], "
        f"[yellow]{report.count(RegressionStatus.SKIPPED)} skipped[/yellow], "
        f"[red]{len(report.errors)} errors[/red] in {report.duration_seconds}s"
    )
    for r in report.results:
        if r.status == RegressionStatus.FAILED:
            console.print(f"  [red]✗[/red] {r.story_id}: changed {', '.join(r.changed)}")
    for e in report.errors:
        console.print(f"  [red]![/red] {escape(e.story_id)} {escape(f'[{e.kind}]')}: {escape(e.message)}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", "-c", default=None, type=click.Path(dir_okay=False),
              help=f"Config file path (default: ./{CONFIG_FILENAME}, then ~/.config/{CONFIG_FILENAME})")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: str | None) -> None:
    """Visual regression testing for component story catalogs."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config"] = Path(config) if config else None


@cli.command()
@click.option("--project", "-p", default=None, type=click.Path(file_okay=False),
              help="Project root (default: working directory)")
@click.option("--update-baselines", is_flag=True,
              help="Accept the current rendering of failed stories as their new baseline")
@click.pass_context
def check(ctx: click.Context, project: str | None, update_baselines: bool) -> None:
    """Capture every story and compare it against its baseline."""
    cfg, env = _load(ctx, project)
    orchestrator = Orchestrator(cfg, env)

    try:
        report = orchestrator.run_check(update_baselines=update_baselines)
    except AggregateCaptureError as e:
        if e.report is not None:
            render_report(e.report)
        _fail(f"{len(e.errors)} stories failed to capture")
    except VisageError as e:
        _fail(str(e))

    render_report(report)
    if report.count(RegressionStatus.FAILED) and not update_baselines:
        sys.exit(1)


@cli.command()
@click.option("--project", "-p", default=None, type=click.Path(file_okay=False),
              help="Project root (default: working directory)")
@click.pass_context
def stories(ctx: click.Context, project: str | None) -> None:
    """List the stories discovered in the project."""
    cfg, env = _load(ctx, project)
    orchestrator = Orchestrator(cfg, env)
    try:
        found = orchestrator.list_stories()
    except VisageError as e:
        _fail(str(e))

    table = Table(title=f"{len(found)} stories")
    table.add_column("Story ID", style="bold")
    table.add_column("Category")
    table.add_column("Path")
    for story in found:
        marker = " [yellow](skipped)[/yellow]" if orchestrator.is_skipped(story) else ""
        table.add_row(story.story_id + marker, story.category.value, story.path)
    console.print(table)


@cli.command()
@click.option("--base-url", "-u", prompt="Storybook URL", help="Base URL of the running Storybook")
@click.option("--root-element", default="storybook-root",
              help="Id or CSS selector of the element each story renders into")
@click.option("--start-command", default=None,
              help="Command that starts Storybook before a check, e.g. \"npm run storybook\"")
def init(base_url: str, root_element: str, start_command: str | None) -> None:
    """Create a default configuration file."""
    config_path = Path(CONFIG_FILENAME)
    if config_path.exists():
        if not click.confirm(f"{CONFIG_FILENAME} already exists. Overwrite?"):
            return

    try:
        cfg = VisageConfig(base_url=base_url, root_element=root_element, start_command=start_command)
    except ValueError as e:
        _fail(str(e))
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    if not cfg.start_command:
        console.print("\nStart your Storybook and run:")
    else:
        console.print("\nRun:")
    console.print("  [blue]visage check[/blue]")


@cli.command()
@click.option("--project", "-p", default=None, type=click.Path(file_okay=False),
              help="Project root (default: working directory)")
@click.option("--clear", is_flag=True, help="Delete all stored baselines")
@click.pass_context
def baselines(ctx: click.Context, project: str | None, clear: bool) -> None:
    """View or reset stored baselines."""
    cfg, env = _load(ctx, project)
    manager = Orchestrator(cfg, env).baseline_manager

    if clear:
        if click.confirm("Delete all stored baselines?"):
            manager.clear()
            console.print("[green]Baselines cleared[/green]")
        return

    try:
        registry = manager.load()
    except VisageError as e:
        _fail(str(e))
    if not registry.baselines:
        console.print("[yellow]No baselines stored[/yellow]")
        return

    table = Table(title=f"{len(registry.baselines)} baselines (updated {registry.last_updated})")
    table.add_column("Key", style="bold")
    table.add_column("Visual Hash", overflow="fold")
    table.add_column("Captured")
    for key, fp in sorted(registry.baselines.items()):
        table.add_row(key, fp.visual_hash, fp.captured_at)
    console.print(table)


if __name__ == "__main__":
    cli()
