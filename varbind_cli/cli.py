"""Typer-based CLI for finding where variables are bound in a document export."""

from __future__ import annotations

import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from . import __version__
from .cli_groups import config_grp
from .config_manager import (
    VALID_LOG_LEVELS,
    SearchConfig,
    clear_search_config,
    load_search_config,
    set_search_value,
)
from .document import DocumentTree, load_document
from .errors import ConfigError, DocumentLoadError
from .models import MatchEvent, ProgressEvent, SearchMode, SearchResult
from .orchestrator import SearchOrchestrator, group_by_scope

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="🔎 varbind: find every node bound to a shared variable.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(config_grp, name="config")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"varbind v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    )
):
    """varbind: locate variable bindings in design documents."""
    pass


def _setup_logging(level: str) -> None:
    if level.upper() not in VALID_LOG_LEVELS:
        raise typer.BadParameter(f"Unknown log level '{level}'.")
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _open_document(document: Path) -> DocumentTree:
    try:
        return load_document(document)
    except DocumentLoadError as exc:
        err_console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)


def _resolve_mode(mode: Optional[str], search_config: SearchConfig) -> SearchMode:
    try:
        return SearchMode(mode or search_config.default_mode)
    except ValueError:
        raise typer.BadParameter(f"Unknown mode '{mode}'. Use 'direct' or 'representative-only'.")


async def _run_searches(
    orchestrator: SearchOrchestrator,
    definition_ids: List[str],
    mode: SearchMode,
    scope: Optional[str],
    show_progress: bool,
) -> List[SearchResult]:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.cancel)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        handler_installed = False

    try:
        if not show_progress:
            return await orchestrator.search_many(definition_ids, mode, scope)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[green]{task.fields[matches]} found"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("[cyan]Scanning...", total=None, matches=0)

            def on_progress(event: ProgressEvent) -> None:
                progress.update(task, completed=event.visited, total=event.total, matches=event.matches_so_far)

            def on_match(event: MatchEvent) -> None:
                progress.console.print(
                    f"  [green]✓[/green] {escape(event.node_name or event.node_type)} "
                    f"[dim]({event.node_type}, {escape(event.scope_name)})[/dim]"
                )

            return await orchestrator.search_many(definition_ids, mode, scope, on_progress, on_match)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def _print_result(result: SearchResult) -> None:
    title = result.definition_name or result.definition_id
    console.print(f"\n[bold cyan]📌 {title}[/bold cyan] [dim]({result.mode.value})[/dim]")

    for diagnostic in result.diagnostics:
        console.print(f"  [yellow]⚠[/yellow] {diagnostic.message}")

    if result.cancelled:
        console.print(
            f"  [yellow]Search cancelled[/yellow] after {result.visited}/{result.total} nodes."
        )

    if not result.records:
        console.print("  [dim]No nodes found using this variable.[/dim]")
        return

    for scope_name, records in group_by_scope(result.records).items():
        table = Table(title=f"Page: {scope_name}", show_lines=False)
        table.add_column("#", style="dim", width=4)
        table.add_column("Node", style="cyan", min_width=16)
        table.add_column("Type", style="magenta", width=12)
        table.add_column("Properties", min_width=20)
        table.add_column("Path", style="dim")
        for i, record in enumerate(records, 1):
            table.add_row(
                str(i),
                escape(record.node.name or record.node.node_type),
                record.node.node_type,
                ", ".join(record.matched_property_paths),
                escape(record.path_string),
            )
        console.print(table)

    summary = result.summary
    console.print(
        "  Node types: "
        + ", ".join(f"{t}({n})" for t, n in summary.nodes_by_type.items())
    )
    console.print(
        "  Properties: "
        + ", ".join(f"{p}({n})" for p, n in summary.property_usage.items())
    )


@app.command("search")
def search(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON document export."),
    definition_ids: List[str] = typer.Argument(..., help="One or more variable ids."),
    mode: Optional[str] = typer.Option(
        None, "--mode", "-m", help="'direct' or 'representative-only' (default from config)."
    ),
    scope: Optional[str] = typer.Option(None, "--scope", "-s", help="Limit the search to one page id."),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override the configured log level."),
):
    """Find every node bound to the given variable(s).

    Example:
      varbind search design.json VariableID:1:2
      varbind search design.json VariableID:1:2 --mode representative-only --scope 0:1
    """
    search_config = load_search_config()
    _setup_logging(log_level or search_config.log_level)
    search_mode = _resolve_mode(mode, search_config)

    tree = _open_document(document)
    orchestrator = SearchOrchestrator(tree, tree, config=search_config)
    results = asyncio.run(
        _run_searches(orchestrator, definition_ids, search_mode, scope, show_progress=not as_json)
    )

    if as_json:
        typer.echo(json.dumps([r.to_dict() for r in results], indent=2))
        return

    for result in results:
        _print_result(result)

    found = sum(len(r.records) for r in results)
    console.print(
        f"\n[bold]📊 Summary:[/bold] Found {found} total bound nodes across {len(results)} variable(s)"
    )


@app.command("summary")
def summary(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON document export."),
    definition_id: str = typer.Argument(..., help="Variable id."),
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help="'direct' or 'representative-only'."),
    scope: Optional[str] = typer.Option(None, "--scope", "-s", help="Limit the search to one page id."),
):
    """Show how many nodes use a variable, grouped by node type and property."""
    search_config = load_search_config()
    _setup_logging(search_config.log_level)
    search_mode = _resolve_mode(mode, search_config)

    tree = _open_document(document)
    orchestrator = SearchOrchestrator(tree, tree, config=search_config)
    result = asyncio.run(orchestrator.search(definition_id, search_mode, scope))

    for diagnostic in result.diagnostics:
        console.print(f"[yellow]⚠[/yellow] {diagnostic.message}")

    table = Table(title=f"Usage of {result.definition_name or result.definition_id}")
    table.add_column("Group", style="cyan")
    table.add_column("Name")
    table.add_column("Count", justify="right", style="green")
    table.add_row("total", "nodes", str(result.summary.total_nodes))
    for node_type, count in result.summary.nodes_by_type.items():
        table.add_row("type", node_type, str(count))
    for prop, count in result.summary.property_usage.items():
        table.add_row("property", prop, str(count))
    console.print(table)


# ── Configuration commands ───────────────────────────────────

@config_grp.command("show")
def config_show():
    """Show the effective search configuration."""
    current = load_search_config()
    table = Table(title="Search configuration", show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in current.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


@config_grp.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name, e.g. progress_interval."),
    value: str = typer.Argument(..., help="New value."),
):
    """Persist one search setting to config.toml."""
    try:
        set_search_value(key, value)
    except ConfigError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] {key} = {value}")


@config_grp.command("reset")
def config_reset():
    """Reset search settings to their defaults."""
    if clear_search_config():
        console.print("[green]✓ Search settings reset to defaults.[/green]")
    else:
        console.print("[red]✗[/red] Could not write configuration.")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
