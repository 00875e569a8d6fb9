"""
Rendering functions for p2index output.

This module handles all pretty-printing and table formatting.
Commands return data, this module makes it human-readable.
"""

from rich.table import Table
from rich.console import Console
from rich import box
from rich.markup import escape
from typing import List, Dict, Any, Optional

console = Console()


def render_repository_table(repositories: List[Dict[str, Any]]) -> None:
    """
    Render configured repositories as a table.

    Args:
        repositories: Dicts from `repo list`
    """
    if not repositories:
        console.print("[yellow]No repositories configured.[/yellow]")
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("Repository", style="green")
    table.add_column("Path")
    table.add_column("Aggregate", justify="center")
    table.add_column("Index root", style="dim")

    for repo in repositories:
        table.add_row(
            repo['repository'],
            repo.get('path', ''),
            "[green]yes[/green]" if repo.get('aggregate') else "[dim]no[/dim]",
            repo.get('index_root', ''),
        )

    console.print(table)
    console.print(f"\n[dim]Total:[/dim] {len(repositories)} repositories")


def render_status_table(statuses: List[Dict[str, Any]]) -> None:
    """
    Render index status as a pretty table.

    Args:
        statuses: Dicts from AggregationEngine.status
    """
    if not statuses:
        console.print("[yellow]No repositories found.[/yellow]")
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold magenta")
    table.add_column("Repository", style="green")
    table.add_column("Enabled", justify="center")
    table.add_column("Artifacts", justify="right")
    table.add_column("Units", justify="right")
    table.add_column("Links", justify="right")
    table.add_column("Broken", justify="right")

    for status in statuses:
        if not status.get('enabled'):
            table.add_row(status['repository'], "[dim]no[/dim]", "-", "-", "-", "-")
            continue

        broken = status.get('broken_links', 0)
        table.add_row(
            status['repository'],
            "[green]yes[/green]",
            _count(status.get('artifacts')),
            _count(status.get('metadata')),
            str(status.get('links', 0)),
            f"[red]{broken}[/red]" if broken else "0",
        )

    console.print(table)
    for status in statuses:
        if status.get('error'):
            console.print(f"[red]{status['repository']}:[/red] {escape(status['error'])}")


def _count(value: Optional[int]) -> str:
    # None means the index file does not exist yet
    return "[dim]missing[/dim]" if value is None else str(value)
