"""
Watch command for p2index.

Polls the repositories with aggregation enabled and keeps their indexes in
step with fragments as they are published and deleted. Every dispatched
operation is printed as one JSON line.
"""

import asyncio
import json

import click

from ..cli_utils import standard_command, open_index
from ..domain import AggregationResult


def _print_result(result: AggregationResult):
    print(json.dumps(result.to_dict(), ensure_ascii=False), flush=True)


@click.command("watch")
@click.option("--interval", "-i", type=float, default=None,
              help="Seconds between polls (default: watch.interval_seconds from config)")
@click.option("--once", is_flag=True, help="Poll a single time after one interval, then exit")
@click.option("--rebuild", is_flag=True, help="Rebuild every enabled index before watching")
@standard_command()
def watch_cmd(interval, once, rebuild):
    """Watch repositories and aggregate fragments as they change.

    Fragments present when watching starts are not re-merged; use
    --rebuild to catch up on changes made while nothing was watching.

    Examples:

    \b
        p2index watch
        p2index watch --interval 30 --rebuild
    """
    p2 = open_index()

    if rebuild:
        for result in p2.rebuild():
            _print_result(result)

    poller = p2.poller(poll_interval=interval, on_result=_print_result)
    if not poller.stores:
        click.echo("No repositories with aggregation enabled", err=True)
        return None

    click.echo(
        f"Watching {', '.join(sorted(poller.stores))} every {poller.poll_interval}s",
        err=True,
    )
    asyncio.run(poller.run(cycles=1 if once else None))
    return None
