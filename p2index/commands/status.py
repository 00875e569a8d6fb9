"""
Handles the 'status' command for displaying index status.

Default output is JSONL, one object per repository; --table renders a
rich table instead.
"""

import click

from ..cli_utils import standard_command, add_common_options, open_index
from ..render import render_status_table


@click.command("status")
@click.argument("repository_id", required=False)
@click.option("--prune", is_flag=True, help="Delete links whose artifact no longer exists")
@add_common_options('quiet', 'format', 'table')
@standard_command(render_table=render_status_table)
def status_cmd(repository_id, prune):
    """Show entry and link counts of repository indexes.

    REPOSITORY_ID: Repository to show (default: all configured)

    Examples:

    \b
        p2index status
        p2index status releases --table
        p2index status releases --prune
    """
    p2 = open_index(repository_id)
    return p2.status(repository_id, prune_links=prune)
