"""
Handles the 'rebuild' command: scan a repository and regenerate its index.
"""

import click

from ..cli_utils import standard_command, add_common_options, open_index, report_results


@click.command("rebuild")
@click.argument("repository_id", required=False)
@click.option("--all", "rebuild_all", is_flag=True, help="Rebuild every repository with aggregation enabled")
@add_common_options('quiet', 'format')
@standard_command()
def rebuild_cmd(repository_id, rebuild_all):
    """Merge every fragment found in a repository into its index.

    Fragments are merged in path order. Hidden paths (any component
    starting with '.') are skipped, and so is every fragment that cannot
    be processed; the rest of the rebuild goes on.

    Examples:

    \b
        p2index rebuild releases
        p2index rebuild --all
    """
    if rebuild_all == bool(repository_id):
        raise click.UsageError("Give either REPOSITORY_ID or --all")

    p2 = open_index(repository_id)
    return report_results(p2.rebuild(None if rebuild_all else repository_id))
