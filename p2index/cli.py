#!/usr/bin/env python3

import click

from p2index.config import load_config, configure_logging
from p2index.commands.repo import repo_cmd
from p2index.commands.aggregation import enable_cmd, disable_cmd
from p2index.commands.fragments import (
    update_artifacts_cmd,
    remove_artifacts_cmd,
    update_metadata_cmd,
    remove_metadata_cmd,
)
from p2index.commands.rebuild import rebuild_cmd
from p2index.commands.status import status_cmd
from p2index.commands.watch import watch_cmd


@click.group()
@click.version_option(package_name="p2index")
@click.option("--debug", is_flag=True, help="Log debug messages to stderr")
def cli(debug):
    """p2index - Aggregate p2 index for artifact repositories.

    Maintains artifacts.xml, content.xml and the plugins/ and features/
    links of a repository as descriptor fragments are published into it
    and deleted from it.
    """
    configure_logging(load_config(), debug=debug)


# Repository registration
cli.add_command(repo_cmd)

# Aggregation lifecycle
cli.add_command(enable_cmd)
cli.add_command(disable_cmd)

# Fragment operations
cli.add_command(update_artifacts_cmd)
cli.add_command(remove_artifacts_cmd)
cli.add_command(update_metadata_cmd)
cli.add_command(remove_metadata_cmd)

# Whole-repository commands
cli.add_command(rebuild_cmd)
cli.add_command(status_cmd)
cli.add_command(watch_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
