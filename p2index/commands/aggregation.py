"""
Commands toggling aggregation for a repository.

`enable` creates the empty index and records `aggregate = true` in the
configuration; `disable` deletes the index and records `false`.
"""

import click

from ..api import P2Index
from ..cli_utils import standard_command, add_common_options, load_config_or_fail, report_results
from ..config import save_config
from ..exit_codes import UnknownRepositoryError


def _repository_section(config, repository_id):
    repositories = config.get('repositories', {})
    if repository_id not in repositories:
        raise UnknownRepositoryError(repository_id)
    if repositories[repository_id] is None:
        repositories[repository_id] = {}
    return repositories[repository_id]


@click.command("enable")
@click.argument("repository_id")
@add_common_options('quiet', 'format')
@standard_command()
def enable_cmd(repository_id):
    """Enable aggregation for a repository.

    Creates artifacts.xml and content.xml under the repository's index
    root if they do not exist yet. Run `p2index rebuild` afterwards to
    index fragments that were published before.
    """
    config = load_config_or_fail()
    section = _repository_section(config, repository_id)
    section['aggregate'] = True
    save_config(config)

    result = P2Index(config=config).enable(repository_id)
    return report_results([result])


@click.command("disable")
@click.argument("repository_id")
@add_common_options('quiet', 'format')
@standard_command()
def disable_cmd(repository_id):
    """Disable aggregation for a repository and delete its index."""
    config = load_config_or_fail()
    section = _repository_section(config, repository_id)

    # Built while the repository is still marked enabled
    p2 = P2Index(config=config)
    section['aggregate'] = False
    save_config(config)

    result = p2.disable(repository_id)
    return report_results([result])
