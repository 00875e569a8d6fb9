"""
Repository registration commands.

Commands for managing the repositories listed in the configuration. A
registered repository is a directory holding published modules; whether
its index is maintained is toggled separately with `enable`/`disable`.
"""

from pathlib import Path

import click

from ..cli_utils import standard_command, add_common_options, load_config_or_fail
from ..config import save_config
from ..domain import normalize_path
from ..exit_codes import UnknownRepositoryError
from ..render import render_repository_table
from ..services import repository_configuration


@click.group("repo")
def repo_cmd():
    """Manage the repositories in the configuration."""
    pass


@repo_cmd.command("add")
@click.argument("repository_id")
@click.argument("path", type=click.Path(file_okay=False))
@click.option("--index-root", help="Index directory inside the repository (default: .meta/p2)")
@add_common_options('quiet', 'format')
@standard_command()
def repo_add(repository_id, path, index_root):
    """Register a repository directory.

    \b
    REPOSITORY_ID: Identifier used by every other command
    PATH: Directory holding the repository's files

    Examples:

    \b
        p2index repo add releases /srv/maven/releases
        p2index repo add snapshots ~/m2/snapshots --index-root .p2
    """
    config = load_config_or_fail()
    repositories = config.setdefault('repositories', {})

    section = dict(repositories.get(repository_id) or {})
    section['path'] = str(Path(path).expanduser().resolve())
    section.setdefault('aggregate', False)
    if index_root:
        section['index_root'] = normalize_path(index_root)
    repositories[repository_id] = section

    config_path = save_config(config)
    return {
        'repository': repository_id,
        'action': 'add',
        'path': section['path'],
        'config': str(config_path),
    }


@repo_cmd.command("remove")
@click.argument("repository_id")
@add_common_options('quiet', 'format')
@standard_command()
def repo_remove(repository_id):
    """Unregister a repository.

    The repository's files, including an existing index, are left in
    place. Run `p2index disable` first to delete the index.
    """
    config = load_config_or_fail()
    repositories = config.get('repositories', {})
    if repository_id not in repositories:
        raise UnknownRepositoryError(repository_id)

    section = repositories.pop(repository_id)
    save_config(config)
    return {
        'repository': repository_id,
        'action': 'remove',
        'path': section.get('path'),
    }


@repo_cmd.command("list")
@add_common_options('quiet', 'format', 'table')
@standard_command(render_table=render_repository_table)
def repo_list():
    """List the configured repositories.

    Examples:

    \b
        p2index repo list
        p2index repo list --table
    """
    config = load_config_or_fail()
    for repository_id in sorted(config.get('repositories', {})):
        section = config['repositories'][repository_id] or {}
        configuration = repository_configuration(config, repository_id)
        yield {
            'repository': repository_id,
            'path': section.get('path'),
            'aggregate': bool(section.get('aggregate')),
            'index_root': configuration.layout.root,
        }
