"""
Commands running one fragment operation against a repository's index.

These are what a publishing hook calls after a module's descriptor
fragments were written or deleted:

    p2index update-artifacts releases org/x/1.0/x-1.0-p2artifacts.xml
    p2index remove-metadata releases org/x/1.0/x-1.0-p2metadata.xml --content old.xml
"""

import click

from ..cli_utils import standard_command, add_common_options, open_index, report_results


def fragment_command(name, method_name, summary):
    """Build the click command for one fragment operation."""

    @click.command(name, help=f"""{summary}

    \b
    REPOSITORY_ID: Configured repository
    PATH: Repository-relative path of the fragment
    """)
    @click.argument("repository_id")
    @click.argument("path")
    @click.option("--content", type=click.File("rb"),
                  help="Read the fragment from this file instead of the repository "
                       "(for fragments that were already deleted)")
    @add_common_options('quiet', 'format')
    @standard_command()
    def command(repository_id, path, content):
        p2 = open_index(repository_id)
        data = content.read() if content is not None else None
        result = getattr(p2, method_name)(repository_id, path, data)
        return report_results([result])

    return command


update_artifacts_cmd = fragment_command(
    "update-artifacts", "update_artifacts", "Merge an artifacts fragment into artifacts.xml and link its artifacts."
)
remove_artifacts_cmd = fragment_command(
    "remove-artifacts", "remove_artifacts", "Remove an artifacts fragment's entries and links."
)
update_metadata_cmd = fragment_command(
    "update-metadata", "update_metadata", "Merge a metadata fragment into content.xml."
)
remove_metadata_cmd = fragment_command(
    "remove-metadata", "remove_metadata", "Remove a metadata fragment's units from content.xml."
)
