"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import sys
import click
from functools import wraps
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from .api import P2Index
from .config import ConfigLoadError, load_config
from .domain import AggregationResult, OperationStatus
from .exit_codes import (
    SUCCESS, INTERRUPTED,
    get_exit_code_for_exception, CommandError, ConfigError,
    OperationFailedError, PartialSuccessError, UnknownRepositoryError
)
from .format_utils import FORMATS, format_output, get_format_from_env


def standard_command(render_table: Optional[Callable[[List[Dict[str, Any]]], None]] = None):
    """
    Decorator that provides standard CLI behavior:
    - Clean JSON output on stdout, messages on stderr
    - --format/-f and, with render_table, a --table flag
    - --quiet/-q flag to suppress data output
    - Consistent error handling and exit codes

    The command returns a dict, a list of dicts, or a generator of dicts.
    A CommandError raised while a generator is being consumed is reported
    after the items already printed.

    Args:
        render_table: Renders the collected items when --table is given
    """
    def decorator(func):

        @wraps(func)
        def wrapper(*args, **kwargs):
            # Extract flags
            quiet = kwargs.pop('quiet', False)
            table = kwargs.pop('table', False)
            output_format = kwargs.pop('format', None)

            # Get format from env if not specified
            if output_format is None:
                output_format = get_format_from_env('jsonl')
            if table and render_table is not None:
                output_format = 'table'
            elif output_format == 'table':
                output_format = 'table' if render_table is not None else 'jsonl'

            try:
                result = func(*args, **kwargs)

                if isinstance(result, dict):
                    result = [result]

                if result is None:
                    # Command handles its own output
                    pass
                elif quiet:
                    # In quiet mode, consume the generator but don't output
                    for _ in result:
                        pass
                elif output_format == 'table':
                    render_table(list(result))
                else:
                    for line in format_output(iter(result), output_format):
                        print(line, flush=True)

                # Successful completion
                sys.exit(SUCCESS)

            except KeyboardInterrupt:
                click.echo("Interrupted by user", err=True)
                sys.exit(INTERRUPTED)
            except click.ClickException:
                # Click exceptions already have their exit code
                raise
            except CommandError as e:
                # Our custom command errors with specific exit codes
                click.echo(f"Error: {e}", err=True)
                if not quiet:
                    error_obj = {
                        "error": str(e),
                        "type": type(e).__name__,
                        "exit_code": e.exit_code
                    }
                    # Add extra fields for PartialSuccessError
                    if hasattr(e, 'succeeded'):
                        error_obj['succeeded'] = e.succeeded
                        error_obj['failed'] = e.failed
                    print(json.dumps(error_obj, ensure_ascii=False), flush=True)
                sys.exit(e.exit_code)
            except Exception as e:
                click.echo(f"Command failed: {e}", err=True)
                # Output error as JSON for consistency (unless quiet)
                if not quiet:
                    error_obj = {
                        "error": str(e),
                        "type": type(e).__name__
                    }
                    print(json.dumps(error_obj, ensure_ascii=False), flush=True)
                # Exit with appropriate code
                sys.exit(get_exit_code_for_exception(e))

        return wrapper
    return decorator


def load_config_or_fail() -> Dict[str, Any]:
    """Load the config file, turning a read failure into ConfigError."""
    try:
        return load_config(strict=True)
    except ConfigLoadError as e:
        raise ConfigError(str(e)) from e


# Standard options that many commands share
common_options = {
    'quiet': click.option('-q', '--quiet', is_flag=True,
                         help='Suppress data output'),
    'format': click.option('-f', '--format',
                         type=click.Choice(list(FORMATS)),
                         help='Output format (default: jsonl, or from P2INDEX_FORMAT env)'),
    'table': click.option('--table', is_flag=True,
                         help='Display as formatted table'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('quiet', 'format')
        def my_command(quiet, format):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            if name in common_options:
                func = common_options[name](func)
        return func
    return decorator


def open_index(repository_id: Optional[str] = None) -> P2Index:
    """P2Index over the config file, checking that repository_id is configured."""
    config = load_config_or_fail()
    if repository_id is not None and repository_id not in config.get('repositories', {}):
        raise UnknownRepositoryError(repository_id)
    return P2Index(config=config)


def report_results(results: Iterable[AggregationResult]) -> Iterator[Dict[str, Any]]:
    """
    Yield results as dicts, then raise if any of them failed.

    Raises:
        OperationFailedError: if every result failed
        PartialSuccessError: if some failed and some did not
    """
    succeeded = failed = 0
    for result in results:
        yield result.to_dict()
        if result.status is OperationStatus.FAILED:
            failed += 1
        else:
            succeeded += 1

    if failed and succeeded:
        raise PartialSuccessError(f"{failed} of {failed + succeeded} operations failed", succeeded, failed)
    if failed:
        raise OperationFailedError(f"{failed} operation(s) failed")
