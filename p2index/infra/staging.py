"""
Temporary staging directories.

An operation copies the exposed index into a staging area, mutates the
copy, and only then writes it back. The area is removed when the
operation ends, whether it succeeded or not.
"""

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

STAGING_PREFIX = 'p2index-staging-'


@contextmanager
def staging_area(parent: Optional[Path] = None) -> Iterator[Path]:
    """Create a private temporary directory and remove it on exit."""
    path = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=parent))
    logger.debug(f"Created staging area {path}")
    try:
        yield path
    finally:
        _remove(path)


@contextmanager
def fragment_directory(staging: Path) -> Iterator[Path]:
    """Per-fragment working directory inside a staging area."""
    path = Path(tempfile.mkdtemp(prefix='fragment-', dir=staging))
    try:
        yield path
    finally:
        _remove(path)


def _remove(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove staging directory {path}: {e}")
