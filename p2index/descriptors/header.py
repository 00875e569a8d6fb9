"""
Repository header repair for descriptor fragments.

Build plugins such as Tycho publish per-module fragments without the
enclosing <repository> element the descriptor toolkit needs. The repair
inserts a temporary root element with a timestamp property and closes it
at the end of the file.

Artifacts fragment as published:

    <?xml version='1.0' encoding='UTF-8'?>
    <?artifactRepository version='1.1.0'?>
    <artifacts size='1'>
      ...
    </artifacts>

After repair, line 2 holds the root element and line 3 its properties.
Metadata fragments usually lack the <?metadataRepository?> instruction
too, so for them it is inserted at line 1 first.
"""

import os
import tempfile
import time
from pathlib import Path
from typing import Callable, List, Optional
import logging

from ..domain.descriptor import DescriptorKind
from ..errors import MalformedFragmentError

logger = logging.getLogger(__name__)

ROOT_LINE = 2
INSTRUCTION_LINE = 1

ROOT_MARKER = '<repository'
CLOSING_ELEMENT = '</repository>'
METADATA_INSTRUCTION = "<?metadataRepository version='1.1.0'?>"
METADATA_INSTRUCTION_MARKER = '<?metadataRepository'

REPOSITORY_TYPES = {
    DescriptorKind.ARTIFACTS: 'org.eclipse.equinox.p2.artifact.repository.simpleRepository',
    DescriptorKind.METADATA: 'org.eclipse.equinox.internal.p2.metadata.repository.LocalMetadataRepository',
}

TEMP_PREFIXES = {
    DescriptorKind.ARTIFACTS: 'temporary-p2artifacts',
    DescriptorKind.METADATA: 'temporary-p2content',
}


def current_millis() -> int:
    return int(time.time() * 1000)


def _line(lines: List[str], index: int, kind: DescriptorKind) -> str:
    if len(lines) <= index:
        raise MalformedFragmentError(
            f"{kind.value.capitalize()} fragment has {len(lines)} line(s), "
            f"the repository header check needs at least {index + 1}"
        )
    return lines[index]


def has_instruction(lines: List[str]) -> bool:
    return METADATA_INSTRUCTION_MARKER in _line(lines, INSTRUCTION_LINE, DescriptorKind.METADATA)


def has_repository_header(lines: List[str], kind: DescriptorKind) -> bool:
    """
    Check whether a fragment already declares its repository root.

    Raises:
        MalformedFragmentError: if the fragment is too short to check
    """
    if kind is DescriptorKind.METADATA and not has_instruction(lines):
        return False
    return ROOT_MARKER in _line(lines, ROOT_LINE, kind)


def root_element(kind: DescriptorKind) -> str:
    return f'<repository name="temporary" type="{REPOSITORY_TYPES[kind]}" version="1">'


def properties_block(timestamp: int) -> str:
    return f'<properties size="1"><property name="p2.timestamp" value="{timestamp}"/> </properties>'


def repair_lines(
    lines: List[str],
    kind: DescriptorKind,
    clock: Optional[Callable[[], int]] = None
) -> List[str]:
    """
    Return a copy of lines with the repository header inserted.

    The input list is not modified.
    """
    clock = clock or current_millis
    repaired = list(lines)
    if kind is DescriptorKind.METADATA and not has_instruction(repaired):
        repaired.insert(INSTRUCTION_LINE, METADATA_INSTRUCTION)
    repaired.insert(ROOT_LINE, root_element(kind))
    repaired.insert(ROOT_LINE + 1, properties_block(clock()))
    repaired.append(CLOSING_ELEMENT)
    return repaired


def repair_fragment(
    lines: List[str],
    kind: DescriptorKind,
    directory: Path,
    clock: Optional[Callable[[], int]] = None
) -> Path:
    """
    Write a repaired copy of a fragment into directory.

    Args:
        lines: Raw fragment lines
        kind: Descriptor kind of the fragment
        directory: Staging directory that owns the temporary file
        clock: Milliseconds-since-epoch source (for tests)

    Returns:
        Path of the temporary repaired fragment
    """
    repaired = repair_lines(lines, kind, clock)
    fd, temp_path = tempfile.mkstemp(prefix=TEMP_PREFIXES[kind], suffix='.xml', dir=directory)
    with os.fdopen(fd, 'w', encoding='utf-8') as f:
        for line in repaired:
            f.write(line)
            f.write('\n')
    logger.debug(f"Repaired {kind.value} fragment header into {temp_path}")
    return Path(temp_path)


def prepare_fragment(
    raw: bytes,
    kind: DescriptorKind,
    directory: Path,
    clock: Optional[Callable[[], int]] = None
) -> Path:
    """
    Turn raw fragment bytes into a file the toolkit can merge.

    Fragments with a proper header are written as-is; others are repaired
    first. The resulting file is placed in directory.
    """
    try:
        text = raw.decode('utf-8-sig')
    except UnicodeDecodeError as e:
        raise MalformedFragmentError(f"{kind.value.capitalize()} fragment is not valid UTF-8: {e}") from e

    lines = text.splitlines()
    if has_repository_header(lines, kind):
        target = directory / f"{TEMP_PREFIXES[kind]}.xml"
        target.write_text(text, encoding='utf-8')
        return target
    return repair_fragment(lines, kind, directory, clock)
