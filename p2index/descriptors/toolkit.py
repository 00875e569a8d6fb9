"""
Descriptor toolkit for p2 simple repositories.

Works on directories that hold one canonical descriptor file
(artifacts.xml or content.xml):

- write_empty: create an empty descriptor for a repository
- merge: add a fragment directory's entries to a destination directory
- remove: drop a fragment directory's entries from a destination directory
- list_installable_artifacts: entries of an artifacts fragment

Entries are identified by their key attributes (classifier/id/version for
artifacts, id/version for units) and always written sorted by key, so the
result of a series of merges does not depend on their order. The
p2.timestamp property only changes when the entry set changes.
"""

import copy
import time
import xml.etree.ElementTree as ET
from abc import ABC
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
import logging

from ..domain.descriptor import DescriptorKind, InstallableArtifact
from ..errors import MalformedFragmentError, StoreIOError
from .header import REPOSITORY_TYPES

logger = logging.getLogger(__name__)

XML_DECLARATION = "<?xml version='1.0' encoding='UTF-8'?>"
TIMESTAMP_PROPERTY = 'p2.timestamp'

EntryKey = Tuple[str, ...]


def _canonical(element: ET.Element) -> tuple:
    """Whitespace-insensitive form of an element, for comparisons."""
    return (
        element.tag,
        tuple(sorted(element.attrib.items())),
        (element.text or '').strip(),
        tuple(_canonical(child) for child in element),
    )


class DescriptorToolkit(ABC):
    """Merge/remove primitives for one descriptor kind."""

    kind: DescriptorKind
    container_tag: str
    entry_tag: str
    key_attributes: Tuple[str, ...]
    instruction: str

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        """
        Initialize the toolkit.

        Args:
            clock: Milliseconds-since-epoch source for p2.timestamp (for tests)
        """
        self._clock = clock or (lambda: int(time.time() * 1000))

    @property
    def filename(self) -> str:
        return self.kind.index_filename

    def write_empty(self, directory: Path, owner_id: str) -> Path:
        """Write an empty descriptor named after owner_id into directory."""
        root = ET.Element('repository', {
            'name': owner_id,
            'type': REPOSITORY_TYPES[self.kind],
            'version': '1',
        })
        properties = ET.SubElement(root, 'properties')
        self._set_property(properties, TIMESTAMP_PROPERTY, str(self._clock()))
        self._set_property(properties, 'p2.compressed', 'false')
        self._add_empty_sections(root)
        ET.SubElement(root, self.container_tag, {'size': '0'})

        path = Path(directory) / self.filename
        self._write(root, path)
        return path

    def _add_empty_sections(self, root: ET.Element) -> None:
        """Hook for kind-specific sections of an empty descriptor."""

    def merge(self, fragment_dir: Path, dest_dir: Path) -> int:
        """
        Merge the fragment's entries into the destination descriptor.

        Entries already present with the same key are replaced.

        Returns:
            Number of entries added or replaced
        """
        source = self._fragment_container(Path(fragment_dir))
        dest_path = Path(dest_dir) / self.filename
        dest_root = self._read_index(dest_path)
        dest = self._container(dest_root, dest_path)
        entries = self._entries_by_key(dest, dest_path)

        changed = 0
        for entry in source.findall(self.entry_tag):
            key = self._key(entry, fragment_dir)
            existing = entries.get(key)
            if existing is not None and _canonical(existing) == _canonical(entry):
                continue
            entries[key] = copy.deepcopy(entry)
            changed += 1

        if changed:
            self._store_entries(dest_root, dest, entries, dest_path)
        logger.debug(f"Merged {changed} {self.entry_tag} entries into {dest_path}")
        return changed

    def remove(self, fragment_dir: Path, dest_dir: Path) -> int:
        """
        Remove the fragment's entries from the destination descriptor.

        Returns:
            Number of entries removed
        """
        source = self._fragment_container(Path(fragment_dir))
        dest_path = Path(dest_dir) / self.filename
        dest_root = self._read_index(dest_path)
        dest = self._container(dest_root, dest_path)
        entries = self._entries_by_key(dest, dest_path)

        removed = 0
        for entry in source.findall(self.entry_tag):
            if entries.pop(self._key(entry, fragment_dir), None) is not None:
                removed += 1

        if removed:
            self._store_entries(dest_root, dest, entries, dest_path)
        logger.debug(f"Removed {removed} {self.entry_tag} entries from {dest_path}")
        return removed

    def parse_entries(self, data: bytes) -> List[Dict[str, str]]:
        """Key attributes of every entry in a serialized descriptor."""
        try:
            root = ET.fromstring(data)
        except ET.ParseError as e:
            raise MalformedFragmentError(f"Could not parse {self.filename}: {e}") from e
        container = self._container(root, None)
        return [
            {name: entry.get(name, '') for name in self.key_attributes}
            for entry in container.findall(self.entry_tag)
        ]

    def _fragment_container(self, fragment_dir: Path) -> ET.Element:
        path = fragment_dir / self.filename
        try:
            root = ET.parse(path).getroot()
        except ET.ParseError as e:
            raise MalformedFragmentError(f"Could not parse fragment {path.name}: {e}", str(path)) from e
        return self._container(root, path)

    def _read_index(self, path: Path) -> ET.Element:
        try:
            return ET.parse(path).getroot()
        except ET.ParseError as e:
            raise StoreIOError(f"Aggregate descriptor {path.name} is corrupt: {e}") from e
        except OSError as e:
            raise StoreIOError(f"Could not read staged descriptor {path}: {e}") from e

    def _container(self, root: ET.Element, path: Optional[Path]) -> ET.Element:
        if root.tag == self.container_tag:
            return root
        container = root.find(self.container_tag)
        if container is None:
            name = path.name if path is not None else self.filename
            raise MalformedFragmentError(f"{name} has no <{self.container_tag}> element")
        return container

    def _key(self, entry: ET.Element, source) -> EntryKey:
        if not entry.get('id'):
            raise MalformedFragmentError(f"<{self.entry_tag}> without id in {source}")
        return tuple(entry.get(name, '') for name in self.key_attributes)

    def _entries_by_key(self, container: ET.Element, source) -> Dict[EntryKey, ET.Element]:
        return {self._key(entry, source): entry for entry in container.findall(self.entry_tag)}

    def _store_entries(
        self,
        root: ET.Element,
        container: ET.Element,
        entries: Dict[EntryKey, ET.Element],
        path: Path
    ) -> None:
        for entry in container.findall(self.entry_tag):
            container.remove(entry)
        if not entries:
            container.text = None
        for key in sorted(entries):
            container.append(entries[key])
        container.set('size', str(len(entries)))

        properties = root.find('properties')
        if properties is None:
            properties = ET.Element('properties')
            root.insert(0, properties)
        self._set_property(properties, TIMESTAMP_PROPERTY, str(self._clock()))
        self._write(root, path)

    def _set_property(self, properties: ET.Element, name: str, value: str) -> None:
        for prop in properties.findall('property'):
            if prop.get('name') == name:
                prop.set('value', value)
                break
        else:
            ET.SubElement(properties, 'property', {'name': name, 'value': value})
        properties.set('size', str(len(properties.findall('property'))))

    def _write(self, root: ET.Element, path: Path) -> None:
        ET.indent(root, space='  ')
        body = ET.tostring(root, encoding='unicode')
        path.write_text(f"{XML_DECLARATION}\n{self.instruction}\n{body}\n", encoding='utf-8')


class ArtifactToolkit(DescriptorToolkit):
    """Toolkit for artifacts.xml descriptors."""

    kind = DescriptorKind.ARTIFACTS
    container_tag = 'artifacts'
    entry_tag = 'artifact'
    key_attributes = ('classifier', 'id', 'version')
    instruction = "<?artifactRepository version='1.1.0'?>"

    MAPPING_RULES = (
        ('(& (classifier=osgi.bundle))', '${repoUrl}/plugins/${id}_${version}.jar'),
        ('(& (classifier=binary))', '${repoUrl}/binary/${id}_${version}'),
        ('(& (classifier=org.eclipse.update.feature))', '${repoUrl}/features/${id}_${version}.jar'),
    )

    def _add_empty_sections(self, root: ET.Element) -> None:
        mappings = ET.SubElement(root, 'mappings', {'size': str(len(self.MAPPING_RULES))})
        for rule_filter, output in self.MAPPING_RULES:
            ET.SubElement(mappings, 'rule', {'filter': rule_filter, 'output': output})

    def list_installable_artifacts(self, fragment_dir: Path) -> List[InstallableArtifact]:
        """Artifacts described by the fragment, in document order."""
        container = self._fragment_container(Path(fragment_dir))
        artifacts = []
        for entry in container.findall(self.entry_tag):
            self._key(entry, fragment_dir)
            artifacts.append(InstallableArtifact(
                id=entry.get('id'),
                version=entry.get('version', ''),
                classifier=entry.get('classifier', ''),
            ))
        return artifacts


class MetadataToolkit(DescriptorToolkit):
    """Toolkit for content.xml descriptors."""

    kind = DescriptorKind.METADATA
    container_tag = 'units'
    entry_tag = 'unit'
    key_attributes = ('id', 'version')
    instruction = "<?metadataRepository version='1.1.0'?>"
