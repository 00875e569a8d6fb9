"""
Aggregation configuration for p2index.

A RepositoryConfiguration says how one repository is aggregated: where its
index lives and how its fragments are named. The AggregationConfigStore
holds the configurations of every repository with aggregation enabled;
a repository without an entry is ignored by the engine.
"""

import threading
from dataclasses import dataclass, asdict
from pathlib import PurePosixPath
from typing import Any, Dict, Iterable, List, Optional
import logging

from ..domain.descriptor import (
    DEFAULT_INDEX_ROOT,
    DEFAULT_ARTIFACTS_SUFFIX,
    DEFAULT_METADATA_SUFFIX,
    DEFAULT_ARTIFACT_EXTENSION,
    DescriptorKind,
    IndexLayout,
    normalize_path,
)
from ..errors import MalformedFragmentError

logger = logging.getLogger(__name__)

CONFIGURATION_KEYS = ('index_root', 'artifacts_suffix', 'metadata_suffix', 'artifact_extension')


@dataclass(frozen=True)
class RepositoryConfiguration:
    """Aggregation settings for one repository."""
    repository_id: str
    index_root: str = DEFAULT_INDEX_ROOT
    artifacts_suffix: str = DEFAULT_ARTIFACTS_SUFFIX
    metadata_suffix: str = DEFAULT_METADATA_SUFFIX
    artifact_extension: str = DEFAULT_ARTIFACT_EXTENSION

    @property
    def layout(self) -> IndexLayout:
        return IndexLayout(self.index_root)

    def classify(self, path: str) -> Optional[DescriptorKind]:
        """Descriptor kind of a fragment path, or None for other files."""
        name = PurePosixPath(path).name
        if name.endswith(self.artifacts_suffix):
            return DescriptorKind.ARTIFACTS
        if name.endswith(self.metadata_suffix):
            return DescriptorKind.METADATA
        return None

    def artifact_path(self, fragment_path: str) -> str:
        """
        Path of the physical artifact published next to a fragment.

        Example:
            "org/x/1.0/x-1.0-p2artifacts.xml" -> "org/x/1.0/x-1.0.jar"
        """
        fragment = PurePosixPath(normalize_path(fragment_path))
        stem = fragment.name[:-len(self.artifacts_suffix)]
        if not fragment.name.endswith(self.artifacts_suffix) or not stem:
            raise MalformedFragmentError(
                f"Cannot derive artifact path from {fragment_path}", fragment_path
            )
        return str(fragment.parent / f"{stem}{self.artifact_extension}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(
        cls,
        repository_id: str,
        data: Optional[Dict[str, Any]] = None,
        defaults: Optional[Dict[str, Any]] = None
    ) -> 'RepositoryConfiguration':
        """
        Build a configuration from config file sections.

        Args:
            repository_id: Repository identifier
            data: The repository's own section (overrides defaults)
            defaults: The [aggregation] section
        """
        values = {}
        for source in (defaults or {}, data or {}):
            for key in CONFIGURATION_KEYS:
                if source.get(key):
                    values[key] = source[key]
        return cls(repository_id=repository_id, **values)


def repository_configuration(config: Dict[str, Any], repository_id: str) -> RepositoryConfiguration:
    """Configuration of one repository from a loaded config dict."""
    repositories = config.get('repositories', {})
    return RepositoryConfiguration.from_dict(
        repository_id,
        repositories.get(repository_id),
        config.get('aggregation'),
    )


class AggregationConfigStore:
    """
    Thread-safe set of enabled repository configurations.

    Example:
        store = AggregationConfigStore()
        store.enable(RepositoryConfiguration("releases"))
        store.is_enabled("releases")   # True
        store.disable("releases")
    """

    def __init__(self, configurations: Optional[Iterable[RepositoryConfiguration]] = None):
        self._lock = threading.Lock()
        self._configurations: Dict[str, RepositoryConfiguration] = {}
        for configuration in configurations or ():
            self.enable(configuration)

    def enable(self, configuration: RepositoryConfiguration) -> None:
        with self._lock:
            self._configurations[configuration.repository_id] = configuration

    def disable(self, repository_id: str) -> Optional[RepositoryConfiguration]:
        with self._lock:
            return self._configurations.pop(repository_id, None)

    def get(self, repository_id: str) -> Optional[RepositoryConfiguration]:
        with self._lock:
            return self._configurations.get(repository_id)

    def is_enabled(self, repository_id: str) -> bool:
        return self.get(repository_id) is not None

    def repository_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._configurations)

    def __len__(self) -> int:
        return len(self._configurations)

    def __contains__(self, repository_id: str) -> bool:
        return self.is_enabled(repository_id)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'AggregationConfigStore':
        """Configurations of every repository marked `aggregate` in config."""
        store = cls()
        for repository_id, section in config.get('repositories', {}).items():
            if section.get('aggregate'):
                store.enable(repository_configuration(config, repository_id))
        logger.debug(f"Aggregation enabled for {store.repository_ids()}")
        return store
