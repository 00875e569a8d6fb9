"""
Repository registry for p2index.

Resolves repository identifiers to the stores that hold their files.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional
import logging

from ..errors import RepositoryNotFoundError
from ..infra import LocalStore, LockRegistry, Store

logger = logging.getLogger(__name__)


class RepositoryRegistry:
    """
    Lookup of stores by repository id.

    Example:
        registry = RepositoryRegistry()
        registry.register(LocalStore("releases", Path("/srv/releases")))
        store = registry.get("releases")
    """

    def __init__(self, stores: Optional[Iterable[Store]] = None):
        self._stores: Dict[str, Store] = {}
        for store in stores or ():
            self.register(store)

    def register(self, store: Store) -> None:
        self._stores[store.repository_id] = store

    def unregister(self, repository_id: str) -> Optional[Store]:
        return self._stores.pop(repository_id, None)

    def find(self, repository_id: str) -> Optional[Store]:
        return self._stores.get(repository_id)

    def get(self, repository_id: str) -> Store:
        """
        Store of a repository.

        Raises:
            RepositoryNotFoundError: if the repository is not registered
        """
        store = self.find(repository_id)
        if store is None:
            raise RepositoryNotFoundError(repository_id)
        return store

    def repository_ids(self) -> List[str]:
        return sorted(self._stores)

    def __iter__(self) -> Iterator[Store]:
        return iter([self._stores[key] for key in sorted(self._stores)])

    def __len__(self) -> int:
        return len(self._stores)

    @classmethod
    def from_config(cls, config: Dict[str, Any], locks: Optional[LockRegistry] = None) -> 'RepositoryRegistry':
        """Register a LocalStore for every repository with a path in config."""
        registry = cls()
        for repository_id, section in config.get('repositories', {}).items():
            path = section.get('path')
            if not path:
                logger.warning(f"Repository [{repository_id}] has no path configured, ignoring it")
                continue
            registry.register(LocalStore(repository_id, Path(path), locks=locks))
        return registry
