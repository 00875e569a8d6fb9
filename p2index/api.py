"""
High-level Python API for p2index.

Wires the registry, the aggregation configurations and the engine from a
config dict (by default the user's config file).

Example:
    import p2index

    # Create instance (uses config file)
    p2 = p2index.P2Index()

    # Or with explicit configuration
    p2 = p2index.P2Index(config={
        "repositories": {"releases": {"path": "/srv/releases", "aggregate": True}}
    })

    # Fragment operations
    p2.update_artifacts("releases", "org/x/1.0/x-1.0-p2artifacts.xml")
    p2.remove_metadata("releases", "org/x/1.0/x-1.0-p2metadata.xml", content=old_bytes)

    # Rebuild every enabled repository
    for result in p2.rebuild():
        print(result.repository_id, result.status)

    # Low-level access to services
    p2.engine
    p2.registry
    p2.configurations
"""

from typing import Any, Callable, Dict, List, Optional
import logging

from .config import load_config
from .domain import AggregationResult
from .infra import LockRegistry
from .services import (
    AggregationConfigStore,
    AggregationEngine,
    EventService,
    FragmentPoller,
    RepositoryRegistry,
    repository_configuration,
)

logger = logging.getLogger(__name__)


class P2Index:
    """
    High-level API for p2index.

    Example:
        p2 = P2Index()
        p2.enable("releases")
        p2.rebuild("releases")
        print(p2.status("releases"))
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        locks: Optional[LockRegistry] = None,
        clock: Optional[Callable[[], int]] = None
    ):
        """
        Initialize P2Index.

        Args:
            config: Full config dict (loaded from the config file if None)
            locks: Lock registry for the stores (process-wide default if None)
            clock: Milliseconds-since-epoch source for index timestamps
        """
        self._config = config if config is not None else load_config()
        self.registry = RepositoryRegistry.from_config(self._config, locks)
        self.configurations = AggregationConfigStore.from_config(self._config)
        self.engine = AggregationEngine(self.registry, self.configurations, clock=clock)
        self.event_service = EventService(self.engine)

    @property
    def config(self) -> Dict[str, Any]:
        return self._config

    # Lifecycle

    def enable(self, repository_id: str) -> AggregationResult:
        """Enable aggregation with the repository's configured settings."""
        return self.engine.enable(repository_configuration(self._config, repository_id))

    def disable(self, repository_id: str) -> AggregationResult:
        return self.engine.disable(repository_id)

    # Fragment operations

    def update_artifacts(self, repository_id: str, path: str, content: Optional[bytes] = None) -> AggregationResult:
        return self.engine.update_artifacts(repository_id, path, content)

    def remove_artifacts(self, repository_id: str, path: str, content: Optional[bytes] = None) -> AggregationResult:
        return self.engine.remove_artifacts(repository_id, path, content)

    def update_metadata(self, repository_id: str, path: str, content: Optional[bytes] = None) -> AggregationResult:
        return self.engine.update_metadata(repository_id, path, content)

    def remove_metadata(self, repository_id: str, path: str, content: Optional[bytes] = None) -> AggregationResult:
        return self.engine.remove_metadata(repository_id, path, content)

    def rebuild(self, repository_id: Optional[str] = None) -> List[AggregationResult]:
        """Rebuild one repository's index, or every enabled one if None."""
        if repository_id is None:
            return self.engine.rebuild_all()
        return [self.engine.scan_and_rebuild(repository_id)]

    def status(self, repository_id: Optional[str] = None, prune_links: bool = False) -> List[Dict[str, Any]]:
        """Index status of one repository, or of every registered one."""
        repository_ids = [repository_id] if repository_id else self.registry.repository_ids()
        return [self.engine.status(rid, prune_links=prune_links) for rid in repository_ids]

    def poller(
        self,
        poll_interval: Optional[float] = None,
        on_result: Optional[Callable[[AggregationResult], None]] = None
    ) -> FragmentPoller:
        """Poller over the stores of every repository with aggregation enabled."""
        if poll_interval is None:
            poll_interval = self._config.get('watch', {}).get('interval_seconds', 5)
        stores = [
            store for store in self.registry
            if self.configurations.is_enabled(store.repository_id)
        ]
        return FragmentPoller(self.event_service, stores, poll_interval=poll_interval, on_result=on_result)


def create(config: Optional[Dict[str, Any]] = None, **kwargs) -> P2Index:
    """
    Create a P2Index instance.

    Convenience function for:
        p2 = p2index.create()

    Args:
        config: Full config dict (loaded from the config file if None)
        **kwargs: Additional arguments passed to P2Index

    Returns:
        Configured P2Index instance
    """
    return P2Index(config=config, **kwargs)
