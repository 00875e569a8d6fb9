"""
Link service for p2index.

Maintains the plugins/ and features/ links of an aggregate index. A link
carries no bytes of its own; reading it yields the physical artifact
published next to the module's descriptor fragment.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from ..domain import InstallableArtifact, IndexLayout, LinkSummary, Operation
from ..infra import Store, StoreItem
from .configuration import RepositoryConfiguration

logger = logging.getLogger(__name__)

LINK_DIRECTORIES = ('plugins', 'features')


@dataclass
class RefreshResult:
    """Result of checking the links of an index."""
    total_links: int = 0
    valid_links: int = 0
    broken_links: int = 0
    removed_links: int = 0
    broken_paths: List[str] = field(default_factory=list)


class LinkService:
    """
    Service for creating and deleting index links in a store.

    Example:
        service = LinkService(store)
        service.create_link(store.retrieve_item("a/1.0/a-1.0.jar"), ".meta/p2/plugins/a_1.0.jar")
        service.delete_link(".meta/p2/plugins/a_1.0.jar")
    """

    def __init__(self, store: Store):
        self.store = store

    def create_link(self, target: StoreItem, link_path: str) -> None:
        """Create a link to target, overwriting whatever is at link_path."""
        self.store.store_link(link_path, target.path)
        logger.debug(f"Linked [{self.store.repository_id}:{link_path}] to [{target.path}]")

    def delete_link(self, link_path: str) -> bool:
        """
        Delete the link at link_path.

        Returns:
            True if a link was deleted; False if there was none, or the
            path holds a regular file (which is left in place)
        """
        item = self.store.retrieve_item(link_path)
        if item is None:
            return False
        if not item.is_link:
            logger.warning(
                f"Not deleting [{self.store.repository_id}:{link_path}] as it is a file, not a link"
            )
            return False
        deleted = self.store.delete(link_path)
        logger.debug(f"Deleted link [{self.store.repository_id}:{link_path}]")
        return deleted

    def apply(
        self,
        configuration: RepositoryConfiguration,
        fragment_path: str,
        artifacts: Iterable[InstallableArtifact],
        operation: Operation
    ) -> LinkSummary:
        """
        Create (merge) or delete (remove) the links of a fragment's artifacts.

        Artifacts whose classifier has no link directory are ignored. On
        merge, a missing physical artifact skips the link with a warning.
        If any link fails, the links already touched are put back the way
        they were before the error is re-raised.
        """
        summary = LinkSummary()
        layout = configuration.layout
        artifact_path: Optional[str] = None
        touched: List[Tuple[str, Optional[str]]] = []

        try:
            for artifact in artifacts:
                link_path = layout.link_path(artifact)
                if link_path is None:
                    logger.debug(f"No link for {artifact.id} {artifact.version} ({artifact.classifier})")
                    continue

                previous = self._link_target(link_path)
                if operation is Operation.REMOVE:
                    if self.delete_link(link_path):
                        touched.append((link_path, previous))
                        summary.deleted.append(link_path)
                    continue

                if artifact_path is None:
                    artifact_path = configuration.artifact_path(fragment_path)
                target = self.store.retrieve_item(artifact_path)
                if target is None:
                    logger.warning(
                        f"Could not link [{self.store.repository_id}:{link_path}] as artifact "
                        f"[{artifact_path}] does not exist"
                    )
                    summary.skipped.append(link_path)
                    continue

                self.create_link(target, link_path)
                touched.append((link_path, previous))
                summary.created.append(link_path)
        except Exception:
            self._restore(touched)
            raise

        return summary

    def _link_target(self, link_path: str) -> Optional[str]:
        item = self.store.retrieve_item(link_path)
        if item is None or not item.is_link:
            return None
        return item.target

    def _restore(self, touched: List[Tuple[str, Optional[str]]]) -> None:
        """Undo link changes, newest first."""
        for link_path, previous in reversed(touched):
            try:
                if previous is None:
                    self.delete_link(link_path)
                else:
                    self.store.store_link(link_path, previous)
            except Exception as e:
                logger.warning(f"Could not restore link [{self.store.repository_id}:{link_path}]: {e}")

    def refresh_links(self, layout: IndexLayout, prune: bool = False) -> RefreshResult:
        """
        Check every link of an index and optionally remove broken ones.

        Args:
            layout: Index whose plugins/ and features/ links are checked
            prune: Whether to delete links whose target is gone
        """
        result = RefreshResult()
        for directory in LINK_DIRECTORIES:
            for link_path in self.store.list_links(f"{layout.root}/{directory}"):
                result.total_links += 1
                item = self.store.retrieve_item(link_path)
                if item is not None and item.target and self.store.exists(item.target):
                    result.valid_links += 1
                    continue

                result.broken_links += 1
                result.broken_paths.append(link_path)
                if prune and self.delete_link(link_path):
                    result.removed_links += 1
        return result
