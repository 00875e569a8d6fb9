"""
Aggregation engine for p2index.

Keeps a repository's aggregate index (artifacts.xml + content.xml) in step
with the descriptor fragments published into it. Every mutating operation
follows the same protocol:

1. skip silently unless aggregation is enabled for the repository
2. lock the index root of the repository, then check it is still enabled
3. copy the exposed index file into a private staging area
4. repair the fragment header if needed and merge/remove it
5. for artifacts, create/delete the plugins/ and features/ links
6. copy the staged file back over the exposed one in a single replace
7. unlock and drop the staging area, also on failure

Failures never propagate: aggregation reacts to a publish or delete that
has already happened and must not fail it. They are logged and reported
in the returned AggregationResult, and the exposed index is left as it
was before the operation.
"""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from ..descriptors import ArtifactToolkit, MetadataToolkit, DescriptorToolkit, prepare_fragment
from ..domain import (
    AggregationResult,
    DescriptorKind,
    LinkSummary,
    Operation,
    is_hidden,
)
from ..errors import (
    FragmentNotFoundError,
    MalformedFragmentError,
    StoreIOError,
    StoreUnavailableError,
)
from ..infra import LockMode, Store, fragment_directory, staging_area
from .configuration import AggregationConfigStore, RepositoryConfiguration
from .link_service import LinkService
from .registry import RepositoryRegistry

logger = logging.getLogger(__name__)

XML_CONTENT_TYPE = 'application/xml'

ACTIONS = {
    (DescriptorKind.ARTIFACTS, Operation.MERGE): 'update-artifacts',
    (DescriptorKind.ARTIFACTS, Operation.REMOVE): 'remove-artifacts',
    (DescriptorKind.METADATA, Operation.MERGE): 'update-metadata',
    (DescriptorKind.METADATA, Operation.REMOVE): 'remove-metadata',
}


class AggregationEngine:
    """
    Maintains aggregate indexes for the repositories in a registry.

    Example:
        engine = AggregationEngine(registry, AggregationConfigStore())
        engine.enable(RepositoryConfiguration("releases"))

        result = engine.update_artifacts("releases", "org/x/1.0/x-1.0-p2artifacts.xml")
        print(result.status, result.links.created)

        engine.scan_and_rebuild("releases")
    """

    def __init__(
        self,
        repositories: RepositoryRegistry,
        configurations: AggregationConfigStore,
        artifact_toolkit: Optional[ArtifactToolkit] = None,
        metadata_toolkit: Optional[MetadataToolkit] = None,
        clock: Optional[Callable[[], int]] = None
    ):
        """
        Initialize AggregationEngine.

        Args:
            repositories: Resolves repository ids to stores
            configurations: Repositories with aggregation enabled
            artifact_toolkit: Toolkit for artifacts.xml (default if None)
            metadata_toolkit: Toolkit for content.xml (default if None)
            clock: Milliseconds-since-epoch source for timestamps (for tests)
        """
        self.repositories = repositories
        self.configurations = configurations
        self._clock = clock
        self.toolkits: Dict[DescriptorKind, DescriptorToolkit] = {
            DescriptorKind.ARTIFACTS: artifact_toolkit or ArtifactToolkit(clock),
            DescriptorKind.METADATA: metadata_toolkit or MetadataToolkit(clock),
        }

    # Lifecycle

    def enable(self, configuration: RepositoryConfiguration) -> AggregationResult:
        """
        Enable aggregation for a repository, creating its empty index.

        The configuration stays registered even if the index cannot be
        created yet; the next operation creates it lazily.
        """
        repository_id = configuration.repository_id
        result = AggregationResult(repository_id, 'enable', path=configuration.layout.root)
        self.configurations.enable(configuration)
        try:
            store = self.repositories.get(repository_id)
            uid = store.create_uid(configuration.layout.root)
            with uid.lock.held(LockMode.CREATE):
                created = self._ensure_index(store, configuration)
        except Exception as e:
            logger.warning(
                f"Could not create aggregate index [{repository_id}:{configuration.layout.root}] due to [{e}]"
            )
            return result.fail(str(e))

        if created:
            logger.info(f"Created aggregate index for [{repository_id}]: {', '.join(created)}")
        return result

    def disable(self, repository_id: str) -> AggregationResult:
        """Disable aggregation for a repository and delete its index."""
        result = AggregationResult(repository_id, 'disable')
        configuration = self.configurations.disable(repository_id)
        if configuration is None:
            return result.skip("aggregation not enabled")

        root = configuration.layout.root
        result.path = root
        try:
            store = self.repositories.get(repository_id)
            uid = store.create_uid(root)
            with uid.lock.held(LockMode.DELETE):
                store.delete(root)
        except Exception as e:
            logger.warning(f"Could not delete aggregate index [{repository_id}:{root}] due to [{e}]")
            return result.fail(str(e))
        logger.info(f"Deleted aggregate index [{repository_id}:{root}]")
        return result

    # Fragment operations

    def update_artifacts(self, repository_id: str, path: str, content: Optional[bytes] = None) -> AggregationResult:
        return self.process(DescriptorKind.ARTIFACTS, Operation.MERGE, repository_id, path, content)

    def remove_artifacts(self, repository_id: str, path: str, content: Optional[bytes] = None) -> AggregationResult:
        return self.process(DescriptorKind.ARTIFACTS, Operation.REMOVE, repository_id, path, content)

    def update_metadata(self, repository_id: str, path: str, content: Optional[bytes] = None) -> AggregationResult:
        return self.process(DescriptorKind.METADATA, Operation.MERGE, repository_id, path, content)

    def remove_metadata(self, repository_id: str, path: str, content: Optional[bytes] = None) -> AggregationResult:
        return self.process(DescriptorKind.METADATA, Operation.REMOVE, repository_id, path, content)

    def process(
        self,
        kind: DescriptorKind,
        operation: Operation,
        repository_id: str,
        path: str,
        content: Optional[bytes] = None
    ) -> AggregationResult:
        """
        Merge a fragment into, or remove it from, a repository's index.

        Args:
            kind: Descriptor kind of the fragment
            operation: Merge or remove
            repository_id: Repository the fragment was published to
            path: Repository-relative path of the fragment
            content: Fragment bytes; read from the store if None (removed
                fragments are usually gone by the time this runs)
        """
        result = AggregationResult(repository_id, ACTIONS[(kind, operation)], path=path)
        configuration = self.configurations.get(repository_id)
        if configuration is None:
            return result.skip("aggregation not enabled")

        logger.debug(f"Updating aggregate index {kind.value} ({operation.value}) for [{repository_id}:{path}]")
        index_path = configuration.layout.path_for(kind)
        try:
            store = self.repositories.get(repository_id)
            uid = store.create_uid(configuration.layout.root)
            with staging_area() as staging:
                with uid.lock.held(LockMode.UPDATE):
                    if not self.configurations.is_enabled(repository_id):
                        return self._disabled_while_waiting(result)
                    staged = self._stage(store, configuration, kind, staging)
                    links = self._process_fragment(
                        store, configuration, kind, operation, path, content, staging
                    )
                    self._swap(store, index_path, staged)
        except MalformedFragmentError as e:
            logger.debug(
                f"Could not update aggregate index [{repository_id}:{index_path}] "
                f"with malformed fragment [{path}]: {e}"
            )
            return result.fail(str(e))
        except Exception as e:
            logger.warning(
                f"Could not update aggregate index [{repository_id}:{index_path}] with [{path}] due to [{e}]"
            )
            return result.fail(str(e))

        result.fragments_processed = 1
        result.links = links
        return result

    # Rebuild

    def scan_and_rebuild(self, repository_id: str) -> AggregationResult:
        """
        Merge every fragment found in a repository into its index.

        Both index files are staged once, every fragment is merged into the
        staged copies in path order, and both are swapped back at the end,
        all under one lock. A fragment that fails is rolled back and
        skipped.
        """
        result = AggregationResult(repository_id, 'rebuild')
        logger.debug(f"Rebuilding aggregate index for repository [{repository_id}]")

        configuration = self.configurations.get(repository_id)
        if configuration is None:
            logger.warning(
                f"Rebuilding aggregate index for [{repository_id}] not executed "
                f"as aggregation is not enabled for this repository"
            )
            return result.skip("aggregation not enabled")

        layout = configuration.layout
        result.path = layout.root
        try:
            store = self.repositories.get(repository_id)
            uid = store.create_uid(layout.root)
            with staging_area() as staging:
                with uid.lock.held(LockMode.UPDATE):
                    if not self.configurations.is_enabled(repository_id):
                        return self._disabled_while_waiting(result)
                    fragments = self._fragments(store, configuration)
                    staged = {
                        kind: self._stage(store, configuration, kind, staging)
                        for kind in DescriptorKind
                    }
                    for path, kind in fragments:
                        self._rebuild_fragment(store, configuration, kind, path, staged[kind], staging, result)
                    for kind in DescriptorKind:
                        self._swap(store, layout.path_for(kind), staged[kind])
        except StoreUnavailableError as e:
            logger.warning(
                f"Rebuilding aggregate index not executed as repository [{repository_id}] "
                f"could not be scanned due to [{e}]"
            )
            return result.fail(str(e))
        except Exception as e:
            logger.warning(f"Rebuilding aggregate index [{repository_id}:{layout.root}] failed due to [{e}]")
            return result.fail(str(e))

        logger.info(
            f"Rebuilt aggregate index for [{repository_id}] from {result.fragments_processed} fragment(s)"
            + (f", {len(result.fragments_failed)} skipped" if result.fragments_failed else "")
        )
        return result

    def rebuild_all(self) -> List[AggregationResult]:
        """Rebuild the index of every repository with aggregation enabled."""
        return [self.scan_and_rebuild(repository_id) for repository_id in self.configurations.repository_ids()]

    def _rebuild_fragment(
        self,
        store: Store,
        configuration: RepositoryConfiguration,
        kind: DescriptorKind,
        path: str,
        staged: Path,
        staging: Path,
        result: AggregationResult
    ) -> None:
        snapshot = staged.read_bytes()
        try:
            links = self._process_fragment(store, configuration, kind, Operation.MERGE, path, None, staging)
        except Exception as e:
            staged.write_bytes(snapshot)
            result.fragments_failed.append(path)
            message = f"Skipping fragment [{store.repository_id}:{path}] during rebuild: {e}"
            if isinstance(e, MalformedFragmentError):
                logger.debug(message)
            else:
                logger.warning(message)
            return
        result.fragments_processed += 1
        result.links.extend(links)

    def _fragments(self, store: Store, configuration: RepositoryConfiguration) -> List[Tuple[str, DescriptorKind]]:
        """Visible fragment paths of a repository in lexicographic order."""
        fragments = []
        for path in store.list_tree():
            if is_hidden(path):
                continue
            kind = configuration.classify(path)
            if kind is not None:
                fragments.append((path, kind))
        return fragments

    # Status

    def status(self, repository_id: str, prune_links: bool = False) -> Dict[str, Any]:
        """
        Entry and link counts of a repository's index.

        An index file that cannot be read counts as None and is described
        under 'error'.

        Raises:
            RepositoryNotFoundError: if the repository is not registered
        """
        store = self.repositories.get(repository_id)
        configuration = self.configurations.get(repository_id)
        info: Dict[str, Any] = {
            'repository': repository_id,
            'enabled': configuration is not None,
        }
        if configuration is None:
            return info

        layout = configuration.layout
        info['index_root'] = layout.root
        errors = []
        for kind in DescriptorKind:
            index_path = layout.path_for(kind)
            try:
                data = store.get(index_path)
                info[kind.value] = len(self.toolkits[kind].parse_entries(data)) if data is not None else None
            except (MalformedFragmentError, StoreIOError) as e:
                logger.warning(f"Could not read aggregate index [{repository_id}:{index_path}]: {e}")
                info[kind.value] = None
                errors.append(f"{index_path}: {e}")
        if errors:
            info['error'] = '; '.join(errors)

        links = LinkService(store)
        if prune_links:
            with store.create_uid(layout.root).lock.held(LockMode.UPDATE):
                refresh = links.refresh_links(layout, prune=True)
        else:
            refresh = links.refresh_links(layout)
        info['links'] = refresh.total_links
        info['broken_links'] = refresh.broken_links
        if refresh.removed_links:
            info['removed_links'] = refresh.removed_links
        return info

    # Protocol steps

    def _disabled_while_waiting(self, result: AggregationResult) -> AggregationResult:
        logger.debug(f"Aggregation for [{result.repository_id}] was disabled before [{result.action}] got the index lock")
        return result.skip("aggregation not enabled")

    def _ensure_index(self, store: Store, configuration: RepositoryConfiguration) -> List[str]:
        """Create whichever index files are missing. Returns their paths."""
        created = []
        with staging_area() as scratch:
            for kind, toolkit in self.toolkits.items():
                index_path = configuration.layout.path_for(kind)
                if store.get(index_path) is not None:
                    continue
                empty = toolkit.write_empty(scratch, store.repository_id)
                store.put(index_path, empty.read_bytes(), content_type=XML_CONTENT_TYPE)
                created.append(index_path)
        return created

    def _stage(
        self,
        store: Store,
        configuration: RepositoryConfiguration,
        kind: DescriptorKind,
        staging: Path
    ) -> Path:
        """Copy the exposed index file into the staging area."""
        index_path = configuration.layout.path_for(kind)
        data = store.get(index_path)
        if data is None:
            self._ensure_index(store, configuration)
            data = store.get(index_path)
            if data is None:
                raise StoreIOError(f"Aggregate index [{store.repository_id}:{index_path}] could not be created")

        staged = staging / kind.index_filename
        staged.write_bytes(data)
        return staged

    def _process_fragment(
        self,
        store: Store,
        configuration: RepositoryConfiguration,
        kind: DescriptorKind,
        operation: Operation,
        path: str,
        content: Optional[bytes],
        staging: Path
    ) -> LinkSummary:
        """Apply one fragment to the staged index and maintain its links."""
        raw = content if content is not None else store.get(path)
        if raw is None:
            raise FragmentNotFoundError(path)

        toolkit = self.toolkits[kind]
        with fragment_directory(staging) as fragment_dir:
            prepared = prepare_fragment(raw, kind, fragment_dir, self._clock)
            prepared.replace(fragment_dir / toolkit.filename)

            if operation is Operation.MERGE:
                toolkit.merge(fragment_dir, staging)
            else:
                toolkit.remove(fragment_dir, staging)

            if kind is not DescriptorKind.ARTIFACTS:
                return LinkSummary()

            artifacts = toolkit.list_installable_artifacts(fragment_dir)
            logger.debug(f"Installable artifacts of {path}: {artifacts}")
            return LinkService(store).apply(configuration, path, artifacts, operation)

    def _swap(self, store: Store, index_path: str, staged: Path) -> None:
        """Replace the exposed index file with the staged one."""
        store.put(index_path, staged.read_bytes(), content_type=XML_CONTENT_TYPE)
