"""
Fragment polling for p2index.

Instead of filesystem notifications, polls the stores of repositories
with aggregation enabled and compares each fragment's modification time
with the previous poll. New or modified fragments become ADDED events,
vanished ones REMOVED events carrying the bytes seen on the last poll so
their entries can still be subtracted.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional
import logging

from ..domain import AggregationResult, is_hidden
from ..errors import StoreUnavailableError
from ..infra import LocalStore
from .event_service import EventService, StoreEvent, StoreEventType

logger = logging.getLogger(__name__)


@dataclass
class FragmentState:
    """What a poll saw of one fragment."""
    mtime: float
    content: bytes


class FragmentPoller:
    """Polls repository stores for fragment changes using timestamps."""

    def __init__(
        self,
        event_service: EventService,
        stores: Optional[Iterable[LocalStore]] = None,
        poll_interval: float = 5,
        on_result: Optional[Callable[[AggregationResult], None]] = None
    ):
        """Initialize fragment poller.

        Args:
            event_service: Dispatches detected events to the engine
            stores: Stores to poll (repositories without aggregation
                enabled are skipped on every poll)
            poll_interval: Seconds between polls (default: 5)
            on_result: Called with the result of every dispatched event
        """
        self.event_service = event_service
        self.poll_interval = poll_interval
        self.on_result = on_result
        self.stores: Dict[str, LocalStore] = {}
        self.is_polling = False

        # Last known state of each fragment, per repository
        self._snapshots: Dict[str, Dict[str, FragmentState]] = {}

        for store in stores or ():
            self.add_store(store)

    def add_store(self, store: LocalStore, prime: bool = True):
        """Add a store to poll.

        Args:
            store: Store to poll
            prime: Record the fragments already present without emitting
                events for them
        """
        self.stores[store.repository_id] = store
        if prime:
            self._snapshots[store.repository_id] = self._scan(store, {})
            logger.debug(
                f"Polling [{store.repository_id}], "
                f"{len(self._snapshots[store.repository_id])} fragment(s) known"
            )

    def remove_store(self, repository_id: str):
        self.stores.pop(repository_id, None)
        self._snapshots.pop(repository_id, None)

    def known_fragments(self, repository_id: str) -> List[str]:
        return sorted(self._snapshots.get(repository_id, {}))

    def _fragments(self, store: LocalStore) -> List[str]:
        configuration = self.event_service.engine.configurations.get(store.repository_id)
        if configuration is None:
            return []
        index_prefix = f"{configuration.layout.root}/"
        return [
            path for path in store.list_tree()
            if not is_hidden(path)
            and not path.startswith(index_prefix)
            and configuration.classify(path) is not None
        ]

    def _scan(self, store: LocalStore, previous: Dict[str, FragmentState]) -> Dict[str, FragmentState]:
        """Current state of a store's fragments, reusing unchanged entries."""
        try:
            paths = self._fragments(store)
        except StoreUnavailableError as e:
            logger.warning(f"Could not poll repository [{store.repository_id}]: {e}")
            return dict(previous)

        current = {}
        for path in paths:
            mtime = store.modified_time(path)
            if mtime is None:
                continue
            known = previous.get(path)
            if known is not None and known.mtime == mtime:
                current[path] = known
                continue
            content = store.get(path)
            if content is None:
                continue
            current[path] = FragmentState(mtime, content)
        return current

    def detect(self, repository_id: str) -> List[StoreEvent]:
        """
        Events since the previous poll of a repository.

        Removals come first, then additions, each in path order. A modified
        fragment is reported as added; merging replaces its entries.
        """
        store = self.stores[repository_id]
        previous = self._snapshots.get(repository_id, {})
        current = self._scan(store, previous)

        events = []
        for path in sorted(set(previous) - set(current)):
            events.append(StoreEvent(StoreEventType.REMOVED, repository_id, path, previous[path].content))
        for path in sorted(current):
            if previous.get(path) is not current[path]:
                events.append(StoreEvent(StoreEventType.ADDED, repository_id, path))

        self._snapshots[repository_id] = current
        if events:
            logger.debug(f"[{repository_id}]: {len(events)} fragment change(s)")
        return events

    def poll_once(self) -> List[AggregationResult]:
        """Poll every store once and dispatch what changed."""
        results = []
        for repository_id in sorted(self.stores):
            for result in self.event_service.handle_all(self.detect(repository_id)):
                results.append(result)
                if self.on_result:
                    self.on_result(result)
        return results

    async def run(self, cycles: Optional[int] = None):
        """Poll until stopped, or for a number of cycles.

        Each cycle waits one interval, then polls every store. Scanning and
        aggregating block, so they run in the default executor.

        Args:
            cycles: Number of polls (forever if None)
        """
        self.is_polling = True
        loop = asyncio.get_running_loop()
        completed = 0
        logger.info(f"Started polling {len(self.stores)} repositories every {self.poll_interval}s")

        try:
            while self.is_polling and (cycles is None or completed < cycles):
                await asyncio.sleep(self.poll_interval)
                try:
                    await loop.run_in_executor(None, self.poll_once)
                except Exception as e:
                    # Continue polling despite errors
                    logger.warning(f"Error in poll loop: {e}")
                completed += 1
        finally:
            self.is_polling = False
            logger.debug(f"Stopped polling after {completed} cycle(s)")

    def stop(self):
        """Stop polling after the current cycle."""
        self.is_polling = False

    def set_poll_interval(self, interval: float):
        self.poll_interval = interval
        logger.debug(f"Poll interval changed to {interval}s")
