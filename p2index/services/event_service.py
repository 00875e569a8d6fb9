"""
Event service for p2index.

Turns store-change notifications into aggregation operations:
- an added artifacts fragment is merged into artifacts.xml
- a removed artifacts fragment is subtracted from artifacts.xml
- the same for metadata fragments and content.xml
- anything else (modules, hidden paths, the index itself) is ignored
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional
import logging

from ..domain import AggregationResult, Operation, is_hidden
from .aggregator import AggregationEngine

logger = logging.getLogger(__name__)


class StoreEventType(Enum):
    """Kind of change observed in a store."""
    ADDED = "added"
    REMOVED = "removed"

    @property
    def operation(self) -> Operation:
        return Operation.MERGE if self is StoreEventType.ADDED else Operation.REMOVE


@dataclass
class StoreEvent:
    """
    A file added to or removed from a repository.

    Attributes:
        type: Added (created or modified) or removed
        repository_id: Repository the change happened in
        path: Repository-relative path of the file
        content: Last known bytes of the file, for removals
    """
    type: StoreEventType
    repository_id: str
    path: str
    content: Optional[bytes] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'repository': self.repository_id,
            'path': self.path,
        }

    def __repr__(self) -> str:
        return f"StoreEvent(type={self.type.value!r}, repo={self.repository_id!r}, path={self.path!r})"


class EventService:
    """
    Dispatches store events to the aggregation engine.

    Example:
        service = EventService(engine)
        result = service.handle(StoreEvent(StoreEventType.ADDED, "releases", "a/1.0/a-1.0-p2artifacts.xml"))
    """

    def __init__(self, engine: AggregationEngine):
        self.engine = engine

    def handle(self, event: StoreEvent) -> Optional[AggregationResult]:
        """
        Run the operation matching an event.

        Returns:
            The operation's result, or None if the event is not about a
            fragment of a repository with aggregation enabled
        """
        configuration = self.engine.configurations.get(event.repository_id)
        if configuration is None:
            return None
        if is_hidden(event.path) or event.path.startswith(f"{configuration.layout.root}/"):
            return None

        kind = configuration.classify(event.path)
        if kind is None:
            return None

        logger.debug(f"Dispatching {event!r} as {kind.value}")
        return self.engine.process(
            kind, event.type.operation, event.repository_id, event.path, event.content
        )

    def handle_all(self, events: Iterable[StoreEvent]) -> List[AggregationResult]:
        """Handle events in order, dropping the ones that were ignored."""
        results = []
        for event in events:
            result = self.handle(event)
            if result is not None:
                results.append(result)
        return results
