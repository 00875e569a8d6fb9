"""
Service layer for p2index.

Contains the logic that orchestrates domain objects and infrastructure:
- AggregationEngine: merge/remove of fragments, rebuild, enable/disable
- LinkService: plugins/ and features/ links
- EventService: store events to engine operations
- FragmentPoller: store polling that produces events

Services are the primary API for commands to use.
"""

from .configuration import RepositoryConfiguration, AggregationConfigStore, repository_configuration
from .registry import RepositoryRegistry
from .link_service import LinkService, RefreshResult
from .aggregator import AggregationEngine
from .event_service import EventService, StoreEvent, StoreEventType
from .poller import FragmentPoller

__all__ = [
    'RepositoryConfiguration',
    'AggregationConfigStore',
    'repository_configuration',
    'RepositoryRegistry',
    'LinkService',
    'RefreshResult',
    'AggregationEngine',
    'EventService',
    'StoreEvent',
    'StoreEventType',
    'FragmentPoller',
]
