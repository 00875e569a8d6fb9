"""
p2index - Aggregate p2 index for artifact repositories.

Tycho-built modules publish per-module descriptor fragments
(`*-p2artifacts.xml`, `*-p2metadata.xml`) next to their jars. p2index
merges those fragments into one repository-wide index, `artifacts.xml`
and `content.xml` under `.meta/p2`, and links every bundle and feature
from `plugins/` and `features/`, so the repository can be consumed as a
p2 update site.

Quick Start:
    import p2index

    # Create instance from ~/.p2index/config.json
    p2 = p2index.P2Index()

    # Enable aggregation and index what is already published
    p2.enable("releases")
    p2.rebuild("releases")

    # React to a publish
    p2.update_artifacts("releases", "org/x/1.0/x-1.0-p2artifacts.xml")
    p2.update_metadata("releases", "org/x/1.0/x-1.0-p2metadata.xml")

Domain Objects:
    DescriptorKind - artifacts.xml vs. content.xml
    InstallableArtifact - Artifact entry contributed by a fragment
    AggregationResult - Outcome of one operation

Services:
    AggregationEngine - Merge/remove/rebuild under a per-repository lock
    EventService - Store events to engine operations
    FragmentPoller - Detects fragment changes by polling
"""

__version__ = "0.3.0"

# High-level API
from .api import P2Index, create

from .domain import (
    DescriptorKind,
    InstallableArtifact,
    IndexLayout,
    Operation,
    OperationStatus,
    AggregationResult,
)
from .services import (
    AggregationEngine,
    AggregationConfigStore,
    RepositoryConfiguration,
    RepositoryRegistry,
    EventService,
    StoreEvent,
    StoreEventType,
    FragmentPoller,
)
from .infra import LocalStore
from .errors import (
    AggregationError,
    RepositoryNotFoundError,
    MalformedFragmentError,
    FragmentNotFoundError,
    StoreUnavailableError,
    StoreIOError,
)

__all__ = [
    'P2Index',
    'create',
    'DescriptorKind',
    'InstallableArtifact',
    'IndexLayout',
    'Operation',
    'OperationStatus',
    'AggregationResult',
    'AggregationEngine',
    'AggregationConfigStore',
    'RepositoryConfiguration',
    'RepositoryRegistry',
    'EventService',
    'StoreEvent',
    'StoreEventType',
    'FragmentPoller',
    'LocalStore',
    'AggregationError',
    'RepositoryNotFoundError',
    'MalformedFragmentError',
    'FragmentNotFoundError',
    'StoreUnavailableError',
    'StoreIOError',
]
