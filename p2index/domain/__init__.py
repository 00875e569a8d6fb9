"""
Domain layer for p2index.

Contains pure domain objects with no I/O or side effects:
- DescriptorKind: artifacts vs. metadata descriptors
- InstallableArtifact: an artifact entry contributed by a fragment
- IndexLayout: where the aggregate index lives in a repository
- Operation / AggregationResult: what an operation did and how it ended
"""

from .descriptor import (
    ARTIFACTS_XML,
    CONTENT_XML,
    DEFAULT_INDEX_ROOT,
    DEFAULT_ARTIFACTS_SUFFIX,
    DEFAULT_METADATA_SUFFIX,
    DEFAULT_ARTIFACT_EXTENSION,
    DescriptorKind,
    InstallableArtifact,
    IndexLayout,
    normalize_path,
    is_hidden,
)
from .operation import Operation, OperationStatus, LinkSummary, AggregationResult

__all__ = [
    'ARTIFACTS_XML',
    'CONTENT_XML',
    'DEFAULT_INDEX_ROOT',
    'DEFAULT_ARTIFACTS_SUFFIX',
    'DEFAULT_METADATA_SUFFIX',
    'DEFAULT_ARTIFACT_EXTENSION',
    'DescriptorKind',
    'InstallableArtifact',
    'IndexLayout',
    'normalize_path',
    'is_hidden',
    'Operation',
    'OperationStatus',
    'LinkSummary',
    'AggregationResult',
]
