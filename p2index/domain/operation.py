"""
Operation result domain objects for p2index.

Provides the merge/remove operation tag and the standardized result
every engine operation returns instead of raising.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional


class Operation(Enum):
    """What a fragment does to the aggregate index."""
    MERGE = "merge"
    REMOVE = "remove"


class OperationStatus(Enum):
    """Status of an individual aggregation operation."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class LinkSummary:
    """Links touched while processing artifact fragments."""
    created: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def extend(self, other: 'LinkSummary') -> None:
        self.created.extend(other.created)
        self.deleted.extend(other.deleted)
        self.skipped.extend(other.skipped)


@dataclass
class AggregationResult:
    """
    Outcome of one aggregation operation on one repository.

    Used as the return value of every public engine operation, so callers
    can inspect what happened without the engine ever raising.
    """
    repository_id: str
    action: str  # e.g. "update-artifacts", "rebuild", "enable"
    status: OperationStatus = OperationStatus.SUCCESS
    path: Optional[str] = None
    error: Optional[str] = None
    fragments_processed: int = 0
    fragments_failed: List[str] = field(default_factory=list)
    links: LinkSummary = field(default_factory=LinkSummary)

    @property
    def success(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    def fail(self, error: str) -> 'AggregationResult':
        self.status = OperationStatus.FAILED
        self.error = error
        return self

    def skip(self, reason: Optional[str] = None) -> 'AggregationResult':
        self.status = OperationStatus.SKIPPED
        self.error = reason
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'repository': self.repository_id,
            'action': self.action,
            'status': self.status.value,
        }
        if self.path:
            result['path'] = self.path
        if self.error:
            result['error'] = self.error
        if self.fragments_processed:
            result['fragments_processed'] = self.fragments_processed
        if self.fragments_failed:
            result['fragments_failed'] = list(self.fragments_failed)
        if self.links.created:
            result['links_created'] = list(self.links.created)
        if self.links.deleted:
            result['links_deleted'] = list(self.links.deleted)
        if self.links.skipped:
            result['links_skipped'] = list(self.links.skipped)
        return result
