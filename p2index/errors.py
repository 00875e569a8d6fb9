"""
Exception hierarchy for p2index.

Every failure the aggregation engine can run into maps onto one of these.
The engine catches them at its outer boundary and logs instead of raising,
so callers only see them when they use the lower layers directly.
"""

from typing import Optional


class AggregationError(Exception):
    """Base class for aggregation failures."""


class RepositoryNotFoundError(AggregationError):
    """Raised when a repository id cannot be resolved to a store."""

    def __init__(self, repository_id: str):
        super().__init__(f"Repository [{repository_id}] could not be found")
        self.repository_id = repository_id


class MalformedFragmentError(AggregationError):
    """Raised when a descriptor fragment cannot be repaired or parsed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class FragmentNotFoundError(AggregationError):
    """Raised when the fragment a change notification refers to is gone."""

    def __init__(self, path: str):
        super().__init__(f"Fragment [{path}] could not be read")
        self.path = path


class StoreUnavailableError(AggregationError):
    """Raised when a repository's physical storage cannot be accessed."""


class StoreIOError(AggregationError):
    """Raised when reading or writing a store item fails."""
