"""
Infrastructure layer for p2index.

Contains abstractions for external systems:
- Store / LocalStore: artifact store with atomic writes and links
- LockRegistry / ItemLock: per-item exclusive locks
- staging_area: temporary directories removed on exit

These provide clean interfaces that can be mocked for testing.
"""

from .store import Store, LocalStore, StoreItem, ItemUid
from .locks import LockMode, ItemLock, LockRegistry
from .staging import staging_area, fragment_directory

__all__ = [
    'Store',
    'LocalStore',
    'StoreItem',
    'ItemUid',
    'LockMode',
    'ItemLock',
    'LockRegistry',
    'staging_area',
    'fragment_directory',
]
