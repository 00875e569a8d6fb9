"""
Item locks for p2index stores.

Every mutating operation on a repository's aggregate index holds the lock
for the index root, so operations on the same repository never interleave.
Locks are reentrant for the owning thread and block indefinitely.
"""

import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Dict, Hashable, Iterator, List

logger = logging.getLogger(__name__)


class LockMode(Enum):
    """Why a lock is held. All modes are exclusive."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ItemLock:
    """
    Exclusive, reentrant lock for one store item.

    Example:
        lock = registry.get(("releases", ".meta/p2"))
        with lock.held(LockMode.UPDATE):
            ...
    """

    def __init__(self, key: Hashable):
        self.key = key
        self._lock = threading.RLock()
        self._modes: List[LockMode] = []

    def lock(self, mode: LockMode) -> None:
        logger.debug(f"Acquiring {mode.value} lock on {self.key}")
        self._lock.acquire()
        self._modes.append(mode)

    def unlock(self) -> None:
        # The mode stack is only touched while the lock is owned
        mode = self._modes.pop() if self._modes else None
        try:
            self._lock.release()
        except RuntimeError:
            # Calling thread does not own the lock
            if mode is not None:
                self._modes.append(mode)
            raise
        logger.debug(f"Released {mode.value} lock on {self.key}")

    @property
    def mode(self):
        """Innermost mode the lock is currently held in, or None."""
        return self._modes[-1] if self._modes else None

    @contextmanager
    def held(self, mode: LockMode) -> Iterator['ItemLock']:
        self.lock(mode)
        try:
            yield self
        finally:
            self.unlock()


class LockRegistry:
    """Hands out one ItemLock per key, creating it on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, ItemLock] = {}

    def get(self, key: Hashable) -> ItemLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = ItemLock(key)
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)


default_registry = LockRegistry()
