"""
Store adapters for p2index.

A store holds a repository's named byte blobs (modules, descriptor
fragments, the aggregate index) plus links: entries that carry no bytes of
their own and resolve to another item's content.

LocalStore keeps everything under one directory:
- Atomic writes (write to temp, then rename)
- Links as relative symlinks, replaced atomically
- Per-item locks shared by every LocalStore on the same directory
"""

import mimetypes
import os
import shutil
import tempfile
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
import logging

from ..domain.descriptor import normalize_path
from ..errors import StoreIOError, StoreUnavailableError
from .locks import ItemLock, LockRegistry, default_registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreItem:
    """A file or link found in a store."""
    repository_id: str
    path: str
    is_link: bool = False
    target: Optional[str] = None  # store path the link resolves to

    @property
    def content_type(self) -> str:
        return mimetypes.guess_type(self.path)[0] or 'application/octet-stream'


@dataclass(frozen=True)
class ItemUid:
    """Identity of an item inside a store, carrying the item's lock."""
    repository_id: str
    path: str
    lock: ItemLock


class Store(ABC):
    """Interface the aggregation engine needs from an artifact store."""

    @property
    @abstractmethod
    def repository_id(self) -> str:
        """Identifier of the repository this store serves."""

    @abstractmethod
    def get(self, path: str) -> Optional[bytes]:
        """Content at path, or None when nothing readable is there."""

    @abstractmethod
    def put(self, path: str, data: bytes, content_type: Optional[str] = None) -> None:
        """Replace the content at path in one step."""

    @abstractmethod
    def delete(self, path: str) -> bool:
        """Delete a file, link or directory subtree. False if absent."""

    @abstractmethod
    def retrieve_item(self, path: str) -> Optional[StoreItem]:
        """Describe the item at path without reading it."""

    @abstractmethod
    def store_link(self, link_path: str, target_path: str) -> None:
        """Create or overwrite a link at link_path resolving to target_path."""

    @abstractmethod
    def list_tree(self, root: str = '') -> List[str]:
        """All file paths below root, lexicographically sorted."""

    @abstractmethod
    def list_links(self, root: str = '') -> List[str]:
        """All link paths below root, lexicographically sorted."""

    @abstractmethod
    def create_uid(self, path: str) -> ItemUid:
        """Identity (and lock) for the item at path."""

    def exists(self, path: str) -> bool:
        return self.retrieve_item(path) is not None


class LocalStore(Store):
    """
    Store backed by a local directory.

    Example:
        store = LocalStore("releases", Path("/srv/releases"))
        store.put("com/acme/a/1.0/a-1.0.jar", data)
        store.store_link(".meta/p2/plugins/a_1.0.jar", "com/acme/a/1.0/a-1.0.jar")
        store.get(".meta/p2/plugins/a_1.0.jar") == data
    """

    def __init__(self, repository_id: str, base_dir: Path, locks: Optional[LockRegistry] = None):
        """
        Initialize LocalStore.

        Args:
            repository_id: Identifier of the repository
            base_dir: Directory holding the repository's files
            locks: Lock registry (process-wide default if None)
        """
        self._repository_id = repository_id
        self.base_dir = Path(base_dir).expanduser().resolve()
        self._locks = locks if locks is not None else default_registry

    def __repr__(self) -> str:
        return f"LocalStore({self._repository_id!r}, {str(self.base_dir)!r})"

    @property
    def repository_id(self) -> str:
        return self._repository_id

    def local_path(self, path: str) -> Path:
        """Filesystem location of a store path."""
        return self.base_dir / normalize_path(path)

    def get(self, path: str) -> Optional[bytes]:
        target = self.local_path(path)
        try:
            return target.read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None
        except OSError as e:
            raise StoreIOError(f"Could not read [{self._repository_id}:{path}]: {e}") from e

    def put(self, path: str, data: bytes, content_type: Optional[str] = None) -> None:
        target = self.local_path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._write_atomic(target, data)
        except OSError as e:
            raise StoreIOError(f"Could not write [{self._repository_id}:{path}]: {e}") from e
        logger.debug(f"Stored [{self._repository_id}:{path}] ({content_type or 'unknown type'}, {len(data)} bytes)")

    def _write_atomic(self, target: Path, data: bytes) -> None:
        """Write data atomically using temp file and rename."""
        fd, temp_path = tempfile.mkstemp(
            dir=target.parent,
            prefix=f".{target.name}.",
            suffix=".tmp"
        )

        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.chmod(temp_path, 0o644)

            # Atomic rename, also replaces a link at the same path
            os.replace(temp_path, target)

        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def delete(self, path: str) -> bool:
        if not normalize_path(path):
            raise StoreIOError(f"Refusing to delete the root of repository [{self._repository_id}]")
        target = self.local_path(path)
        try:
            if target.is_symlink() or target.is_file():
                target.unlink()
                return True
            if target.is_dir():
                shutil.rmtree(target)
                return True
        except OSError as e:
            raise StoreIOError(f"Could not delete [{self._repository_id}:{path}]: {e}") from e
        return False

    def retrieve_item(self, path: str) -> Optional[StoreItem]:
        relative = normalize_path(path)
        target = self.local_path(relative)
        if target.is_symlink():
            resolved = target.resolve()
            try:
                link_target = resolved.relative_to(self.base_dir).as_posix()
            except ValueError:
                link_target = str(resolved)
            return StoreItem(self._repository_id, relative, is_link=True, target=link_target)
        if target.is_file():
            return StoreItem(self._repository_id, relative)
        return None

    def store_link(self, link_path: str, target_path: str) -> None:
        link = self.local_path(link_path)
        target = self.local_path(target_path)
        if link.is_dir() and not link.is_symlink():
            raise StoreIOError(f"Cannot link over directory [{self._repository_id}:{link_path}]")

        link.parent.mkdir(parents=True, exist_ok=True)
        relative = os.path.relpath(target, link.parent)
        temp = link.parent / f".{link.name}.{uuid.uuid4().hex}.tmp"
        try:
            temp.symlink_to(relative)
            os.replace(temp, link)
        except OSError as e:
            temp.unlink(missing_ok=True)
            raise StoreIOError(f"Could not link [{self._repository_id}:{link_path}] to [{target_path}]: {e}") from e

    def list_tree(self, root: str = '') -> List[str]:
        base = self.local_path(root)
        if not base.is_dir():
            raise StoreUnavailableError(
                f"Storage of repository [{self._repository_id}] is not available at {base}"
            )

        paths = []
        for dirpath, dirnames, filenames in os.walk(base, onerror=self._raise_walk_error):
            dirnames.sort()
            for name in filenames:
                full = Path(dirpath) / name
                if full.is_symlink():
                    continue
                paths.append(full.relative_to(self.base_dir).as_posix())
        return sorted(paths)

    def _raise_walk_error(self, error: OSError) -> None:
        raise StoreUnavailableError(
            f"Storage of repository [{self._repository_id}] could not be listed: {error}"
        ) from error

    def list_links(self, root: str = '') -> List[str]:
        base = self.local_path(root)
        if not base.is_dir():
            return []

        links = []
        for dirpath, dirnames, filenames in os.walk(base):
            for name in dirnames + filenames:
                full = Path(dirpath) / name
                if full.is_symlink():
                    links.append(full.relative_to(self.base_dir).as_posix())
        return sorted(links)

    def modified_time(self, path: str) -> Optional[float]:
        try:
            return self.local_path(path).stat().st_mtime
        except OSError:
            return None

    def create_uid(self, path: str) -> ItemUid:
        relative = normalize_path(path)
        lock = self._locks.get((str(self.base_dir), relative))
        return ItemUid(self._repository_id, relative, lock)
