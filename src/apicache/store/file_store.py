"""TTL-aware key-value store backed by a filesystem tree.

Each entry is a UTF-8 file containing the pretty-printed JSON of its value,
placed at a path derived from the key (see :mod:`apicache.store.paths`).
An entry's modification time is its storage time: ``get`` lazily deletes
entries older than the store-wide TTL and ``purge`` sweeps them in bulk.

Writes go through :func:`~apicache.config.atomic_write`, and reads, writes
and deletes of a single key are serialised with a :class:`diskcache.Lock`
so that the check-expiry/delete/read sequence in :meth:`FileStore.get` is
safe across threads and processes sharing the same tree.

See Also:
    :class:`~apicache.models.StoreConfig` -- the Pydantic model that
    controls ``root_dir``, ``domain``, ``ttl_seconds`` and ``file_suffix``.
"""

from __future__ import annotations

import errno
import json
import logging
import os
import shutil
import stat
import threading
import time
from pathlib import Path
from typing import Any, Optional

import diskcache

from apicache.config import atomic_write
from apicache.exceptions import CacheDecodeError, CacheStoreError
from apicache.store.paths import (
    BUCKET_SUFFIX,
    DEFAULT_SUFFIX,
    bucket_path,
    key_path,
    member_path,
)

logger = logging.getLogger(__name__)

LOCK_DIRNAME = ".apicache-locks"


class FileStore:
    """File-backed cache rooted at ``root_dir/domain/``.

    Args:
        domain: Namespace that scopes this store to its own subtree.
            Stores with different domains never see each other's entries.
        root_dir: Root directory shared by all domains.
        ttl: Store-wide expiry in seconds. ``0`` means entries never expire.
        suffix: Suffix appended to every entry file name. The default
            ``.json`` lets ``/users`` and ``/users/1`` coexist as a file and a
            directory. An empty suffix keeps the bare ``<basename>_<query>``
            layout, where such pairs clash.
        lock_expire: Seconds after which an abandoned per-key lock is
            released automatically.

    Example::

        store = FileStore("twitter", "/var/cache/apicache", ttl=600)
        store.set("http://api.twitter.com/1/users/show.json?id=1", {"id": 1})
        store.get("http://api.twitter.com/1/users/show.json?id=1")
    """

    def __init__(
        self,
        domain: str = "default",
        root_dir: str | Path = "/tmp",
        ttl: int = 0,
        suffix: str = DEFAULT_SUFFIX,
        lock_expire: float = 60.0,
    ) -> None:
        self._domain = domain
        self._root_dir = Path(root_dir)
        self._root = self._root_dir / domain
        self._ttl = int(ttl)
        self._suffix = suffix
        self._lock_expire = lock_expire
        self._locks: Optional[diskcache.Cache] = None
        self._locks_guard = threading.Lock()

    @property
    def domain(self) -> str:
        return self._domain

    @property
    def root(self) -> Path:
        """The domain root directory (``root_dir/domain``)."""
        return self._root

    @property
    def ttl(self) -> int:
        return self._ttl

    @property
    def suffix(self) -> str:
        return self._suffix

    # ------------------------------------------------------------------ #
    # Key/value API
    # ------------------------------------------------------------------ #

    def path_for(self, key: str) -> Path:
        """Return the file path that *key* maps to."""
        return key_path(self._root, key, self._suffix)

    def exists(self, key: str) -> bool:
        """Return whether an entry file exists for *key*.

        Unlike :meth:`get` this never expires the entry.
        """
        return self.path_for(key).is_file()

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under *key*, or *default* if absent or expired.

        Raises:
            CacheDecodeError: If the entry exists but is not valid JSON.
            CacheStoreError: On any other filesystem failure.
        """
        with self.lock(key):
            return self._read(self.path_for(key), key, default)

    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*, replacing any existing entry.

        Raises:
            CacheStoreError: If the value is not JSON-serialisable or the
                file cannot be written.
        """
        with self.lock(key):
            self._write(self.path_for(key), key, value)

    def delete(self, key: str) -> None:
        """Remove the entry for *key*. Deleting a missing entry is a no-op."""
        with self.lock(key):
            self._unlink(self.path_for(key), key)

    def expire(self, key: str, seconds: int) -> bool:
        """Make the entry for *key* go stale *seconds* from now.

        The store-wide TTL stays in force, so the window cannot be made
        longer than :attr:`ttl`; the entry's storage time is moved back
        instead. Used to give a response recovered from backup a short
        freshness window.

        Returns:
            ``True`` if the entry was re-dated, ``False`` if it does not
            exist or this store never expires entries.
        """
        if self._ttl <= 0:
            logger.debug("Store %s never expires; ignoring expire(%s)", self._domain, key)
            return False
        path = self.path_for(key)
        with self.lock(key):
            if not path.is_file():
                return False
            now = time.time()
            stored_at = now - max(self._ttl - seconds, 0)
            try:
                os.utime(path, (now, stored_at))
            except FileNotFoundError:
                return False
            except OSError as exc:
                raise CacheStoreError(f"Cannot re-date cache entry {path}: {exc}", key) from exc
        return True

    # ------------------------------------------------------------------ #
    # Buckets
    # ------------------------------------------------------------------ #

    def bucket(self, name: str) -> Bucket:
        """Return the :class:`Bucket` view for the two-level map *name*."""
        return Bucket(self, name)

    def hget(self, bucket: str, member: str, default: Any = None) -> Any:
        return self.bucket(bucket).get(member, default)

    def hset(self, bucket: str, member: str, value: Any) -> None:
        self.bucket(bucket).set(member, value)

    def hexists(self, bucket: str, member: str) -> bool:
        return self.bucket(bucket).exists(member)

    def hdel(self, bucket: str, member: str) -> None:
        self.bucket(bucket).delete(member)

    # ------------------------------------------------------------------ #
    # Bulk maintenance
    # ------------------------------------------------------------------ #

    def clear(self) -> None:
        """Delete every entry in this domain, regardless of age."""
        try:
            if self._root.exists():
                shutil.rmtree(self._root)
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheStoreError(f"Cannot clear cache domain {self._root}: {exc}") from exc
        logger.info("Cleared cache domain %s", self._root)

    def purge(self) -> int:
        """Delete every expired entry and any directory left empty.

        Files whose name starts with ``.`` are never touched. A file that
        disappears while the sweep inspects it counts as already handled.
        The domain root itself is kept.

        Returns:
            The number of files removed. Always ``0`` when ``ttl`` is ``0``.

        Raises:
            CacheStoreError: On any filesystem failure other than a file
                vanishing mid-sweep; the sweep stops at the first failure.
        """
        if self._ttl <= 0 or not self._root.is_dir():
            return 0
        removed = self._purge_dir(self._root, time.time())
        logger.info("Purged %d expired entries from %s", removed, self._root)
        return removed

    def stats(self) -> dict[str, Any]:
        """Return counts and sizes for this domain.

        Returns:
            A ``dict`` with ``domain``, ``directory``, ``ttl_seconds``,
            ``entries`` (top-level entries), ``bucket_members`` and
            ``size_bytes``.
        """
        entries = 0
        members = 0
        size = 0
        for dirpath, _dirnames, filenames in os.walk(self._root):
            in_bucket = dirpath.endswith(BUCKET_SUFFIX)
            for name in filenames:
                if name.startswith("."):
                    continue
                try:
                    size += os.stat(os.path.join(dirpath, name)).st_size
                except FileNotFoundError:
                    continue
                if in_bucket:
                    members += 1
                else:
                    entries += 1
        return {
            "domain": self._domain,
            "directory": str(self._root),
            "ttl_seconds": self._ttl,
            "entries": entries,
            "bucket_members": members,
            "size_bytes": size,
        }

    # ------------------------------------------------------------------ #
    # Locking and lifecycle
    # ------------------------------------------------------------------ #

    def lock(self, key: str) -> diskcache.Lock:
        """Return the cross-process lock guarding *key* in this domain."""
        return diskcache.Lock(
            self._lock_cache(), f"{self._domain}:{key}", expire=self._lock_expire
        )

    def close(self) -> None:
        """Close the lock database and release resources."""
        with self._locks_guard:
            if self._locks is not None:
                self._locks.close()
                self._locks = None

    def __enter__(self) -> FileStore:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _lock_cache(self) -> diskcache.Cache:
        with self._locks_guard:
            if self._locks is None:
                self._locks = diskcache.Cache(str(self._root_dir / LOCK_DIRNAME))
            return self._locks

    # ------------------------------------------------------------------ #
    # Private helpers (callers hold the key lock)
    # ------------------------------------------------------------------ #

    # An entry path occupied by a directory, or sitting below a file, holds
    # no entry; reads treat both shapes as a miss.
    _ABSENT = (FileNotFoundError, IsADirectoryError, NotADirectoryError)

    def _is_expired(self, path: Path) -> bool:
        if self._ttl <= 0:
            return False
        try:
            st = path.stat()
        except (FileNotFoundError, NotADirectoryError):
            return False
        if not stat.S_ISREG(st.st_mode):
            return False
        return time.time() - st.st_mtime >= self._ttl

    def _read(self, path: Path, key: str, default: Any) -> Any:
        if self._is_expired(path):
            logger.debug("Expiring cache entry %s", path)
            self._unlink(path, key)
        try:
            text = path.read_text(encoding="utf-8")
        except self._ABSENT:
            return default
        except OSError as exc:
            raise CacheStoreError(f"Cannot read cache entry {path}: {exc}", key) from exc
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise CacheDecodeError(f"Corrupt cache entry {path}: {exc}", key) from exc

    def _write(self, path: Path, key: str, value: Any) -> None:
        try:
            text = json.dumps(value, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise CacheStoreError(f"Value for {key!r} is not JSON-serialisable: {exc}", key) from exc
        try:
            atomic_write(path, text + "\n")
        except OSError as exc:
            raise CacheStoreError(f"Cannot write cache entry {path}: {exc}", key) from exc

    def _unlink(self, path: Path, key: str) -> None:
        try:
            path.unlink()
        except self._ABSENT:
            pass
        except OSError as exc:
            raise CacheStoreError(f"Cannot delete cache entry {path}: {exc}", key) from exc

    def _purge_dir(self, directory: Path, now: float) -> int:
        removed = 0
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except FileNotFoundError:
            return 0
        except OSError as exc:
            raise CacheStoreError(f"Cannot list {directory}: {exc}") from exc

        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    removed += self._purge_dir(Path(entry.path), now)
                    continue
                if entry.name.startswith("."):
                    continue
                if now - entry.stat(follow_symlinks=False).st_mtime >= self._ttl:
                    os.unlink(entry.path)
                    removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise CacheStoreError(f"Cannot purge {entry.path}: {exc}") from exc

        if directory != self._root:
            self._remove_if_empty(directory)
        return removed

    @staticmethod
    def _remove_if_empty(directory: Path) -> None:
        try:
            with os.scandir(directory) as it:
                if next(it, None) is not None:
                    return
            directory.rmdir()
        except FileNotFoundError:
            return
        except OSError as exc:
            # A concurrent writer refilled the directory.
            if exc.errno in (errno.ENOTEMPTY, errno.EEXIST):
                return
            raise CacheStoreError(f"Cannot remove empty directory {directory}: {exc}") from exc


class Bucket:
    """Two-level map view: ``bucket -> member -> value``.

    Members are stored as files inside a ``<entry>.bucket/`` directory next
    to the entry for the bucket name, so they share the store's TTL and are
    removed by :meth:`FileStore.clear` and :meth:`FileStore.purge`.

    Args:
        store: The owning :class:`FileStore`.
        name: Bucket name. Any string that is valid as a store key.
    """

    def __init__(self, store: FileStore, name: str) -> None:
        self._store = store
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def path(self) -> Path:
        """Directory holding this bucket's members."""
        return bucket_path(self._store.root, self._name, self._store.suffix)

    def get(self, member: str, default: Any = None) -> Any:
        """Return the value of *member*, or *default* if absent or expired."""
        with self._lock(member):
            return self._store._read(self._member_path(member), self._name, default)

    def set(self, member: str, value: Any) -> None:
        """Store *value* as *member*, replacing any existing value."""
        with self._lock(member):
            self._store._write(self._member_path(member), self._name, value)

    def exists(self, member: str) -> bool:
        return self._member_path(member).is_file()

    def delete(self, member: str) -> None:
        with self._lock(member):
            self._store._unlink(self._member_path(member), self._name)

    def members(self) -> list[str]:
        """Return the stored member names, sorted."""
        suffix = self._store.suffix
        try:
            names = os.listdir(self.path)
        except (FileNotFoundError, NotADirectoryError):
            return []
        except OSError as exc:
            raise CacheStoreError(f"Cannot list bucket {self.path}: {exc}", self._name) from exc
        result = []
        for name in names:
            if name.startswith("."):
                continue
            if suffix and name.endswith(suffix):
                name = name[: -len(suffix)]
            result.append(name)
        return sorted(result)

    def __contains__(self, member: str) -> bool:
        return self.exists(member)

    def __len__(self) -> int:
        return len(self.members())

    def _member_path(self, member: str) -> Path:
        return member_path(self._store.root, self._name, member, self._store.suffix)

    def _lock(self, member: str) -> diskcache.Lock:
        return self._store.lock(f"{self._name}\x00{member}")
