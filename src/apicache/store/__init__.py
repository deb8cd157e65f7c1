"""File-backed persistent store for cached responses.

This package provides :class:`FileStore`, a TTL-aware key-value store that
keeps one pretty-printed JSON file per entry beneath ``root_dir/domain/``,
and :class:`Bucket`, its two-level ``bucket -> member -> value`` view used
for backup responses.

The store is consumed by :class:`~apicache.engine.CacheEngine` and is
configured by the ``store`` and ``backup`` sections of
:class:`~apicache.models.GlobalConfig`.
"""

from apicache.store.file_store import Bucket, FileStore

__all__ = ["Bucket", "FileStore"]
