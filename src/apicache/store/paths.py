"""Deterministic mapping from cache keys to file paths.

A key is parsed as a URI and laid out as::

    <domain root>/<host>/<path dirname>/<sanitized file name>

The file name is the path's basename, followed by ``_<query>`` and
``_<fragment>`` when present, with ``? # = &`` replaced by ``_``, ``%22``
dropped, and ``%20`` or ``,`` replaced by ``-``. This layout is shared with
existing cache trees, so changes here invalidate every stored entry.
"""

from __future__ import annotations

import hashlib
import posixpath
import re
from pathlib import Path
from urllib.parse import urlsplit

_RESERVED = re.compile(r"[?#=&]")
_SPACE_OR_COMMA = re.compile(r"%20|,")

# Most filesystems cap a single path component at 255 bytes.
_MAX_NAME_BYTES = 255

INDEX_NAME = "index"
BUCKET_SUFFIX = ".bucket"
DEFAULT_SUFFIX = ".json"


def sanitize_filename(name: str) -> str:
    """Apply the file-name substitutions to *name*."""
    name = _RESERVED.sub("_", name)
    name = name.replace("%22", "")
    name = _SPACE_OR_COMMA.sub("-", name)
    # A slash inside a query or fragment would otherwise open a subdirectory.
    return name.replace("/", "%2F")


def _fit_name(name: str, reserve: int) -> str:
    """Shorten *name* so that it plus *reserve* bytes fits one path component."""
    limit = _MAX_NAME_BYTES - reserve
    if len(name.encode("utf-8")) <= limit:
        return name
    digest = hashlib.sha256(name.encode("utf-8")).hexdigest()
    head = name.encode("utf-8")[: limit - len(digest) - 1].decode("utf-8", "ignore")
    return f"{head}~{digest}"


def _host_segment(netloc_host: str | None, port: int | None) -> str | None:
    if not netloc_host:
        return None
    return f"{netloc_host}_{port}" if port is not None else netloc_host


def key_directory(root: Path, key: str) -> Path:
    """Return the directory that holds the entry for *key* (not created)."""
    parts = urlsplit(key)
    directory = root
    try:
        port = parts.port
    except ValueError:
        port = None
    host = _host_segment(parts.hostname, port)
    if host is not None:
        directory = directory / host
    if parts.path:
        for segment in posixpath.dirname(parts.path).split("/"):
            if segment in ("", ".", ".."):
                continue
            directory = directory / segment
    return directory


def key_filename(key: str) -> str:
    """Return the sanitized file name for *key*."""
    parts = urlsplit(key)
    name = posixpath.basename(parts.path) if parts.path else ""
    if name in ("", ".", ".."):
        name = INDEX_NAME
    if parts.query:
        name += f"_{parts.query}"
    if parts.fragment:
        name += f"_{parts.fragment}"
    return sanitize_filename(name)


def key_path(root: Path, key: str, suffix: str = "") -> Path:
    """Return the full entry path for *key* beneath *root*."""
    name = _fit_name(key_filename(key), len(suffix) + len(BUCKET_SUFFIX))
    return key_directory(root, key) / f"{name}{suffix}"


def bucket_path(root: Path, bucket: str, suffix: str = "") -> Path:
    """Return the directory holding the members of *bucket*."""
    entry = key_path(root, bucket, suffix)
    return entry.with_name(entry.name + BUCKET_SUFFIX)


def member_path(root: Path, bucket: str, member: str, suffix: str = "") -> Path:
    """Return the file path of *member* inside *bucket*.

    Raises:
        ValueError: If *member* is empty or a relative directory name.
    """
    if member in ("", ".", ".."):
        raise ValueError(f"Invalid bucket member: {member!r}")
    name = _fit_name(sanitize_filename(member), len(suffix))
    return bucket_path(root, bucket, suffix) / f"{name}{suffix}"
