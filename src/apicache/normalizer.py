"""Canonical cache keys for request URIs.

:func:`normalize` turns a request URI into the string used as the primary
cache key, and :func:`uri_hash` derives the fixed-size member key used to
address the backup bucket. Both are pure functions and safe to call from
any thread.

Normalization rules:

* scheme and host are lowercased;
* query parameters are sorted by their raw ``name=value`` substrings and
  re-joined with ``&`` (an empty query is dropped);
* trailing ``/`` characters are removed from the path, except that a URI
  with a host always keeps ``/`` as its path.

Example::

    >>> normalize("HTTP://Api.Example.com/users/?b=2&a=1")
    'http://api.example.com/users?a=1&b=2'
"""

from __future__ import annotations

import hashlib
from typing import Optional
from urllib.parse import SplitResult, urlsplit, urlunsplit


def _sort_query(query: str) -> str:
    if not query.strip():
        return ""
    return "&".join(sorted(query.split("&")))


def _lower_netloc(parts: SplitResult) -> str:
    """Lowercase the host portion of a netloc, leaving userinfo untouched."""
    netloc = parts.netloc
    userinfo, sep, hostport = netloc.rpartition("@")
    return f"{userinfo}{sep}{hostport.lower()}"


def normalize(uri: str) -> str:
    """Return the canonical form of *uri*.

    The transform is idempotent: ``normalize(normalize(x)) == normalize(x)``.

    Args:
        uri: An absolute or relative request URI.

    Returns:
        The normalized URI string.
    """
    parts = urlsplit(uri)
    path = parts.path.rstrip("/")
    netloc = _lower_netloc(parts)
    if netloc and not path:
        path = "/"
    return urlunsplit(
        (parts.scheme.lower(), netloc, path, _sort_query(parts.query), parts.fragment)
    )


def uri_hash(normalized_uri: str) -> str:
    """Return the 128-bit hex digest used as a backup-bucket member key."""
    return hashlib.md5(normalized_uri.encode("utf-8"), usedforsecurity=False).hexdigest()


def request_host(uri: str) -> Optional[str]:
    """Return the lowercased host of *uri*, or ``None`` for relative URIs."""
    host = urlsplit(uri).hostname
    return host or None
