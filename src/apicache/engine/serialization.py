"""Conversion between :class:`httpx.Response` objects and stored entries.

A stored entry is a plain JSON-serialisable dict::

    {
        "status_code": 200,
        "headers": {"content-type": "application/json"},
        "format": "json",          # json | text | base64 | empty
        "encoding": "utf-8",
        "body": {"id": 1}
    }

JSON bodies are stored parsed so that cache files stay readable; other
text is stored as a string and binary content as base64.
"""

from __future__ import annotations

import base64
import json
from typing import Any, Optional

import httpx

from apicache.exceptions import CacheDecodeError

# The stored body is already decoded, so these no longer describe it.
_DROPPED_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})

_TEXT_MARKERS = ("json", "xml", "javascript", "x-www-form-urlencoded")


def _is_textual(content_type: str) -> bool:
    if not content_type or content_type.startswith("text/"):
        return True
    return any(marker in content_type for marker in _TEXT_MARKERS)


def extract_response_data(response: httpx.Response) -> Any:
    """Extract the body from an HTTP response.

    Attempts to parse the body as JSON first. If that fails (e.g. the
    response is HTML or plain text), returns the raw text. Returns ``None``
    for responses with no content.
    """
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def response_to_entry(response: httpx.Response) -> dict[str, Any]:
    """Serialise a fully-read *response* into a storable dict."""
    content_type = response.headers.get("content-type", "").lower()
    headers = {
        key: value
        for key, value in response.headers.items()
        if key.lower() not in _DROPPED_HEADERS
    }
    entry: dict[str, Any] = {
        "status_code": response.status_code,
        "headers": headers,
        "encoding": response.encoding or "utf-8",
    }

    if not response.content:
        entry.update(format="empty", body=None)
    elif "json" in content_type:
        try:
            entry.update(format="json", body=response.json())
        except ValueError:
            entry.update(format="text", body=response.text)
    elif _is_textual(content_type):
        entry.update(format="text", body=response.text)
    else:
        entry.update(format="base64", body=base64.b64encode(response.content).decode("ascii"))
    return entry


def entry_to_response(
    entry: Any, request: httpx.Request, key: Optional[str] = None
) -> httpx.Response:
    """Rebuild an :class:`httpx.Response` for *request* from a stored entry.

    Entries written before the ``format`` field existed are treated as JSON.

    Raises:
        CacheDecodeError: If *entry* is not an object, or its status,
            headers or base64 body cannot be decoded. *key* is attached to
            the error; it defaults to the request URL.
    """
    key = key or str(request.url)
    if not isinstance(entry, dict):
        raise CacheDecodeError(
            f"Cache entry for {key} is a {type(entry).__name__}, not an object", key
        )
    fmt = entry.get("format", "json")
    body = entry.get("body")
    encoding = entry.get("encoding") or "utf-8"

    try:
        if fmt == "empty" or body is None and fmt != "json":
            content = b""
        elif fmt == "json":
            content = json.dumps(body, ensure_ascii=False).encode("utf-8")
        elif fmt == "base64":
            content = base64.b64decode(body, validate=True)
        else:
            content = str(body).encode(encoding, errors="replace")
        headers = dict(entry.get("headers") or {})
        if fmt == "json":
            headers.setdefault("content-type", "application/json")
        return httpx.Response(
            status_code=int(entry.get("status_code", 200)),
            headers=headers,
            content=content,
            request=request,
        )
    except (TypeError, ValueError, LookupError) as exc:
        raise CacheDecodeError(f"Malformed cache entry for {key}: {exc}", key) from exc
