"""Response formatting bridge -- maps :class:`httpx.Response` to the output system.

After ``apicache fetch`` completes, :func:`format_api_response` writes the
status line and cache outcome to stderr and routes the body through
:meth:`~apicache.output.OutputManager.format_response`.
"""

from __future__ import annotations

import httpx

from apicache.engine.engine import EXTENSION_KEY
from apicache.engine.serialization import extract_response_data
from apicache.output import get_output


def cache_outcome(response: httpx.Response) -> str:
    """Return a short label such as ``hit``, ``stored`` or ``stale``."""
    details = response.extensions.get(EXTENSION_KEY)
    if not details:
        return "uncached"
    if details.get("stale"):
        return "stale"
    if details.get("from_cache"):
        return "hit"
    return details.get("state", "uncached")


def format_api_response(response: httpx.Response) -> None:
    """Format and print an API response using the global output system.

    Args:
        response: The :class:`httpx.Response` to format and display.
    """
    output = get_output()

    output.info(f"HTTP {response.status_code} {response.reason_phrase or ''}".rstrip())
    output.info(f"Cache: {cache_outcome(response)}")

    data = extract_response_data(response)
    if data is not None:
        output.format_response(data)
