"""Fetch command -- perform a GET request through the response cache.

``apicache fetch URL`` resolves the effective configuration, builds a
:class:`~apicache.client.CachedClient`, and prints the response body to
stdout. The status line and the cache outcome (``hit``, ``stored``,
``stale``, ...) go to stderr.
"""

from __future__ import annotations

from typing import Optional

import typer

from apicache.client import CachedClient
from apicache.client.response import format_api_response
from apicache.commands import config_from_ctx
from apicache.config import resolve_root_dir
from apicache.output import debug, warning


def _parse_params(values: Optional[list[str]]) -> dict[str, str]:
    params: dict[str, str] = {}
    for item in values or []:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise typer.BadParameter(f"Expected NAME=VALUE, got: {item}", param_hint="--param")
        params[name] = value
    return params


def fetch_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Absolute URL to GET."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Query parameter as NAME=VALUE (repeatable)."
    ),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Request header as 'Name: value' (repeatable)."
    ),
) -> None:
    """GET a URL, serving it from the cache when possible.

    Raises:
        NoResponseError: Propagated to :func:`~apicache.app.main`, which
            exits with ``EXIT_NO_RESPONSE``.

    Example::

        apicache fetch https://api.example.com/users -P page=2
    """
    config = config_from_ctx(ctx)
    if not config.caching.enabled:
        warning("Caching is disabled; run 'apicache config set caching.enabled true'.")
    debug(f"Cache root: {resolve_root_dir(config)}")

    headers: dict[str, str] = {}
    for item in header or []:
        name, sep, value = item.partition(":")
        if not sep:
            raise typer.BadParameter(f"Expected 'Name: value', got: {item}", param_hint="--header")
        headers[name.strip()] = value.strip()

    params = _parse_params(param)

    with CachedClient(config) as client:
        response = client.get(url, params=params or None, headers=headers or None)
        format_api_response(response)
