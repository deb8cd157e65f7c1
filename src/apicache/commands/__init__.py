"""Built-in CLI sub-commands for apicache.

* :mod:`~apicache.commands.fetch` -- perform a cached GET request.
* :mod:`~apicache.commands.cache` -- inspect, purge, and clear the store.
* :mod:`~apicache.commands.hosts` -- register hosts for caching.
* :mod:`~apicache.commands.config` -- view and modify global settings.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``cache`` and ``hosts``) or a plain callback
function registered directly on the root app (for ``fetch``).
"""

from __future__ import annotations

import typer

from apicache.config import resolve_config
from apicache.engine import CacheEngine
from apicache.models import GlobalConfig


def config_from_ctx(ctx: typer.Context) -> GlobalConfig:
    """Resolve the effective config, honouring the root ``--cache-dir`` flag."""
    cache_dir = ctx.obj.get("cache_dir") if ctx.obj else None
    return resolve_config(cli_cache_dir=cache_dir)


def engine_from_ctx(ctx: typer.Context) -> CacheEngine:
    """Build a :class:`~apicache.engine.CacheEngine` from the effective config."""
    return CacheEngine.from_config(config_from_ctx(ctx))
