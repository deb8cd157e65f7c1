"""Cache commands -- inspect and maintain the file store.

Provides the ``apicache cache`` sub-command group. ``purge`` is meant for
cron jobs: it sweeps expired entries off the request-serving path and
exits non-zero if the sweep cannot complete.
"""

from __future__ import annotations

import typer

from apicache.commands import engine_from_ctx
from apicache.normalizer import normalize, uri_hash
from apicache.output import format_response, info, print_table, success


cache_app = typer.Typer(no_args_is_help=True)


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show entry counts and sizes for the primary and backup stores."""
    with engine_from_ctx(ctx) as engine:
        rows = []
        for role, store in (("primary", engine.store), ("backup", engine.backup_store)):
            s = store.stats()
            rows.append([
                role,
                s["domain"],
                str(s["entries"]),
                str(s["bucket_members"]),
                str(s["size_bytes"]),
                str(s["ttl_seconds"]),
                s["directory"],
            ])
    print_table(
        ["store", "domain", "entries", "backups", "bytes", "ttl", "directory"],
        rows,
        title="Cache stores",
    )


@cache_app.command("purge")
def cache_purge(ctx: typer.Context) -> None:
    """Delete expired entries and empty directories from both stores.

    Example::

        apicache cache purge
    """
    with engine_from_ctx(ctx) as engine:
        removed = engine.store.purge()
        removed_backups = engine.backup_store.purge()
    success(f"Purged {removed} expired entries and {removed_backups} expired backups.")


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    include_backups: bool = typer.Option(
        False, "--backups", help="Also clear the backup store."
    ),
) -> None:
    """Delete every cached entry regardless of age."""
    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Delete all cached responses?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    with engine_from_ctx(ctx) as engine:
        engine.store.clear()
        if include_backups:
            engine.backup_store.clear()
    success("Cache cleared.")


@cache_app.command("show")
def cache_show(
    ctx: typer.Context,
    url: str = typer.Argument(help="Request URL; normalized before lookup."),
) -> None:
    """Print the stored entry and backup for URL."""
    key = normalize(url)
    with engine_from_ctx(ctx) as engine:
        entry = engine.store.get(key)
        backup = engine.backup_store.hget(key, uri_hash(key))
        path = engine.store.path_for(key)
    info(f"Key: {key}")
    info(f"File: {path}")
    if entry is None and backup is None:
        info("Not cached.")
        raise typer.Exit(code=1)
    format_response({"entry": entry, "backup": backup})


@cache_app.command("delete")
def cache_delete(
    ctx: typer.Context,
    url: str = typer.Argument(help="Request URL; normalized before lookup."),
) -> None:
    """Delete the stored entry and backup for URL."""
    key = normalize(url)
    with engine_from_ctx(ctx) as engine:
        engine.store.delete(key)
        engine.backup_store.hdel(key, uri_hash(key))
    success(f"Deleted {key}")
