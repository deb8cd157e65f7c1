"""Typer application and CLI entry point for apicache.

This module wires together the top-level Typer application and registers the
built-in sub-commands (``fetch``, ``cache``, ``hosts``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
:class:`~apicache.exceptions.ApicacheError` instances exit with their own
code; any other exception is written to a crash log under the data directory.

See Also:
    :mod:`apicache.config`: Configuration resolution.
    :mod:`apicache.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from apicache import __version__
from apicache.commands.cache import cache_app
from apicache.commands.config import config_app
from apicache.commands.fetch import fetch_command
from apicache.commands.hosts import hosts_app
from apicache.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="apicache",
    help="File-backed HTTP response cache with stale-backup fallback.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)

app.command("fetch")(fetch_command)
app.add_typer(cache_app, name="cache", help="Inspect and maintain the response cache.")
app.add_typer(hosts_app, name="hosts", help="Register API hosts for caching.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"apicache {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool, no_color: bool) -> None:
    """Route the ``apicache`` logger to stderr through Rich.

    Cache decisions are logged at INFO and state transitions at DEBUG, so
    they only appear with ``--verbose``.
    """
    logger = logging.getLogger("apicache")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(
        console=Console(stderr=True, no_color=no_color),
        show_path=False,
        markup=False,
    )
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


def _configured_format() -> OutputFormat:
    """Return the ``output.format`` default from the global config, or ``AUTO``.

    Load errors fall back to ``AUTO``; the sub-command reports them itself.
    """
    from apicache.config import load_global_config
    from apicache.exceptions import ConfigError
    from apicache.output import OutputFormat

    try:
        return OutputFormat(load_global_config().output.format)
    except (ConfigError, ValueError):
        return OutputFormat.AUTO


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show cache decisions and debug output."
    ),
    cache_dir: Optional[str] = typer.Option(
        None, "--cache-dir", help="Root of the cache tree (overrides config and env)."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip confirmations."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~apicache.output.OutputManager` and the
    ``apicache`` logger from CLI flags, and stores shared options in the
    Typer context so that sub-commands can read them via ``ctx.obj``.
    """
    from apicache.output import OutputFormat, OutputManager, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = _configured_format()

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)
    _configure_logging(verbose, no_color)

    ctx.ensure_object(dict)
    ctx.obj["cache_dir"] = cache_dir
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from apicache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``apicache`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from apicache.exceptions import ApicacheError
        from apicache.output import error

        if isinstance(exc, ApicacheError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
