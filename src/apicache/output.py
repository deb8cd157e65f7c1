"""Terminal output for the ``apicache`` CLI.

Response bodies, stats and host tables go to stdout so they can be piped.
Status lines, cache outcomes and every other diagnostic go to stderr.

One :class:`OutputManager` is built from the global flags in
:func:`~apicache.app.main_callback` and installed with :func:`set_output`;
commands call the module-level helpers (:func:`info`, :func:`error`, ...),
which delegate to it.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text


class OutputFormat(str, Enum):
    """How data written to stdout is rendered.

    ``AUTO`` picks ``RICH`` for a colour-capable terminal and ``PLAIN``
    otherwise.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Renders command results on stdout and diagnostics on stderr.

    Args:
        format: Rendering for stdout data.
        no_color: Strip colour from both streams. Also implied by
            ``NO_COLOR`` or ``TERM=dumb``.
        quiet: Drop info, success and suggestion lines. Warnings and
            errors are always shown.
        verbose: Show :meth:`debug` lines.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        if format == OutputFormat.AUTO:
            format = OutputFormat.RICH if _is_tty() and not self._no_color else OutputFormat.PLAIN
        self._format = format
        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    # ------------------------------------------------------------------ #
    # stdout
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Write a decoded response body or a config/stats document to stdout.

        Dicts and lists become indented JSON (highlighted in rich mode, one
        ``key<TAB>value`` line per field in plain mode). Anything else is
        written as text.
        """
        if not isinstance(data, (dict, list)):
            self._emit(str(data))
        elif self._format == OutputFormat.JSON:
            self._emit(_dump(data))
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self._emit(line)
        else:
            self._stdout.print(Syntax(_dump(data), "json", theme="monokai", word_wrap=True))

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write rows as a rich table, a JSON array of objects, or TSV."""
        if self._format == OutputFormat.JSON:
            self._emit(_dump([dict(zip(headers, row)) for row in rows]))
        elif self._format == OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self._emit("\t".join(row))
        else:
            table = Table(title=title, header_style="bold cyan")
            for header in headers:
                table.add_column(header)
            for row in rows:
                table.add_row(*row)
            self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # stderr
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        if not self._quiet:
            self._diag(message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._diag(message, style="green")

    def suggest(self, message: str) -> None:
        """Hint at the next command to run, e.g. after ``hosts list`` finds nothing."""
        if not self._quiet:
            self._diag(f"→ {message}", style="dim")

    def warning(self, message: str) -> None:
        self._diag(message, label="Warning:", label_style="yellow")

    def error(self, message: str) -> None:
        self._diag(message, label="Error:", label_style="bold red")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._diag(f"[debug] {message}", style="dim")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _emit(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def _diag(
        self,
        message: str,
        style: Optional[str] = None,
        label: Optional[str] = None,
        label_style: Optional[str] = None,
    ) -> None:
        if self._no_color:
            print(f"{label} {message}" if label else message, file=sys.stderr, flush=True)
            return
        # Messages carry URLs and JSON, so they are never parsed as markup.
        text = Text(message, style=style or "")
        if label:
            text = Text.assemble((label, label_style or ""), " ", text)
        self._stderr.print(text, highlight=False)


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _compact(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, default=str)


def _plain_lines(data: Any) -> list[str]:
    if isinstance(data, dict):
        return [
            f"{key}\t{_compact(value) if isinstance(value, (dict, list)) else value}"
            for key, value in data.items()
        ]
    return [
        "\t".join(str(v) for v in item.values()) if isinstance(item, dict) else str(item)
        for item in data
    ]


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """``NO_COLOR`` (any value) or ``TERM=dumb`` turns colour off."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one if needed."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
