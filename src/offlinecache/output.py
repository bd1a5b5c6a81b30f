"""Diagnostics and data output for the engine and the CLI.

Data (fetch outcomes, install summaries, store listings) goes to stdout;
everything the engine reports about itself goes to stderr:

* lifecycle transitions and precache results (``info`` / ``success``)
* store read and write failures, failed background refreshes (``warning``)
* unrecoverable load errors (``error``)
* routing decisions and strategy steps (``debug``, shown with ``--verbose``)

The engine never prints directly. It calls the module-level helpers, which
delegate to the global :class:`OutputManager`; an embedding application
installs its own manager with :func:`set_output`.

With ``--json`` the diagnostics become JSON lines on stderr
(``{"level": "warning", "message": "..."}``) so a wrapper can parse both
streams. ``NO_COLOR``, ``TERM=dumb`` and ``--no-color`` turn off Rich markup.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text


class OutputFormat(str, Enum):
    """``AUTO`` is ``RICH`` on a colour TTY and ``PLAIN`` otherwise."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


_LEVEL_STYLES = {
    "info": "{}",
    "success": "[green]{}[/green]",
    "warning": "[yellow]Warning:[/yellow] {}",
    "error": "[bold red]Error:[/bold red] {}",
    "debug": "[dim]\\[debug] {}[/dim]",
}

_LEVEL_PREFIXES = {
    "info": "",
    "success": "",
    "warning": "Warning: ",
    "error": "Error: ",
    "debug": "[debug] ",
}


class OutputManager:
    """Routes data to stdout and diagnostics to stderr.

    Args:
        format: Output format; ``AUTO`` is resolved from TTY detection.
        no_color: Disable colour and Rich markup.
        quiet: Drop ``info`` and ``success`` diagnostics.
        verbose: Show ``debug`` diagnostics.
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
            rich = _is_tty() and not self._no_color
            self._format = OutputFormat.RICH if rich else OutputFormat.PLAIN
        else:
            self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=(self._format == OutputFormat.RICH),
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    # ------------------------------------------------------------------ #
    # Data (stdout)
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Render a summary dict, a list of records or a string."""
        if self._format == OutputFormat.JSON:
            _write(sys.stdout, json.dumps(data, indent=2, ensure_ascii=False, default=str))
        elif isinstance(data, dict):
            self._print_mapping(data)
        elif isinstance(data, list) and all(isinstance(item, dict) for item in data):
            headers = list(data[0]) if data else []
            self.print_table(headers, [[_cell(item.get(h)) for h in headers] for item in data])
        else:
            _write(sys.stdout, str(data))

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Rows as a Rich table, JSON records, or TSV lines."""
        if self._format == OutputFormat.JSON:
            records = [dict(zip(headers, row)) for row in rows]
            _write(sys.stdout, json.dumps(records, indent=2, ensure_ascii=False))
        elif self._format == OutputFormat.PLAIN:
            for line in [headers, *rows]:
                _write(sys.stdout, "\t".join(line))
        else:
            table = Table(title=title, header_style="bold cyan")
            for header in headers:
                table.add_column(header)
            for row in rows:
                table.add_row(*(Text(cell) for cell in row))
            self._stdout.print(table)

    def _print_mapping(self, data: dict[str, Any]) -> None:
        if self._format == OutputFormat.PLAIN:
            for key, value in data.items():
                _write(sys.stdout, f"{key}\t{_cell(value)}")
            return
        table = Table(show_header=False, box=None)
        table.add_column(style="bold")
        table.add_column()
        for key, value in data.items():
            table.add_row(Text(key), Text(_cell(value)))
        self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        if not self._quiet:
            self._emit("info", message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._emit("success", message)

    def warning(self, message: str) -> None:
        """Never suppressed."""
        self._emit("warning", message)

    def error(self, message: str) -> None:
        """Never suppressed."""
        self._emit("error", message)

    def debug(self, message: str) -> None:
        if self._verbose:
            self._emit("debug", message)

    def _emit(self, level: str, message: str) -> None:
        if self._format == OutputFormat.JSON:
            _write(sys.stderr, json.dumps({"level": level, "message": message}))
        elif self._no_color:
            _write(sys.stderr, _LEVEL_PREFIXES[level] + message)
        else:
            self._stderr.print(_LEVEL_STYLES[level].format(escape(message)))


def _write(stream: Any, text: str) -> None:
    print(text, file=stream, flush=True)


def _cell(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    if value is None:
        return ""
    return str(value)


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    if os.environ.get("NO_COLOR") is not None:
        return True
    return os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Global manager and helpers
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """The global :class:`OutputManager`, created lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the global manager. Used by test suites between tests."""
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


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
