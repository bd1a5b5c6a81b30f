"""Typer application factory and CLI entry point for offlinecache.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``init``, ``config``, ``install``, ``fetch``,
``classify``, ``stores``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. Unhandled exceptions are written to a crash log under
the data directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from offlinecache import __version__
from offlinecache.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="offlinecache",
    help="Offline-resilience HTTP cache: precache, inspect and exercise cache versions.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"offlinecache {__version__}")
        raise typer.Exit()


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
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Engine config file (JSON or YAML)."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~offlinecache.output.OutputManager` and
    stores shared options in ``ctx.obj`` for the sub-commands.
    """
    from offlinecache.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


def _register_commands() -> None:
    from offlinecache.commands.config import config_app
    from offlinecache.commands.engine import classify_command, fetch_command, install_command
    from offlinecache.commands.init import init_command
    from offlinecache.commands.stores import stores_app

    app.command("init")(init_command)
    app.command("install")(install_command)
    app.command("fetch")(fetch_command)
    app.command("classify")(classify_command)
    app.add_typer(config_app, name="config", help="Global configuration management.")
    app.add_typer(stores_app, name="stores", help="Inspect and clean up cache stores.")


_register_commands()


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from offlinecache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``offlinecache`` console script.

    :class:`~offlinecache.exceptions.OfflineCacheError` exits with the
    error's ``exit_code``; any other exception produces a crash log and a
    generic failure exit.
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
        from offlinecache.exceptions import OfflineCacheError
        from offlinecache.output import error

        if isinstance(exc, OfflineCacheError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
