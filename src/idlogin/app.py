"""Typer application and CLI entry point for idlogin.

This module wires together the top-level Typer application and registers
the built-in commands (``login``, ``logout``, ``whoami``, ``status``,
``refresh``) and sub-command groups (``cache``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
Unhandled exceptions are written to a crash log under the data directory.

See Also:
    :mod:`idlogin.config`: Global configuration and settings resolution.
    :mod:`idlogin.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from idlogin import __version__
from idlogin.commands.auth import (
    login_command,
    logout_command,
    refresh_command,
    status_command,
    whoami_command,
)
from idlogin.commands.cache import cache_app
from idlogin.commands.config import config_app
from idlogin.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="idlogin",
    help="Log in to an identity provider from the command line (OAuth2 + PKCE).",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("login")(login_command)
app.command("logout")(logout_command)
app.command("whoami")(whoami_command)
app.command("status")(status_command)
app.command("refresh")(refresh_command)
app.add_typer(cache_app, name="cache", help="Token cache management.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"idlogin {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~idlogin.output.OutputManager` from
    CLI flags.
    """
    from idlogin.output import OutputManager, set_output

    set_output(OutputManager(no_color=no_color, quiet=quiet, verbose=verbose))


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        # SystemExit unwinds through the listener's cleanup, releasing the port.
        sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from idlogin.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``idlogin`` console script.

    :class:`~idlogin.exceptions.IdloginError` instances that escape a
    command cause a clean exit with the error's ``exit_code``. All other
    exceptions produce a crash log and a generic failure exit.

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
        sys.exit(EXIT_CANCELLED)
    except Exception as exc:
        from idlogin.exceptions import IdloginError
        from idlogin.output import error

        if isinstance(exc, IdloginError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
