"""Typer application and CLI entry point for tearoute.

This module wires the top-level Typer application together and registers
the built-in sub-commands (``call``, ``routes``, ``cache``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs a SIGINT handler, invokes the Typer app,
maps :class:`~tearoute.exceptions.TearouteError` to its exit code, and
writes a crash log under the data directory for anything else.

See Also:
    :mod:`tearoute.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from tearoute import __version__
from tearoute.commands.cache import cache_app
from tearoute.commands.call import call_command
from tearoute.commands.inspect import routes_command
from tearoute.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="tearoute",
    help="Call typed, cached HTTP routes from a route table.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("call")(call_command)
app.command("routes")(routes_command)
app.add_typer(cache_app, name="cache", help="Inspect and clear the disk cache.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"tearoute {__version__}")
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
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show cache decisions, retries and refetches."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~tearoute.output.OutputManager` built from
    the output flags.
    """
    from tearoute.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from tearoute.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``tearoute`` console script.

    Unhandled :class:`~tearoute.exceptions.TearouteError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions produce
    a crash log and a generic failure exit.

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
        from tearoute.exceptions import TearouteError
        from tearoute.output import error

        if isinstance(exc, TearouteError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)


if __name__ == "__main__":
    main()
