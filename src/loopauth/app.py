"""Typer application and console-script entry point.

``loopauth`` has three working commands (``listen``, ``port``,
``redirect-uri``) and a ``config`` group. The root callback turns the global
flags into an :class:`~loopauth.output.OutputManager` and points the
listener's log records at it, so progress shows up on stderr while the code
goes to stdout.

:func:`main` is what the ``loopauth`` script runs. It converts
:class:`~loopauth.exceptions.LoopauthError` into its exit code, Ctrl-C
into 130, and anything unexpected into a crash log under the data
directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from loopauth import __version__
from loopauth.commands.config import config_app
from loopauth.commands.listen import listen_command, port_command, redirect_uri_command
from loopauth.exceptions import ConfigError, LoopauthError
from loopauth.exit_codes import EXIT_GENERIC_FAILURE
from loopauth.output import OutputFormat, OutputManager, error, install_log_handler, set_output

EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="loopauth",
    help="Capture OAuth2 authorization-code redirects on a loopback port.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)
app.command("listen")(listen_command)
app.command("port")(port_command)
app.command("redirect-uri")(redirect_uri_command)
app.add_typer(config_app, name="config", help="Show or change stored defaults.")


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"loopauth {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Show version and exit."
    ),
    json_output: bool = typer.Option(False, "--json", help="Print results as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Print results as plain text."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colour on stderr."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print results and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show the HTTP access log."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
) -> None:
    """Set up output for the sub-command about to run."""
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = _stored_format()
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    install_log_handler("loopauth", verbose=verbose)
    ctx.obj = {"force": force}


def _stored_format() -> OutputFormat:
    """The ``output.format`` saved with ``loopauth config set``; ``AUTO`` if unusable."""
    from loopauth.config import load_global_config

    try:
        return OutputFormat(load_global_config().output.format)
    except (ConfigError, ValueError):
        return OutputFormat.AUTO


def _interrupted(signum: int, frame: Any) -> None:
    sys.stderr.write("\nCancelled.\n")
    sys.exit(EXIT_INTERRUPTED)


def _save_traceback() -> Optional[Path]:
    """Write the active traceback to ``<data dir>/logs/crash-<timestamp>.log``."""
    from loopauth.config import get_data_dir

    try:
        logs = get_data_dir() / "logs"
        logs.mkdir(parents=True, exist_ok=True)
        path = logs / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
        path.write_text(traceback.format_exc(), encoding="utf-8")
    except OSError:
        return None
    return path


def main() -> None:
    """Run the CLI and translate failures into exit codes."""
    signal.signal(signal.SIGINT, _interrupted)
    try:
        app()
    except LoopauthError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception:
        crash_log = _save_traceback()
        where = f" Details: {crash_log}" if crash_log else ""
        error(f"Unexpected error.{where}")
        sys.exit(EXIT_GENERIC_FAILURE)
