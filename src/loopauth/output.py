"""Terminal output for the loopauth CLI.

Two streams, two jobs:

* **stdout** carries the result of a command and nothing else: the captured
  authorization code, a port, a redirect URI, or a JSON document with
  ``--json``. Scripts capture it with ``$(loopauth listen ...)``.
* **stderr** carries everything a person watching the terminal should see
  while the listener waits: progress, the URL to open by hand, warnings and
  errors.

:class:`OutputManager` owns both streams. One instance is installed per
invocation by :func:`~loopauth.app.main_callback`; command code reaches it
through the module-level helpers (:func:`info`, :func:`error`, ...).

The listener itself knows nothing about terminals: it logs through the
standard :mod:`logging` module, and :func:`install_log_handler` bridges the
``loopauth`` logger into the installed manager.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape


class OutputFormat(str, Enum):
    """How stdout data is rendered. ``AUTO`` picks ``RICH`` on a colour TTY, else ``PLAIN``."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Route command results to stdout and diagnostics to stderr.

    Args:
        format: Rendering for stdout data.
        no_color: Emit plain text on stderr, no Rich markup.
        quiet: Drop progress and success notes; warnings, errors and
            ``--verbose`` debug lines still appear.
        verbose: Show debug notes (the listener's HTTP access log).
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _color_disabled()
        self._quiet = quiet
        self._verbose = verbose
        if format == OutputFormat.AUTO:
            interactive = _stdout_is_terminal() and not self._no_color
            format = OutputFormat.RICH if interactive else OutputFormat.PLAIN
        self._format = format
        self._data_console = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
        )
        self._note_console = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    # --- stdout ---

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def format_response(self, data: Any) -> None:
        """Render *data* (usually a dict) on stdout in the resolved format."""
        if self._format == OutputFormat.JSON:
            self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))
        elif self._format == OutputFormat.PLAIN:
            if not isinstance(data, dict):
                self.print_data(str(data))
                return
            for key, value in data.items():
                self.print_data(f"{key}\t{value}")
        elif isinstance(data, (dict, list)):
            self._data_console.print_json(data=data, default=str)
        else:
            self._data_console.print(escape(str(data)))

    # --- stderr ---

    def info(self, message: str) -> None:
        self._note(message)

    def success(self, message: str) -> None:
        self._note(message, style="green")

    def suggest(self, message: str) -> None:
        self._note(f"→ {message}", style="dim")

    def warning(self, message: str) -> None:
        self._note(message, label="Warning:", style="yellow", always=True)

    def error(self, message: str) -> None:
        self._note(message, label="Error:", style="bold red", always=True)

    def debug(self, message: str) -> None:
        if self._verbose:
            self._note(f"[debug] {message}", style="dim", always=True)

    def _note(
        self,
        message: str,
        *,
        label: str = "",
        style: str = "",
        always: bool = False,
    ) -> None:
        if self._quiet and not always:
            return
        if self._no_color:
            print(f"{label} {message}" if label else message, file=sys.stderr, flush=True)
        elif label:
            self._note_console.print(f"[{style}]{label}[/{style}] {escape(message)}")
        elif style:
            self._note_console.print(f"[{style}]{escape(message)}[/{style}]")
        else:
            self._note_console.print(escape(message))


class OutputLogHandler(logging.Handler):
    """Send log records to the installed :class:`OutputManager` by level.

    ``DEBUG`` becomes a debug note, ``INFO`` an info note, ``WARNING`` a
    warning and anything above an error.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            output = get_output()
            if record.levelno >= logging.ERROR:
                show = output.error
            elif record.levelno >= logging.WARNING:
                show = output.warning
            elif record.levelno >= logging.INFO:
                show = output.info
            else:
                show = output.debug
            show(self.format(record))
        except Exception:
            self.handleError(record)


def install_log_handler(logger_name: str = "loopauth", verbose: bool = False) -> logging.Handler:
    """Make *logger_name* report through the terminal instead of the root logger.

    Any earlier :class:`OutputLogHandler` on the logger is replaced, so
    repeated CLI invocations in one process do not print lines twice.
    """
    target = logging.getLogger(logger_name)
    for handler in [h for h in target.handlers if isinstance(h, OutputLogHandler)]:
        target.removeHandler(handler)
    bridge = OutputLogHandler()
    target.addHandler(bridge)
    target.setLevel(logging.DEBUG if verbose else logging.INFO)
    target.propagate = False
    return bridge


def _stdout_is_terminal() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _color_disabled() -> bool:
    """``NO_COLOR`` (any value) or ``TERM=dumb`` turn colour off."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# --- installed instance ---

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating an ``AUTO`` one on first use."""
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


def print_data(text: str) -> None:
    get_output().print_data(text)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def error(message: str) -> None:
    get_output().error(message)
