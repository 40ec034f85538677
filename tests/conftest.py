"""Shared test fixtures for loopauth.

Provides reusable fixtures for isolated config environments, output state,
recording loggers, and a fake browser that plays the identity provider's
redirect against a live listener. These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest

from loopauth.output import OutputLogHandler, reset_output


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and the ``loopauth`` logger after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time, and the CLI callback attaches an OutputLogHandler to
    the ``loopauth`` logger. Both would leak into later tests.
    """
    yield
    reset_output()
    package_logger = logging.getLogger("loopauth")
    for handler in list(package_logger.handlers):
        if isinstance(handler, OutputLogHandler):
            package_logger.removeHandler(handler)
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config. Clears all LOOPAUTH_*
    environment variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("loopauth.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["LOOPAUTH_PORT", "LOOPAUTH_HOST", "LOOPAUTH_TIMEOUT"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Listener collaborators
# ---------------------------------------------------------------------------


class FakeBrowser:
    """Launcher double standing in for the user's browser.

    Records every URL it is asked to open. With ``follow=True`` it fetches
    the URL straight away, which for tests that pass a redirect URL as the
    service URL plays the provider redirecting back to the listener.

    Args:
        follow: Issue the GET request when a URL is opened.
        repeat: Number of requests sent per opened URL.
    """

    def __init__(self, follow: bool = True, repeat: int = 1) -> None:
        self.follow = follow
        self.repeat = repeat
        self.opened: list[str] = []
        self.responses: list[httpx.Response] = []

    def __call__(self, url: str) -> None:
        self.opened.append(url)
        if not self.follow:
            return
        with httpx.Client(trust_env=False, timeout=5.0) as client:
            for _ in range(self.repeat):
                self.responses.append(client.get(url))


@pytest.fixture
def browser() -> FakeBrowser:
    """A :class:`FakeBrowser` that follows the URL it is given."""
    return FakeBrowser()


@pytest.fixture
def make_browser() -> type[FakeBrowser]:
    """The :class:`FakeBrowser` class, for tests needing non-default options."""
    return FakeBrowser


@pytest.fixture
def log() -> MagicMock:
    """A logger double recording every message the listener emits."""
    return MagicMock(spec=logging.Logger)
