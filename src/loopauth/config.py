"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for loopauth:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.loopauth/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~loopauth.models.GlobalConfig`
  JSON file storing listener defaults (port, host, timeout, browser launch)
  and the output format.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and global config into the
  final effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from loopauth.exceptions import ConfigError
from loopauth.models import GlobalConfig

_APP_NAME = "loopauth"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "loopauth.json"

ENV_PORT = "LOOPAUTH_PORT"
ENV_HOST = "LOOPAUTH_HOST"
ENV_TIMEOUT = "LOOPAUTH_TIMEOUT"


# --- Directories ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(xdg_var: str, xdg_default: str, fallback: str = "") -> Path:
    """``$<xdg_var>/loopauth`` on Linux and BSD, ``~/.loopauth/<fallback>`` elsewhere.

    The directory is created on first use.
    """
    if _is_xdg_platform():
        path = Path(os.environ.get(xdg_var) or Path.home() / xdg_default) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / fallback
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Where ``config.json`` lives (``~/.config/loopauth`` by default on Linux)."""
    return _app_dir("XDG_CONFIG_HOME", ".config")


def get_data_dir() -> Path:
    """Where crash logs go (``~/.local/share/loopauth`` by default on Linux)."""
    return _app_dir("XDG_DATA_HOME", ".local/share", "logs")


# --- Atomic file writes ---


def atomic_write(path: Path, data: str | bytes) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On success the temp file is renamed over *path*; on any failure the temp
    file is cleaned up. ``str`` data is written as UTF-8 text, ``bytes``
    verbatim.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        if isinstance(data, bytes):
            fd = tempfile.NamedTemporaryFile(
                mode="wb",
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
            )
        else:
            fd = tempfile.NamedTemporaryFile(
                mode="w",
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~loopauth.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk.

    Args:
        config: The configuration to save.
    """
    data = config.model_dump(mode="json")
    atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./loopauth.json``.

    Project-local config sits between global config and environment variables
    in the precedence chain. It typically pins a fixed ``port`` so that the
    redirect URI registered with the provider stays stable for a repository.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but does not contain a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Project config at {path} must be a JSON object")
    return data


# --- Precedence resolution ---


def _env_overrides() -> dict[str, Any]:
    """Collect listener settings from ``LOOPAUTH_*`` environment variables."""
    overrides: dict[str, Any] = {}
    port = os.environ.get(ENV_PORT)
    if port:
        try:
            overrides["port"] = int(port)
        except ValueError:
            raise ConfigError(f"{ENV_PORT} must be an integer, got: {port}") from None
    timeout = os.environ.get(ENV_TIMEOUT)
    if timeout:
        try:
            overrides["timeout"] = float(timeout)
        except ValueError:
            raise ConfigError(f"{ENV_TIMEOUT} must be a number, got: {timeout}") from None
    host = os.environ.get(ENV_HOST)
    if host:
        overrides["host"] = host
    return overrides


def resolve_config(
    cli_port: Optional[int] = None,
    cli_host: Optional[str] = None,
    cli_timeout: Optional[float] = None,
    cli_open_browser: Optional[bool] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_port``, ``cli_host``, ``cli_timeout``, ...)
        2. Environment variables (``LOOPAUTH_PORT``, ``LOOPAUTH_HOST``,
           ``LOOPAUTH_TIMEOUT``)
        3. Project config (``./loopauth.json``)
        4. User config (``~/.config/loopauth/config.json``)
        5. Defaults

    Returns:
        The effective :class:`~loopauth.models.GlobalConfig`.

    Raises:
        ConfigError: If any layer holds invalid JSON or an invalid value.
    """
    # 5 + 4. Load base global config (fills in defaults automatically)
    data = load_global_config().model_dump()

    # 3. Layer in project-local config
    project = load_project_config()
    if project is not None:
        data.update(project)

    # 2. Environment variables
    data.update(_env_overrides())

    # 1. CLI flags (highest precedence)
    cli: dict[str, Any] = {
        "port": cli_port,
        "host": cli_host,
        "timeout": cli_timeout,
        "open_browser": cli_open_browser,
    }
    data.update({key: value for key, value in cli.items() if value is not None})

    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
