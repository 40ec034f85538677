"""Tests for loopauth.config -- XDG paths, atomic writes, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from loopauth.config import (
    atomic_write,
    get_config_dir,
    get_data_dir,
    load_global_config,
    load_project_config,
    resolve_config,
    save_global_config,
)
from loopauth.exceptions import ConfigError
from loopauth.models import GlobalConfig, OutputConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("loopauth.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "loopauth"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_config"
        monkeypatch.setattr("loopauth.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(custom))

        assert get_config_dir() == custom / "loopauth"

    def test_data_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("loopauth.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_data_dir() == tmp_path / ".local" / "share" / "loopauth"

    def test_fallback_dirs(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("loopauth.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".loopauth"
        assert get_data_dir() == tmp_path / ".loopauth" / "logs"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        atomic_write(target, "hello world")
        assert target.read_text(encoding="utf-8") == "hello world"

    def test_writes_bytes_verbatim(self, tmp_path: Path) -> None:
        target = tmp_path / "blob.bin"
        atomic_write(target, b"\x00\xffPK")
        assert target.read_bytes() == b"\x00\xffPK"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        target.write_text("old content", encoding="utf-8")
        atomic_write(target, "new content")
        assert target.read_text(encoding="utf-8") == "new content"

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "test.txt"
        atomic_write(target, "deep write")
        assert target.read_text(encoding="utf-8") == "deep write"

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        with patch("loopauth.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Global and project config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_load_returns_defaults_when_missing(self, isolated_config: Path) -> None:
        assert load_global_config() == GlobalConfig()

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        config = GlobalConfig(port=8765, timeout=30, open_browser=False, output=OutputConfig(format="json"))
        save_global_config(config)
        assert load_global_config() == config

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        (get_config_dir() / "config.json").write_text("{broken", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_load_invalid_value_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(get_config_dir() / "config.json", {"port": 70000})
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()


class TestProjectConfig:
    def test_load_returns_none_when_missing(self, isolated_config: Path) -> None:
        assert load_project_config() is None

    def test_load_valid_project_config(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "loopauth.json", {"port": 9000})
        assert load_project_config() == {"port": 9000}

    def test_non_object_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "loopauth.json", [9000])
        with pytest.raises(ConfigError, match="must be a JSON object"):
            load_project_config()


# ---------------------------------------------------------------------------
# Precedence resolution
# ---------------------------------------------------------------------------


class TestResolveConfig:
    """Test the full precedence chain: CLI > env > project > global > defaults."""

    def test_defaults(self, isolated_config: Path) -> None:
        config = resolve_config()
        assert config.port is None
        assert config.host == "127.0.0.1"
        assert config.timeout is None
        assert config.open_browser is True

    def test_global_applies(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(port=8000, timeout=60))
        config = resolve_config()
        assert config.port == 8000
        assert config.timeout == 60

    def test_project_overrides_global(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(port=8000, timeout=60))
        _write_json(isolated_config / "loopauth.json", {"port": 9000})

        config = resolve_config()
        assert config.port == 9000
        assert config.timeout == 60

    def test_env_overrides_project(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(isolated_config / "loopauth.json", {"port": 9000})
        monkeypatch.setenv("LOOPAUTH_PORT", "9100")
        monkeypatch.setenv("LOOPAUTH_TIMEOUT", "2.5")
        monkeypatch.setenv("LOOPAUTH_HOST", "127.0.0.2")

        config = resolve_config()
        assert config.port == 9100
        assert config.timeout == 2.5
        assert config.host == "127.0.0.2"

    def test_cli_overrides_env(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOOPAUTH_PORT", "9100")
        config = resolve_config(cli_port=9200, cli_open_browser=False)
        assert config.port == 9200
        assert config.open_browser is False

    def test_stored_output_format_passes_through(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(output=OutputConfig(format="rich")))
        assert resolve_config(cli_port=9200).output.format == "rich"

    def test_format_is_not_a_listener_override(self) -> None:
        with pytest.raises(TypeError):
            resolve_config(cli_format="json")  # type: ignore[call-arg]

    @pytest.mark.parametrize(
        ("var", "value", "match"),
        [
            ("LOOPAUTH_PORT", "eighty", "LOOPAUTH_PORT must be an integer"),
            ("LOOPAUTH_TIMEOUT", "soon", "LOOPAUTH_TIMEOUT must be a number"),
        ],
    )
    def test_unparseable_env_raises_config_error(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch, var: str, value: str, match: str
    ) -> None:
        monkeypatch.setenv(var, value)
        with pytest.raises(ConfigError, match=match):
            resolve_config()

    def test_out_of_range_value_raises_config_error(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("LOOPAUTH_PORT", "0")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            resolve_config()
