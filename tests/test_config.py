"""Tests for svclogin.config -- XDG paths, settings file, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from svclogin.config import (
    credentials_path,
    default_credentials_path,
    get_config_dir,
    get_data_dir,
    load_settings,
    resolve_settings,
)
from svclogin.exceptions import ConfigError
from svclogin.models import DEFAULT_HOST, Settings


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPathsLinux:
    """XDG paths on Linux (the default XDG platform)."""

    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("svclogin.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert get_config_dir() == tmp_path / ".config" / "svclogin"

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("svclogin.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        assert get_config_dir() == tmp_path / "xdg" / "svclogin"

    def test_config_dir_is_not_created(self, isolated_config: Path) -> None:
        assert not get_config_dir().exists()

    def test_data_dir_is_created(self, isolated_config: Path) -> None:
        path = get_data_dir()
        assert path == isolated_config / "data" / "svclogin"
        assert path.is_dir()


class TestXDGPathsFallback:
    """Non-XDG platforms keep everything under ~/.svclogin."""

    def test_config_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("svclogin.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert get_config_dir() == tmp_path / ".svclogin"

    def test_data_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("svclogin.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert get_data_dir() == tmp_path / ".svclogin" / "logs"


# ---------------------------------------------------------------------------
# Settings file
# ---------------------------------------------------------------------------


class TestLoadSettings:
    def test_defaults_when_missing(self, isolated_config: Path) -> None:
        settings = load_settings()
        assert settings == Settings()
        assert settings.default_host == DEFAULT_HOST
        assert settings.grant_preference == ["authz_code", "device_code", "password"]

    def test_values_from_file(self, isolated_config: Path) -> None:
        _write_json(
            get_config_dir() / "config.json",
            {"default_host": "tfe.example.com", "grant_preference": ["device_code"]},
        )
        settings = load_settings()
        assert settings.default_host == "tfe.example.com"
        assert settings.grant_preference == ["device_code"]

    def test_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        path = get_config_dir() / "config.json"
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid settings file"):
            load_settings()

    def test_invalid_value_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(get_config_dir() / "config.json", {"authorization_timeout": -5})
        with pytest.raises(ConfigError):
            load_settings()


# ---------------------------------------------------------------------------
# Precedence resolution
# ---------------------------------------------------------------------------


class TestResolveSettings:
    def test_defaults(self, isolated_config: Path) -> None:
        assert resolve_settings() == Settings()

    def test_env_overrides_file(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(get_config_dir() / "config.json", {"default_host": "file.example"})
        monkeypatch.setenv("SVCLOGIN_DEFAULT_HOST", "env.example")
        assert resolve_settings().default_host == "env.example"

    def test_cli_overrides_env(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SVCLOGIN_CREDENTIALS_FILE", "/env/creds.toml")
        monkeypatch.setenv("SVCLOGIN_AUTHORIZATION_TIMEOUT", "60")
        settings = resolve_settings(
            cli_credentials_file="/cli/creds.toml", cli_authorization_timeout=30
        )
        assert settings.credentials_file == "/cli/creds.toml"
        assert settings.authorization_timeout == 30

    def test_env_timeout(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SVCLOGIN_AUTHORIZATION_TIMEOUT", "45")
        assert resolve_settings().authorization_timeout == 45.0

    def test_bad_env_timeout(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SVCLOGIN_AUTHORIZATION_TIMEOUT", "soon")
        with pytest.raises(ConfigError, match="Invalid setting override"):
            resolve_settings()

    @pytest.mark.parametrize("value", ["1", "true", "YES", "on"])
    def test_no_browser_env(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch, value: str) -> None:
        monkeypatch.setenv("SVCLOGIN_NO_BROWSER", value)
        assert resolve_settings().open_browser is False

    def test_no_browser_flag(self, isolated_config: Path) -> None:
        assert resolve_settings(cli_no_browser=True).open_browser is False


class TestCredentialsPath:
    def test_default(self, isolated_config: Path) -> None:
        path = credentials_path(Settings())
        assert path == default_credentials_path()
        assert path == isolated_config / "config" / "svclogin" / "credentials.toml"

    def test_from_settings(self, isolated_config: Path) -> None:
        assert credentials_path(Settings(credentials_file="creds.toml")) == Path("creds.toml")

    def test_user_expansion(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        assert credentials_path(Settings(credentials_file="~/creds.toml")) == tmp_path / "creds.toml"
