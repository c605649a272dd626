"""Where svclogin keeps its files and how its settings are resolved.

Four concerns live here:

* **Directories** -- ``$XDG_CONFIG_HOME`` / ``$XDG_DATA_HOME`` on Linux/BSD,
  ``~/.svclogin/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Settings file** -- an optional ``config.json`` deserialised into
  :class:`~svclogin.models.Settings`.
* **Precedence resolution** -- :func:`resolve_settings` merges CLI flags,
  environment variables, and the settings file into the effective settings.
* **Credentials location** -- :func:`default_credentials_path` names the
  file the login command writes to when no override is given.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from svclogin.exceptions import ConfigError
from svclogin.models import Settings

_APP_NAME = "svclogin"
_CONFIG_FILENAME = "config.json"
_CREDENTIALS_FILENAME = "credentials.toml"

_ENV_DEFAULT_HOST = "SVCLOGIN_DEFAULT_HOST"
_ENV_CREDENTIALS_FILE = "SVCLOGIN_CREDENTIALS_FILE"
_ENV_AUTHORIZATION_TIMEOUT = "SVCLOGIN_AUTHORIZATION_TIMEOUT"
_ENV_NO_BROWSER = "SVCLOGIN_NO_BROWSER"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform uses the XDG Base Directory layout (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Single dot-directory in $HOME used on macOS and Windows."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Value of *env_var* if set and non-empty, else $HOME joined with *default_segments*."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for part in default_segments:
        base = base / part
    return base


def get_config_dir() -> Path:
    """Return the configuration directory.

    On Linux/BSD: ``$XDG_CONFIG_HOME/svclogin/`` (default ``~/.config/svclogin/``).
    On macOS/Windows: ``~/.svclogin/``.

    The directory is not created here; the credentials store creates it on
    first write so that merely reading settings never touches the disk.
    """
    if _is_xdg_platform():
        return _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    return _fallback_base_dir()


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/svclogin/`` (default ``~/.local/share/svclogin/``).
    On macOS/Windows: ``~/.svclogin/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def default_credentials_path() -> Path:
    """Return the credentials file used when no override is given."""
    return get_config_dir() / _CREDENTIALS_FILENAME


# --- Settings file ---


def _settings_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_settings() -> Settings:
    """Load settings from the XDG config directory.

    Returns:
        The deserialised :class:`~svclogin.models.Settings`. If the file
        does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _settings_path()
    if not path.is_file():
        return Settings()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return Settings.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid settings file at {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read settings file {path}: {exc}") from exc


# --- Precedence resolution ---


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def resolve_settings(
    cli_credentials_file: Optional[str] = None,
    cli_authorization_timeout: Optional[float] = None,
    cli_no_browser: bool = False,
) -> Settings:
    """Resolve settings with the full precedence chain.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``SVCLOGIN_DEFAULT_HOST``,
           ``SVCLOGIN_CREDENTIALS_FILE``, ``SVCLOGIN_AUTHORIZATION_TIMEOUT``,
           ``SVCLOGIN_NO_BROWSER``)
        3. User settings (``~/.config/svclogin/config.json``)
        4. Defaults

    Raises:
        ConfigError: If the settings file is invalid or an override has an
            unusable value.
    """
    settings = load_settings()
    overrides: dict[str, Any] = {}

    env_host = os.environ.get(_ENV_DEFAULT_HOST)
    if env_host:
        overrides["default_host"] = env_host

    env_file = os.environ.get(_ENV_CREDENTIALS_FILE)
    if env_file:
        overrides["credentials_file"] = env_file
    if cli_credentials_file is not None:
        overrides["credentials_file"] = cli_credentials_file

    env_timeout = os.environ.get(_ENV_AUTHORIZATION_TIMEOUT)
    if env_timeout:
        overrides["authorization_timeout"] = env_timeout
    if cli_authorization_timeout is not None:
        overrides["authorization_timeout"] = cli_authorization_timeout

    if cli_no_browser or _env_flag(_ENV_NO_BROWSER):
        overrides["open_browser"] = False

    if not overrides:
        return settings
    try:
        # Re-validate so that overrides go through the same field checks.
        return Settings.model_validate({**settings.model_dump(), **overrides})
    except ValidationError as exc:
        raise ConfigError(f"Invalid setting override: {exc}") from exc


def credentials_path(settings: Settings) -> Path:
    """Return the credentials file for this invocation.

    ``settings.credentials_file`` already reflects ``--into-file`` /
    ``--from-file`` / ``--file`` and ``SVCLOGIN_CREDENTIALS_FILE``.
    """
    if settings.credentials_file:
        return Path(settings.credentials_file).expanduser()
    return default_credentials_path()
