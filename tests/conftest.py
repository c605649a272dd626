"""Fixtures shared by the svclogin test suite.

* ``isolated_config`` points the XDG directories at ``tmp_path``.
* ``make_endpoints`` / ``endpoints`` build discovery results offline.
* ``quiet_output`` and ``cli_runner`` cover output and CLI tests.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pytest

from svclogin.hostname import normalize
from svclogin.models import LoginService, ServiceEndpointSet
from svclogin.output import OutputFormat, OutputManager, reset_output, set_output

_SETTING_ENV_VARS = (
    "SVCLOGIN_DEFAULT_HOST",
    "SVCLOGIN_CREDENTIALS_FILE",
    "SVCLOGIN_AUTHORIZATION_TIMEOUT",
    "SVCLOGIN_NO_BROWSER",
)


@pytest.fixture(autouse=True)
def _clean_process_state() -> None:
    """Drop the installed OutputManager and the package log handler.

    Both hold the streams that were current when they were built, and
    CliRunner closes its captured streams when an invocation ends.
    """
    yield
    reset_output()
    logger = logging.getLogger("svclogin")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run with config under ``tmp_path/config`` and data under ``tmp_path/data``.

    SVCLOGIN_* overrides are removed and the working directory becomes
    ``tmp_path``, which is returned.
    """
    monkeypatch.setattr("svclogin.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for name in _SETTING_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _make_endpoints(
    host: str = "tfe.example.com",
    base: str | None = None,
    **login: Any,
) -> ServiceEndpointSet:
    """Build a discovered endpoint set for *host* without any network I/O."""
    hostname = normalize(host)
    base = base or f"https://{hostname.comparison}/.well-known/terraform.json"
    service: dict[str, Any] = {
        "client": "svclogin",
        "grant_types": ["authz_code"],
        "authz": "/oauth/authorization",
        "token": "/oauth/token",
    }
    service.update(login)
    return ServiceEndpointSet(
        hostname=hostname,
        discovery_url=base,
        services={"login.v1": service},
        login=LoginService.from_document(service, base),
    )


@pytest.fixture
def make_endpoints():
    """Factory building endpoint sets: ``make_endpoints(host, **login_fields)``."""
    return _make_endpoints


@pytest.fixture
def endpoints() -> ServiceEndpointSet:
    """Endpoints of ``tfe.example.com`` offering the authz_code grant."""
    return _make_endpoints()


@pytest.fixture
def quiet_output() -> OutputManager:
    """Plain, quiet output installed for the duration of the test."""
    manager = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(manager)
    yield manager
    reset_output()


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()
