"""Tests for the login orchestrator with fake discoverer and acquirer."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

import pytest

from svclogin.auth.credential_store import CredentialStore
from svclogin.cancel import CancelToken
from svclogin.exceptions import (
    Aborted,
    AuthorizationTimedOut,
    DiscoveryFailed,
    PersistFailed,
    UnsupportedHost,
)
from svclogin.login import LoginOrchestrator, LoginState
from svclogin.models import DEFAULT_HOST, Credential, Hostname, ServiceEndpointSet


class FakeDiscoverer:
    def __init__(self, make_endpoints, error: Optional[Exception] = None) -> None:
        self._make_endpoints = make_endpoints
        self._error = error
        self.calls: list[Hostname] = []

    def discover(self, hostname: Hostname) -> ServiceEndpointSet:
        self.calls.append(hostname)
        if self._error is not None:
            raise self._error
        return self._make_endpoints(hostname.comparison)


class FakeAcquirer:
    def __init__(
        self,
        token: str = "new-token",
        error: Optional[Exception] = None,
        issue_for: str | None = None,
        during: Optional[Callable[[], None]] = None,
    ) -> None:
        self._token = token
        self._error = error
        self._issue_for = issue_for
        self._during = during
        self.calls: list[ServiceEndpointSet] = []
        self.cancel: Optional[CancelToken] = None

    def acquire(
        self,
        endpoints: ServiceEndpointSet,
        cancel: Optional[CancelToken] = None,
        timeout: Optional[float] = None,
    ) -> Credential:
        self.calls.append(endpoints)
        self.cancel = cancel
        if self._during is not None:
            self._during()
        if self._error is not None:
            raise self._error
        return Credential(hostname=self._issue_for or endpoints.hostname.comparison, token=self._token)


@pytest.fixture()
def creds_path(tmp_path: Path) -> Path:
    return tmp_path / "config" / "credentials.toml"


def _orchestrator(discoverer, acquirer, creds_path: Path) -> LoginOrchestrator:
    return LoginOrchestrator(discoverer, acquirer, default_path=creds_path)


class TestLoginScenarios:
    def test_default_host_creates_store(self, make_endpoints, creds_path: Path) -> None:
        discoverer = FakeDiscoverer(make_endpoints)
        outcome = _orchestrator(discoverer, FakeAcquirer(), creds_path).login("")

        assert outcome.ok
        assert outcome.state == LoginState.DONE
        assert outcome.hostname.comparison == DEFAULT_HOST
        assert outcome.path == creds_path
        assert outcome.replaced is False
        assert [h.comparison for h in discoverer.calls] == [DEFAULT_HOST]
        entries = CredentialStore(creds_path).load().entries()
        assert {k: v.token for k, v in entries.items()} == {DEFAULT_HOST: "new-token"}

    def test_invalid_hostname_touches_nothing(self, make_endpoints, creds_path: Path) -> None:
        discoverer = FakeDiscoverer(make_endpoints)
        acquirer = FakeAcquirer()
        outcome = _orchestrator(discoverer, acquirer, creds_path).login("example..com")

        assert not outcome.ok
        assert outcome.failed_at == LoginState.START
        assert outcome.hostname is None
        assert outcome.diagnostics[0].summary == "Invalid hostname"
        assert "'example..com'" in outcome.diagnostics[0].detail
        assert discoverer.calls == []
        assert acquirer.calls == []
        assert not creds_path.parent.exists()

    def test_discovery_failure_leaves_store_untouched(self, make_endpoints, creds_path: Path) -> None:
        creds_path.parent.mkdir(parents=True)
        creds_path.write_text('[credentials."a.example.com"]\ntoken = "a"\n', encoding="utf-8")
        before = creds_path.read_bytes()
        error = DiscoveryFailed("Host tfe.example.com does not provide any services", hostname="tfe.example.com")
        acquirer = FakeAcquirer()

        outcome = _orchestrator(FakeDiscoverer(make_endpoints, error), acquirer, creds_path).login(
            "tfe.example.com"
        )

        assert not outcome.ok
        assert outcome.failed_at == LoginState.NORMALIZED
        diag = outcome.diagnostics[0]
        assert diag.summary == "Service discovery failed for tfe.example.com"
        assert diag.detail == "Host tfe.example.com does not provide any services."
        assert diag.cause is error
        assert acquirer.calls == []
        assert creds_path.read_bytes() == before

    def test_merge_keeps_other_hosts(self, make_endpoints, creds_path: Path) -> None:
        original = (
            "# team hosts\n"
            '[credentials."a.example.com"]\n'
            'token = "token-a"  # from the wiki\n'
            "\n"
            '[credentials."b.example.com"]\n'
            'token = "old-b"\n'
        )
        creds_path.parent.mkdir(parents=True)
        creds_path.write_text(original, encoding="utf-8")

        outcome = _orchestrator(FakeDiscoverer(make_endpoints), FakeAcquirer("new-b"), creds_path).login(
            "B.example.com"
        )

        assert outcome.ok
        assert outcome.replaced is True
        text = creds_path.read_text(encoding="utf-8")
        assert text == original.replace('"old-b"', '"new-b"')

    def test_entry_saved_by_another_login_meanwhile_survives(
        self, make_endpoints, creds_path: Path
    ) -> None:
        creds_path.parent.mkdir(parents=True)
        creds_path.write_text('[credentials."a.example.com"]\ntoken = "token-a"\n', encoding="utf-8")

        def other_login() -> None:
            CredentialStore(creds_path).merge(Credential(hostname="b.example.com", token="token-b"))

        acquirer = FakeAcquirer("token-c", during=other_login)
        outcome = _orchestrator(FakeDiscoverer(make_endpoints), acquirer, creds_path).login(
            "c.example.com"
        )

        assert outcome.ok
        assert outcome.replaced is False
        entries = CredentialStore(creds_path).load().entries()
        assert {k: v.token for k, v in entries.items()} == {
            "a.example.com": "token-a",
            "b.example.com": "token-b",
            "c.example.com": "token-c",
        }

    def test_login_twice_is_idempotent(self, make_endpoints, creds_path: Path) -> None:
        orchestrator = _orchestrator(FakeDiscoverer(make_endpoints), FakeAcquirer(), creds_path)
        orchestrator.login("tfe.example.com")
        first = creds_path.read_bytes()
        outcome = orchestrator.login("TFE.example.com:443")
        assert outcome.ok
        assert outcome.replaced is True
        assert creds_path.read_bytes() == first


class TestLoginFailures:
    def test_into_file_override(self, make_endpoints, creds_path: Path, tmp_path: Path) -> None:
        other = tmp_path / "elsewhere.toml"
        outcome = _orchestrator(FakeDiscoverer(make_endpoints), FakeAcquirer(), creds_path).login(
            "tfe.example.com", into_file=other
        )
        assert outcome.ok
        assert outcome.path == other
        assert other.is_file()
        assert not creds_path.exists()

    def test_corrupt_store_is_reported_before_discovery(self, make_endpoints, creds_path: Path) -> None:
        creds_path.parent.mkdir(parents=True)
        creds_path.write_text("this is = = not toml", encoding="utf-8")
        discoverer = FakeDiscoverer(make_endpoints)

        outcome = _orchestrator(discoverer, FakeAcquirer(), creds_path).login("tfe.example.com")

        assert not outcome.ok
        assert outcome.diagnostics[0].summary == "Unusable credentials file"
        assert discoverer.calls == []
        assert creds_path.read_text(encoding="utf-8") == "this is = = not toml"

    @pytest.mark.parametrize(
        ("error", "summary"),
        [
            (UnsupportedHost("no grants"), "Host tfe.example.com does not support login"),
            (AuthorizationTimedOut("too slow"), "Authorization timed out for tfe.example.com"),
            (Aborted("interrupted"), "Login aborted"),
        ],
    )
    def test_acquisition_errors(self, make_endpoints, creds_path: Path, error, summary: str) -> None:
        outcome = _orchestrator(
            FakeDiscoverer(make_endpoints), FakeAcquirer(error=error), creds_path
        ).login("tfe.example.com")

        assert not outcome.ok
        assert outcome.failed_at == LoginState.DISCOVERED
        assert outcome.diagnostics[0].summary == summary
        assert not creds_path.exists()

    def test_credential_for_wrong_host(self, make_endpoints, creds_path: Path) -> None:
        outcome = _orchestrator(
            FakeDiscoverer(make_endpoints), FakeAcquirer(issue_for="evil.example"), creds_path
        ).login("tfe.example.com")

        assert not outcome.ok
        assert outcome.diagnostics[0].summary == "Authorization failed for tfe.example.com"
        assert not creds_path.exists()

    def test_persist_failure(self, make_endpoints, creds_path: Path) -> None:
        class FailingStore(CredentialStore):
            def save(self, doc) -> None:
                raise PersistFailed("Cannot write credentials file: read-only file system")

        orchestrator = LoginOrchestrator(
            FakeDiscoverer(make_endpoints),
            FakeAcquirer(),
            default_path=creds_path,
            store_factory=FailingStore,
        )
        outcome = orchestrator.login("tfe.example.com")

        assert not outcome.ok
        assert outcome.failed_at == LoginState.ACQUIRED
        assert outcome.diagnostics[0].summary == "Failed to save credentials for tfe.example.com"

    def test_cancel_token_is_passed_through(self, make_endpoints, creds_path: Path) -> None:
        token = CancelToken()
        acquirer = FakeAcquirer()
        _orchestrator(FakeDiscoverer(make_endpoints), acquirer, creds_path).login(
            "tfe.example.com", cancel=token
        )
        assert acquirer.cancel is token

    def test_custom_default_host(self, make_endpoints, creds_path: Path) -> None:
        orchestrator = LoginOrchestrator(
            FakeDiscoverer(make_endpoints),
            FakeAcquirer(),
            default_path=creds_path,
            default_host="tfe.internal.example",
        )
        assert orchestrator.login().hostname.comparison == "tfe.internal.example"
