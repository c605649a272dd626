"""Login orchestration: normalise -> discover -> acquire -> persist.

:class:`LoginOrchestrator` composes the hostname normaliser, the service
discoverer, the token acquirer and the credentials store.  Each step either
advances the attempt's :class:`LoginState` or ends it in ``FAILED`` with a
:class:`~svclogin.models.Diagnostic`; errors never escape
:meth:`LoginOrchestrator.login`.

State machine (any step may end in ``FAILED`` instead)::

    START -> NORMALIZED -> DISCOVERED -> ACQUIRED -> PERSISTED -> DONE

The credentials file is checked before discovery so that nobody is asked
to authorize against a host whose token could not be saved anyway, and it
is reloaded right before the merge so that concurrent logins to other
hosts are not lost.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Protocol

from svclogin.auth.credential_store import CredentialStore, upsert
from svclogin.cancel import CancelToken
from svclogin.exceptions import (
    Aborted,
    AuthorizationFailed,
    AuthorizationTimedOut,
    CorruptStore,
    DiscoveryFailed,
    InvalidHostname,
    PersistFailed,
    SvcLoginError,
    UnsupportedHost,
)
from svclogin.hostname import normalize
from svclogin.models import DEFAULT_HOST, Credential, Diagnostic, Hostname, ServiceEndpointSet

logger = logging.getLogger(__name__)


class Discoverer(Protocol):
    def discover(self, hostname: Hostname) -> ServiceEndpointSet: ...


class Acquirer(Protocol):
    def acquire(
        self,
        endpoints: ServiceEndpointSet,
        cancel: Optional[CancelToken] = None,
        timeout: Optional[float] = None,
    ) -> Credential: ...


class LoginState(str, enum.Enum):
    START = "start"
    NORMALIZED = "normalized"
    DISCOVERED = "discovered"
    ACQUIRED = "acquired"
    PERSISTED = "persisted"
    DONE = "done"
    FAILED = "failed"


@dataclass
class LoginOutcome:
    """Result of one login attempt.

    Attributes:
        state: ``DONE`` on success, ``FAILED`` otherwise.
        failed_at: The last state reached before failing.
        hostname: The normalised host, once known.
        path: Credentials file used (or that would have been used).
        replaced: Whether an existing entry for the host was overwritten.
        diagnostics: User-facing reports, in the order they arose.
    """

    state: LoginState = LoginState.START
    failed_at: Optional[LoginState] = None
    hostname: Optional[Hostname] = None
    path: Optional[Path] = None
    replaced: bool = False
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == LoginState.DONE

    def advance(self, state: LoginState) -> None:
        logger.debug("login %s: %s -> %s", self.hostname or "?", self.state.value, state.value)
        self.state = state

    def fail(self, diag: Diagnostic) -> LoginOutcome:
        logger.debug("login %s failed at %s: %s", self.hostname or "?", self.state.value, diag.summary)
        self.diagnostics.append(diag)
        self.failed_at = self.state
        self.state = LoginState.FAILED
        return self


def _summary(exc: SvcLoginError, display: str) -> str:
    """Headline for a failed step; the exception message is the detail."""
    if isinstance(exc, InvalidHostname):
        return "Invalid hostname"
    if isinstance(exc, DiscoveryFailed):
        return f"Service discovery failed for {display}"
    if isinstance(exc, UnsupportedHost):
        return f"Host {display} does not support login"
    if isinstance(exc, AuthorizationTimedOut):
        return f"Authorization timed out for {display}"
    if isinstance(exc, AuthorizationFailed):
        return f"Authorization failed for {display}"
    if isinstance(exc, Aborted):
        return "Login aborted"
    if isinstance(exc, CorruptStore):
        return "Unusable credentials file"
    if isinstance(exc, PersistFailed):
        return f"Failed to save credentials for {display}"
    return f"Login failed for {display}"


class LoginOrchestrator:
    """Run the login flow for one host.

    Args:
        discoverer: Resolves a hostname to its advertised services.
        acquirer: Runs the authorization handshake.
        default_path: Credentials file used when :meth:`login` gets no
            explicit path.
        default_host: Host used when the raw hostname is empty.
        store_factory: Builds the store for a path (tests may substitute).

    Example::

        orchestrator = LoginOrchestrator(
            ServiceDiscoverer(), create_default_acquirer(settings),
            default_path=default_credentials_path(),
        )
        outcome = orchestrator.login("tfe.example.com")
        if not outcome.ok:
            for diag in outcome.diagnostics:
                print(diag.summary, diag.detail)
    """

    def __init__(
        self,
        discoverer: Discoverer,
        acquirer: Acquirer,
        default_path: Path,
        default_host: str = DEFAULT_HOST,
        store_factory: Callable[[Path], CredentialStore] = CredentialStore,
    ) -> None:
        self._discoverer = discoverer
        self._acquirer = acquirer
        self._default_path = default_path
        self._default_host = default_host
        self._store_factory = store_factory

    def login(
        self,
        raw_host: str = "",
        into_file: Optional[Path] = None,
        cancel: Optional[CancelToken] = None,
        timeout: Optional[float] = None,
    ) -> LoginOutcome:
        """Log in to *raw_host* and persist the token.

        Args:
            raw_host: Hostname as typed; empty selects the default host.
            into_file: Credentials file override.
            cancel: Cancellation token for the handshake.
            timeout: Handshake timeout override in seconds.

        Returns:
            A :class:`LoginOutcome`; check :attr:`LoginOutcome.ok`.
        """
        outcome = LoginOutcome(path=into_file or self._default_path)
        store = self._store_factory(outcome.path)

        try:
            hostname = normalize(raw_host, self._default_host)
        except InvalidHostname as exc:
            return outcome.fail(Diagnostic.from_error(_summary(exc, raw_host), exc))
        outcome.hostname = hostname
        outcome.advance(LoginState.NORMALIZED)
        display = hostname.display

        try:
            store.load()
            endpoints = self._discoverer.discover(hostname)
            outcome.advance(LoginState.DISCOVERED)

            credential = self._acquirer.acquire(endpoints, cancel=cancel, timeout=timeout)
            if credential.hostname != hostname.comparison:
                raise AuthorizationFailed(
                    f"Received a credential for {credential.hostname} while logging in to {display}",
                    hostname=display,
                )
            outcome.advance(LoginState.ACQUIRED)

            current = store.load()
            outcome.replaced = current.get(hostname.comparison) is not None
            store.save(upsert(current, hostname.comparison, credential))
            outcome.advance(LoginState.PERSISTED)
        except SvcLoginError as exc:
            return outcome.fail(Diagnostic.from_error(_summary(exc, display), exc))

        outcome.advance(LoginState.DONE)
        return outcome
