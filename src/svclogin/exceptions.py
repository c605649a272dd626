"""Exception hierarchy for svclogin.

All exceptions inherit from :class:`SvcLoginError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`svclogin.exit_codes`.
Errors tied to a particular remote host also carry that ``hostname`` so
that user-facing messages can always name it.

Within a login attempt these exceptions never reach the user directly:
:class:`~svclogin.login.LoginOrchestrator` turns each one into a
:class:`~svclogin.models.Diagnostic`.  The CLI entry point catches any
``SvcLoginError`` raised outside the orchestrator and exits with its code.

Subclass hierarchy::

    SvcLoginError (exit 1)
    +-- InvalidHostname
    +-- DiscoveryFailed
    +-- UnsupportedHost
    +-- AuthorizationFailed
    |   +-- AuthorizationTimedOut
    +-- Aborted
    +-- CorruptStore
    +-- PersistFailed
    +-- ConfigError
"""

from __future__ import annotations

from typing import Optional

from svclogin.exit_codes import EXIT_GENERIC_FAILURE


class SvcLoginError(Exception):
    """Base exception for all svclogin errors.

    Args:
        message: Human-readable error description, written for the end user.
        hostname: The display or comparison hostname the error relates to,
            if any.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(
        self,
        message: str,
        hostname: Optional[str] = None,
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hostname = hostname
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidHostname(SvcLoginError):
    """Raised when a raw hostname cannot be parsed as a DNS-style host.

    Args:
        raw: The hostname exactly as the user supplied it.
        reason: Why it was rejected (e.g. ``"empty label"``).
    """

    def __init__(self, raw: str, reason: str):
        super().__init__(
            f"The given hostname {raw!r} is not valid: {reason}", hostname=raw
        )
        self.raw = raw
        self.reason = reason


class DiscoveryFailed(SvcLoginError):
    """Raised when a host's service discovery document is unusable.

    The message is a complete sentence addressed to the end user.
    """


class UnsupportedHost(SvcLoginError):
    """Raised when a host advertises no authorization handshake we can run."""


class AuthorizationFailed(SvcLoginError):
    """Raised when the host rejects the handshake or returns a malformed token."""


class AuthorizationTimedOut(AuthorizationFailed):
    """Raised when the handshake does not complete before its deadline."""


class Aborted(SvcLoginError):
    """Raised when the handshake is cancelled (e.g. by Ctrl-C)."""


class CorruptStore(SvcLoginError):
    """Raised when the credentials file exists but cannot be parsed or safely edited."""


class PersistFailed(SvcLoginError):
    """Raised when the credentials file cannot be written."""


class ConfigError(SvcLoginError):
    """Raised for unreadable or invalid settings files and bad setting values."""
