"""Canonical Pydantic models shared across all svclogin modules.

The models fall into three groups:

**Settings** -- :class:`Settings`, loaded from ``config.json`` in the user's
config directory and layered with environment variables and CLI flags by
:func:`~svclogin.config.resolve_settings`.

**Host identity and discovery** -- :class:`Hostname`, :class:`LoginService`
and :class:`ServiceEndpointSet`.  A fresh endpoint set is built for every
login attempt; nothing here is cached between invocations.

**Results** -- :class:`Credential` (the bearer token bound to one host) and
:class:`Diagnostic` (a user-facing report of a failed step).
"""

from __future__ import annotations

import enum
from typing import Any, Optional
from urllib.parse import urljoin

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


DEFAULT_HOST = "app.terraform.io"
"""Hostname used when ``svclogin login`` is run without an argument."""

LOGIN_SERVICE_ID = "login.v1"
"""Discovery service identifier that advertises the login capability."""

DEFAULT_GRANT_PREFERENCE = ["authz_code", "device_code", "password"]


# --- Settings ---


class Settings(BaseModel):
    """User-wide settings persisted at ``~/.config/svclogin/config.json``.

    Fields here have the lowest precedence and can be overridden by
    environment variables or CLI flags.  See
    :func:`~svclogin.config.resolve_settings` for the full chain.
    """

    default_host: str = Field(
        default=DEFAULT_HOST,
        description="Host to log in to when no hostname argument is given",
    )
    credentials_file: Optional[str] = Field(
        default=None,
        description="Credentials file path (default: <config_dir>/credentials.toml)",
    )
    discovery_timeout: float = Field(
        default=10.0, description="Discovery request timeout in seconds"
    )
    authorization_timeout: float = Field(
        default=300.0,
        description="Maximum time to wait for the user to complete authorization",
    )
    grant_preference: list[str] = Field(
        default_factory=lambda: list(DEFAULT_GRANT_PREFERENCE),
        description="Handshakes to try, most preferred first",
    )
    open_browser: bool = Field(
        default=True, description="Open the authorization URL in a browser"
    )

    @field_validator("discovery_timeout", "authorization_timeout")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be greater than zero")
        return value


# --- Host identity ---


class Hostname(BaseModel):
    """A user-supplied hostname and its two normalised forms.

    Attributes:
        raw: The input exactly as given (after the default-host substitution).
        display: Unicode form for UI messages.  Non-default ports are kept.
        comparison: Lower-cased ASCII (punycode) form used for every
            equality check and as the credentials-file key.
    """

    model_config = ConfigDict(frozen=True)

    raw: str
    display: str
    comparison: str

    def __str__(self) -> str:
        return self.display


class LoginService(BaseModel):
    """The ``login.v1`` service object advertised in a discovery document.

    URL fields are stored already resolved against the discovery document
    URL, so handshakes never deal with relative references.
    """

    model_config = ConfigDict(extra="ignore")

    client: str = Field(min_length=1, description="OAuth client identifier")
    grant_types: list[str] = Field(default_factory=lambda: ["authz_code"])
    authz: Optional[str] = Field(default=None, description="Authorization endpoint")
    token: Optional[str] = Field(default=None, description="Token endpoint")
    device: Optional[str] = Field(
        default=None, description="Device authorization endpoint (RFC 8628)"
    )
    ports: tuple[int, int] = Field(
        default=(10000, 10010),
        description="Inclusive loopback port range for the redirect listener",
    )
    scopes: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_ports(self) -> LoginService:
        low, high = self.ports
        if low < 1024 or high > 65535 or low > high:
            raise ValueError(
                f"invalid loopback port range {low}-{high}"
            )
        return self

    @classmethod
    def from_document(cls, value: Any, base_url: str) -> LoginService:
        """Validate a raw ``login.v1`` value and resolve its URLs.

        Raises:
            ValueError: If *value* is not an object or fails validation
                (pydantic's ``ValidationError`` is a ``ValueError``).
        """
        if not isinstance(value, dict):
            raise ValueError("service definition must be a JSON object")
        service = cls.model_validate(value)
        updates = {
            name: urljoin(base_url, getattr(service, name))
            for name in ("authz", "token", "device")
            if getattr(service, name)
        }
        return service.model_copy(update=updates)


class ServiceEndpointSet(BaseModel):
    """Services advertised by one host, built fresh from a discovery response.

    Attributes:
        hostname: The host that was discovered.
        discovery_url: Final URL the discovery document was read from, after
            redirects.  Relative service URLs are resolved against it.
        services: The raw discovery document (service id -> definition).
        login: The parsed ``login.v1`` service.
    """

    hostname: Hostname
    discovery_url: str
    services: dict[str, Any] = Field(default_factory=dict)
    login: LoginService

    def supports(self, grant_type: str) -> bool:
        return grant_type in self.login.grant_types


# --- Results ---


class Credential(BaseModel):
    """An opaque bearer token bound to exactly one canonical hostname."""

    model_config = ConfigDict(frozen=True)

    hostname: str = Field(description="Comparison form of the host that issued it")
    token: str = Field(min_length=1)
    refresh_token: Optional[str] = None

    def __repr__(self) -> str:
        return f"Credential(hostname={self.hostname!r}, token='***')"


class Severity(str, enum.Enum):
    ERROR = "error"
    WARNING = "warning"


class Diagnostic(BaseModel):
    """A user-facing report about one step of a login attempt.

    Attributes:
        severity: Whether the step failed or merely warrants attention.
        summary: One-line heading, e.g. ``"Invalid hostname"``.
        detail: Full sentence(s) naming the host and the reason.
        cause: The underlying exception, kept for ``--verbose`` tracing.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    severity: Severity = Severity.ERROR
    summary: str
    detail: str = ""
    cause: Optional[BaseException] = Field(default=None, exclude=True, repr=False)

    @classmethod
    def from_error(cls, summary: str, exc: BaseException) -> Diagnostic:
        detail = str(exc)
        if detail and not detail.endswith("."):
            detail += "."
        return cls(summary=summary, detail=detail, cause=exc)
