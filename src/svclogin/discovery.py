"""Well-known service discovery.

A host advertises its services in a JSON document served from
``https://<host>/.well-known/terraform.json``.  The document maps service
identifiers to either a URL string or a service-specific object::

    {
      "modules.v1": "/api/registry/v1/modules/",
      "login.v1": {
        "client": "terraform-cli",
        "grant_types": ["authz_code"],
        "authz": "/oauth/authorization",
        "token": "/oauth/token",
        "ports": [10000, 10010]
      }
    }

:class:`ServiceDiscoverer` fetches that document once per login attempt and
returns a :class:`~svclogin.models.ServiceEndpointSet`.  There are no
automatic retries; the first failure is reported as
:class:`~svclogin.exceptions.DiscoveryFailed` with a message addressed to
the end user.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from svclogin.exceptions import DiscoveryFailed
from svclogin.models import (
    LOGIN_SERVICE_ID,
    Hostname,
    LoginService,
    ServiceEndpointSet,
)

logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = "/.well-known/terraform.json"
MAX_DOCUMENT_SIZE = 1024 * 1024
MAX_REDIRECTS = 3


def _validation_reason(exc: ValueError) -> str:
    """Condense a pydantic error into one line for end users."""
    if isinstance(exc, ValidationError):
        parts = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()))
            msg = err.get("msg", "invalid value")
            parts.append(f"{loc}: {msg}" if loc else msg)
        return "; ".join(parts)
    return str(exc)


class ServiceDiscoverer:
    """Resolve a canonical hostname to the services it advertises.

    Args:
        timeout: Request timeout in seconds.
        transport: Optional httpx transport, used by tests to serve
            canned responses.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    def discovery_url(self, hostname: Hostname) -> str:
        """Return the well-known discovery URL for *hostname*."""
        return f"https://{hostname.comparison}{WELL_KNOWN_PATH}"

    def discover(self, hostname: Hostname) -> ServiceEndpointSet:
        """Fetch and validate the discovery document for *hostname*.

        Args:
            hostname: A normalised hostname; requests go to its comparison
                form.

        Returns:
            The host's :class:`~svclogin.models.ServiceEndpointSet`.

        Raises:
            DiscoveryFailed: If the host is unreachable, answers with
                anything but a JSON object, or does not advertise a usable
                ``login.v1`` service.
        """
        url = self.discovery_url(hostname)
        logger.debug("requesting discovery document for %s from %s", hostname.display, url)
        response = self._fetch(hostname, url)
        document = self._decode(hostname, response)

        if LOGIN_SERVICE_ID not in document:
            raise DiscoveryFailed(
                f"Host {hostname.display} does not provide a login service",
                hostname=hostname.display,
            )

        final_url = str(response.url)
        try:
            login = LoginService.from_document(document[LOGIN_SERVICE_ID], final_url)
        except ValueError as exc:
            raise DiscoveryFailed(
                f"Host {hostname.display} advertises an invalid login service "
                f"({_validation_reason(exc)})",
                hostname=hostname.display,
            ) from exc

        logger.debug(
            "host %s offers login grants %s", hostname.display, ", ".join(login.grant_types)
        )
        return ServiceEndpointSet(
            hostname=hostname,
            discovery_url=final_url,
            services=document,
            login=login,
        )

    def _fetch(self, hostname: Hostname, url: str) -> httpx.Response:
        try:
            with httpx.Client(
                timeout=self._timeout,
                follow_redirects=True,
                max_redirects=MAX_REDIRECTS,
                transport=self._transport,
            ) as client:
                response = client.get(url, headers={"Accept": "application/json"})
        except httpx.TooManyRedirects as exc:
            raise DiscoveryFailed(
                f"Too many redirects while requesting the discovery document "
                f"for {hostname.display}",
                hostname=hostname.display,
            ) from exc
        except httpx.TimeoutException as exc:
            raise DiscoveryFailed(
                f"Timed out requesting the discovery document for {hostname.display}",
                hostname=hostname.display,
            ) from exc
        except httpx.HTTPError as exc:
            raise DiscoveryFailed(
                f"Failed to request discovery document for {hostname.display}: {exc}",
                hostname=hostname.display,
            ) from exc

        if response.status_code == 404:
            raise DiscoveryFailed(
                f"Host {hostname.display} does not provide any services",
                hostname=hostname.display,
            )
        if response.status_code != 200:
            raise DiscoveryFailed(
                f"Failed to request discovery document for {hostname.display}: "
                f"{response.status_code} {response.reason_phrase}".rstrip(),
                hostname=hostname.display,
            )
        return response

    def _decode(self, hostname: Hostname, response: httpx.Response) -> dict[str, Any]:
        content_type = response.headers.get("content-type", "")
        mime = content_type.split(";", 1)[0].strip().lower()
        if mime != "application/json":
            raise DiscoveryFailed(
                f"Discovery URL for {hostname.display} returned an unsupported "
                f"Content-Type {content_type!r}",
                hostname=hostname.display,
            )

        if len(response.content) > MAX_DOCUMENT_SIZE:
            raise DiscoveryFailed(
                f"Discovery document for {hostname.display} is larger than "
                f"{MAX_DOCUMENT_SIZE} bytes",
                hostname=hostname.display,
            )

        try:
            document = response.json()
        except ValueError as exc:
            raise DiscoveryFailed(
                f"Failed to decode discovery document for {hostname.display} "
                f"as a JSON object: {exc}",
                hostname=hostname.display,
            ) from exc
        if not isinstance(document, dict):
            raise DiscoveryFailed(
                f"Failed to decode discovery document for {hostname.display} "
                f"as a JSON object: got {type(document).__name__}",
                hostname=hostname.display,
            )
        return document
