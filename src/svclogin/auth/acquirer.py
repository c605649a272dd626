"""Token acquirer -- registry and selector for authorization handshakes.

The :class:`TokenAcquirer` maps grant names (``"authz_code"``,
``"device_code"``, ``"password"``) to :class:`~svclogin.auth.base.Handshake`
instances.  Which one runs is negotiated per host: the first grant in the
preference order that the host advertises, and whose endpoints are present,
wins.  Nothing is hard-coded to a single protocol.

For most use cases, call :func:`create_default_acquirer` to get an acquirer
pre-loaded with every built-in handshake.
"""

from __future__ import annotations

import logging
import webbrowser
from typing import Optional

from svclogin.auth.base import BrowserOpener, Handshake, HandshakeContext, Prompt
from svclogin.cancel import CancelToken
from svclogin.exceptions import Aborted, AuthorizationFailed, UnsupportedHost
from svclogin.models import DEFAULT_GRANT_PREFERENCE, Credential, ServiceEndpointSet, Settings

logger = logging.getLogger(__name__)


class TokenAcquirer:
    """Registry and dispatcher for authorization handshakes.

    Args:
        preference: Grant names in the order they should be tried.  Grants
            not listed here are never used.
        timeout: Default handshake timeout in seconds.
        browser: Opener for authorization URLs (``None`` prints them only).
        prompt: Interactive prompt, or ``None`` when prompts are disabled.

    Example::

        acquirer = TokenAcquirer(["device_code"], timeout=120)
        acquirer.register(DeviceCodeHandshake())
        credential = acquirer.acquire(endpoints, cancel=token)
    """

    def __init__(
        self,
        preference: Optional[list[str]] = None,
        timeout: float = 300.0,
        browser: Optional[BrowserOpener] = None,
        prompt: Optional[Prompt] = None,
    ) -> None:
        self._handshakes: dict[str, Handshake] = {}
        self._preference = list(preference or DEFAULT_GRANT_PREFERENCE)
        self._timeout = timeout
        self._browser = browser
        self._prompt = prompt

    def register(self, handshake: Handshake) -> None:
        """Register a handshake, replacing any previous one for its grant."""
        self._handshakes[handshake.grant_type] = handshake

    def list_grants(self) -> list[str]:
        return sorted(self._handshakes)

    def select(self, ctx: HandshakeContext) -> Handshake:
        """Pick the handshake to run for ``ctx``'s host.

        Raises:
            UnsupportedHost: If no registered, preferred handshake is
                eligible.  The message lists what the host offered.
        """
        for grant in self._preference:
            handshake = self._handshakes.get(grant)
            if handshake is None:
                continue
            if handshake.is_eligible(ctx):
                return handshake
            if ctx.endpoints.supports(grant):
                logger.debug(
                    "skipping %s for %s: missing %s",
                    grant,
                    ctx.hostname.display,
                    ", ".join(handshake.missing_requirements(ctx.login)) or "prompt",
                )

        offered = ", ".join(ctx.login.grant_types) or "(none)"
        raise UnsupportedHost(
            f"Host {ctx.hostname.display} does not offer a login method this "
            f"program supports (offered: {offered}; supported: {', '.join(self.list_grants())})",
            hostname=ctx.hostname.display,
        )

    def acquire(
        self,
        endpoints: ServiceEndpointSet,
        cancel: Optional[CancelToken] = None,
        timeout: Optional[float] = None,
    ) -> Credential:
        """Run the negotiated handshake and return a credential for the host.

        Args:
            endpoints: Discovered services of the target host.
            cancel: Token observed during every wait.  A fresh one is used
                when omitted.
            timeout: Overrides the acquirer's default timeout.

        Raises:
            UnsupportedHost: If no handshake is eligible.
            AuthorizationFailed: If the handshake fails, or yields a
                credential bound to a different host.
            AuthorizationTimedOut: If the deadline passes.
            Aborted: If *cancel* fires or the user interrupts.
        """
        ctx = HandshakeContext(
            endpoints,
            cancel or CancelToken(),
            timeout if timeout is not None else self._timeout,
            browser=self._browser,
            prompt=self._prompt,
        )
        handshake = self.select(ctx)
        logger.debug("using %s handshake for %s", handshake.grant_type, ctx.hostname.display)

        try:
            credential = handshake.acquire(ctx)
        except KeyboardInterrupt as exc:
            raise Aborted(
                f"Login to {ctx.hostname.display} was aborted (interrupted)",
                hostname=ctx.hostname.display,
            ) from exc

        if credential.hostname != ctx.hostname.comparison:
            raise AuthorizationFailed(
                f"The {handshake.grant_type} handshake returned a credential for "
                f"{credential.hostname} instead of {ctx.hostname.display}",
                hostname=ctx.hostname.display,
            )
        return credential


def create_default_acquirer(
    settings: Settings, prompt: Optional[Prompt] = None
) -> TokenAcquirer:
    """Create a :class:`TokenAcquirer` with all built-in handshakes.

    The following handshakes are registered:

    - ``authz_code`` -- browser redirect with PKCE and a loopback listener.
    - ``device_code`` -- RFC 8628 device authorization.
    - ``password`` -- direct username/password exchange (needs *prompt*).
    """
    from svclogin.plugins.authz_code import AuthorizationCodeHandshake
    from svclogin.plugins.device_code import DeviceCodeHandshake
    from svclogin.plugins.password import PasswordHandshake

    acquirer = TokenAcquirer(
        preference=settings.grant_preference,
        timeout=settings.authorization_timeout,
        browser=webbrowser.open if settings.open_browser else None,
        prompt=prompt,
    )
    acquirer.register(AuthorizationCodeHandshake())
    acquirer.register(DeviceCodeHandshake())
    acquirer.register(PasswordHandshake())
    return acquirer
