"""Abstract base class and shared plumbing for authorization handshakes.

This module defines the foundational types of the token-acquisition
subsystem:

- :class:`HandshakeContext` -- everything a running handshake may use: the
  discovered endpoints, the cancellation token, the deadline, and the
  browser/prompt collaborators.
- :class:`Handshake` -- the abstract base class every grant implementation
  extends.
- :func:`post_form` / :func:`exchange_token` / :func:`credential_from_token_response`
  -- HTTP helpers shared by the grant implementations.

To implement a new grant, subclass :class:`Handshake`, set
:attr:`~Handshake.grant_type` to the name hosts advertise in
``login.v1.grant_types``, list its required endpoints in
:meth:`~Handshake.missing_requirements`, and implement
:meth:`~Handshake.acquire`.

See Also:
    :mod:`svclogin.auth.acquirer` for registration and selection.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import httpx

from svclogin.cancel import CancelToken
from svclogin.exceptions import Aborted, AuthorizationFailed, AuthorizationTimedOut
from svclogin.models import Credential, Hostname, LoginService, ServiceEndpointSet
from svclogin.output import info

logger = logging.getLogger(__name__)

Prompt = Callable[[str, bool], str]
"""``prompt(label, hide_input) -> answer`` supplied by the CLI."""

BrowserOpener = Callable[[str], bool]
"""``open(url) -> opened`` -- :func:`webbrowser.open` in production."""

_POLL_SLICE = 0.1

# upper bound for one handshake POST; an in-flight request does not see the cancel token
REQUEST_TIMEOUT = 5.0


class HandshakeContext:
    """Runtime state handed to a :class:`Handshake`.

    The deadline is fixed when the context is created.  Every blocking step
    goes through :meth:`sleep` or :meth:`wait_for`, which raise
    :class:`~svclogin.exceptions.Aborted` as soon as the token is cancelled
    and :class:`~svclogin.exceptions.AuthorizationTimedOut` once the
    deadline passes.

    Args:
        endpoints: The discovered services of the target host.
        cancel: Cancellation token observed by every wait.
        timeout: Seconds the whole handshake may take.
        browser: Callable used to open authorization URLs, or ``None`` to
            only print them.
        prompt: Callable used for interactive questions, or ``None`` when
            prompting is disabled.
    """

    def __init__(
        self,
        endpoints: ServiceEndpointSet,
        cancel: CancelToken,
        timeout: float,
        browser: Optional[BrowserOpener] = None,
        prompt: Optional[Prompt] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.endpoints = endpoints
        self.cancel = cancel
        self.timeout = timeout
        self.browser = browser
        self.prompt = prompt
        self._clock = clock
        self._deadline = clock() + timeout

    @property
    def hostname(self) -> Hostname:
        return self.endpoints.hostname

    @property
    def login(self) -> LoginService:
        return self.endpoints.login

    def remaining(self) -> float:
        """Seconds left before the deadline (never negative)."""
        return max(0.0, self._deadline - self._clock())

    def check(self) -> None:
        """Raise if the handshake was cancelled or ran out of time."""
        if self.cancel.cancelled:
            raise Aborted(
                f"Login to {self.hostname.display} was aborted "
                f"({self.cancel.reason or 'cancelled'})",
                hostname=self.hostname.display,
            )
        if self.remaining() <= 0:
            raise AuthorizationTimedOut(
                f"Timed out after {self.timeout:g} seconds waiting for "
                f"authorization from {self.hostname.display}",
                hostname=self.hostname.display,
            )

    def sleep(self, seconds: float) -> None:
        """Sleep up to *seconds*, waking early on cancellation."""
        self.check()
        self.cancel.wait(min(seconds, self.remaining()))
        self.check()

    def wait_for(self, event: threading.Event) -> None:
        """Block until *event* is set, observing cancellation and the deadline."""
        while True:
            self.check()
            if event.wait(min(_POLL_SLICE, self.remaining())):
                return

    def ask(self, label: str, hide_input: bool = False) -> str:
        """Ask the user a question through :attr:`prompt`.

        The prompt runs on a daemon thread while this thread waits in
        :meth:`wait_for`, so Ctrl-C and the deadline end the wait even though
        the terminal read itself cannot be interrupted.  A thread left
        blocked on the read dies with the process.

        Raises:
            Aborted: If the token is cancelled while the question is open.
            AuthorizationTimedOut: If the deadline passes first.
        """
        if self.prompt is None:
            raise Aborted(
                f"Cannot ask for {label.lower()} without an interactive prompt",
                hostname=self.hostname.display,
            )
        self.check()
        prompt = self.prompt
        done = threading.Event()
        result: dict[str, Any] = {}

        def _run() -> None:
            try:
                result["answer"] = prompt(label, hide_input)
            except BaseException as exc:  # re-raised on the waiting thread
                result["error"] = exc
            finally:
                done.set()

        threading.Thread(target=_run, name=f"svclogin-prompt-{label}", daemon=True).start()
        self.wait_for(done)
        if "error" in result:
            raise result["error"]
        return result["answer"]

    def open_url(self, url: str) -> bool:
        """Show *url* to the user and try to open it in a browser."""
        opened = False
        if self.browser is not None:
            try:
                opened = bool(self.browser(url))
            except Exception as exc:  # noqa: BLE001
                logger.debug("could not launch browser: %s", exc)
        if opened:
            info(f"A browser window has been opened for {self.hostname.display}.")
            info(f"If it did not appear, visit:\n\n    {url}\n")
        else:
            info(f"Open the following URL to log in to {self.hostname.display}:\n\n    {url}\n")
        return opened


class Handshake(ABC):
    """Abstract base class for authorization handshakes.

    Every concrete grant must provide:

    1. A :attr:`grant_type` property matching the name hosts advertise.
    2. An :meth:`acquire` implementation returning a
       :class:`~svclogin.models.Credential` for ``ctx.hostname``.
    """

    @property
    @abstractmethod
    def grant_type(self) -> str:
        """The ``login.v1.grant_types`` entry this handshake implements."""
        ...

    @abstractmethod
    def acquire(self, ctx: HandshakeContext) -> Credential:
        """Run the handshake and return the issued credential.

        Raises:
            AuthorizationFailed: If the host rejects the handshake or
                returns a malformed token.
            AuthorizationTimedOut: If the deadline passes.
            Aborted: If ``ctx.cancel`` is cancelled.
        """
        ...

    def missing_requirements(self, login: LoginService) -> list[str]:
        """Return the ``login.v1`` fields this handshake needs but lacks."""
        return []

    def is_eligible(self, ctx: HandshakeContext) -> bool:
        """Whether this handshake can run against ``ctx``'s host."""
        return ctx.endpoints.supports(self.grant_type) and not self.missing_requirements(
            ctx.login
        )


# --- HTTP helpers ---


def post_form(
    ctx: HandshakeContext, url: str, data: dict[str, str]
) -> tuple[int, Optional[dict[str, Any]]]:
    """POST a form to *url* and return ``(status, json_object_or_None)``.

    Raises:
        AuthorizationFailed: On transport errors.
    """
    ctx.check()
    try:
        response = httpx.post(
            url,
            data=data,
            headers={"Accept": "application/json"},
            timeout=min(REQUEST_TIMEOUT, max(ctx.remaining(), 0.5)),
        )
    except httpx.HTTPError as exc:
        raise AuthorizationFailed(
            f"Request to {ctx.hostname.display} failed: {exc}",
            hostname=ctx.hostname.display,
        ) from exc

    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = None
    logger.debug("POST %s -> %s", url, response.status_code)
    return response.status_code, body


def _error_text(status: int, body: Optional[dict[str, Any]]) -> str:
    if body:
        desc = body.get("error_description") or body.get("error")
        if desc:
            return str(desc)
    return f"HTTP status {status}"


def exchange_token(ctx: HandshakeContext, data: dict[str, str]) -> dict[str, Any]:
    """POST a grant to the host's token endpoint and return the JSON body.

    Raises:
        AuthorizationFailed: If the host answers with an error status or a
            body that is not a JSON object.
    """
    token_url = ctx.login.token
    if not token_url:
        raise AuthorizationFailed(
            f"Host {ctx.hostname.display} does not advertise a token endpoint",
            hostname=ctx.hostname.display,
        )
    status, body = post_form(ctx, token_url, data)
    if status != 200:
        raise AuthorizationFailed(
            f"Host {ctx.hostname.display} rejected the token request: "
            f"{_error_text(status, body)}",
            hostname=ctx.hostname.display,
        )
    if body is None:
        raise AuthorizationFailed(
            f"Host {ctx.hostname.display} returned a malformed token response",
            hostname=ctx.hostname.display,
        )
    return body


def credential_from_token_response(
    hostname: Hostname, data: dict[str, Any]
) -> Credential:
    """Validate an OAuth token response and bind it to *hostname*.

    Raises:
        AuthorizationFailed: If ``access_token`` is missing or empty, or
            ``token_type`` is present and is not ``bearer``.
    """
    access_token = data.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        raise AuthorizationFailed(
            f"Host {hostname.display} returned a token response without an access token",
            hostname=hostname.display,
        )
    token_type = data.get("token_type")
    if token_type is not None and str(token_type).lower() != "bearer":
        raise AuthorizationFailed(
            f"Host {hostname.display} issued an unsupported token type {token_type!r}",
            hostname=hostname.display,
        )
    refresh_token = data.get("refresh_token")
    if not isinstance(refresh_token, str) or not refresh_token:
        refresh_token = None
    return Credential(
        hostname=hostname.comparison,
        token=access_token,
        refresh_token=refresh_token,
    )
