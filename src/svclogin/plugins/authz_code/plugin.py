"""OAuth2 Authorization Code flow with PKCE (:rfc:`7636`).

Implements the ``authz_code`` grant:

1. Binds a loopback HTTP listener on the first free port in the host's
   advertised ``ports`` range.
2. Opens the host's ``authz`` URL in the user's browser (or prints it).
3. Waits -- cancellably, and no longer than the context deadline -- for the
   browser to be redirected back with an authorization code.
4. Exchanges the code and PKCE verifier at the ``token`` endpoint.

The listener runs on a daemon thread and signals completion through a
:class:`threading.Event`; the calling thread waits on that event through
:meth:`~svclogin.auth.base.HandshakeContext.wait_for`.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urlparse

from svclogin.auth.base import (
    Handshake,
    HandshakeContext,
    credential_from_token_response,
    exchange_token,
)
from svclogin.exceptions import AuthorizationFailed
from svclogin.models import Credential, LoginService

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/login"


def generate_pkce_pair() -> tuple[str, str]:
    """Return ``(verifier, S256 challenge)`` for a PKCE authorization request."""
    # verifier: 43-128 unreserved characters
    code_verifier = secrets.token_urlsafe(64)[:128]
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    code_challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return code_verifier, code_challenge


class _CallbackServer(HTTPServer):
    """Loopback listener that records the first redirect to :data:`CALLBACK_PATH`."""

    def __init__(self, port: int) -> None:
        super().__init__(("127.0.0.1", port), _CallbackHandler)
        self.done = threading.Event()
        self.params: dict[str, str] = {}


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackServer

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        if parsed.path != CALLBACK_PATH or self.server.done.is_set():
            # Browsers also ask for /favicon.ico and friends.
            self.send_response(404)
            self.end_headers()
            return

        params = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        if "error" in params:
            body = f"Login failed: {params['error']}"
            if params.get("error_description"):
                body += f" - {params['error_description']}"
        elif "code" in params:
            body = "Login successful! You can close this window and return to the terminal."
        else:
            body = "No authorization code received."

        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.end_headers()
        self.wfile.write(f"<html><body><h2>{body}</h2></body></html>".encode("utf-8"))

        self.server.params = params
        self.server.done.set()

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("callback listener: " + format, *args)


def _bind_listener(ctx: HandshakeContext) -> _CallbackServer:
    """Bind on the first free port of the advertised range."""
    low, high = ctx.login.ports
    last_error: Optional[OSError] = None
    for port in range(low, high + 1):
        try:
            return _CallbackServer(port)
        except OSError as exc:
            last_error = exc
    raise AuthorizationFailed(
        f"Cannot listen for the login redirect from {ctx.hostname.display}: "
        f"no free port between {low} and {high} ({last_error})",
        hostname=ctx.hostname.display,
    )


class AuthorizationCodeHandshake(Handshake):
    """Authenticate via OAuth2 Authorization Code grant with PKCE."""

    @property
    def grant_type(self) -> str:
        return "authz_code"

    def missing_requirements(self, login: LoginService) -> list[str]:
        missing = []
        if not login.authz:
            missing.append("authz")
        if not login.token:
            missing.append("token")
        return missing

    def acquire(self, ctx: HandshakeContext) -> Credential:
        login = ctx.login
        assert login.authz
        code_verifier, code_challenge = generate_pkce_pair()
        state = secrets.token_urlsafe(24)

        server = _bind_listener(ctx)
        port = server.server_address[1]
        redirect_uri = f"http://localhost:{port}{CALLBACK_PATH}"

        params: dict[str, str] = {
            "response_type": "code",
            "client_id": login.client,
            "redirect_uri": redirect_uri,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        if login.scopes:
            params["scope"] = " ".join(login.scopes)
        separator = "&" if "?" in login.authz else "?"
        auth_url = f"{login.authz}{separator}{urlencode(params)}"

        thread = threading.Thread(
            target=server.serve_forever, kwargs={"poll_interval": 0.1}, daemon=True
        )
        thread.start()
        try:
            ctx.open_url(auth_url)
            ctx.wait_for(server.done)
        finally:
            server.shutdown()
            server.server_close()
            thread.join(timeout=1.0)

        callback = server.params
        if "error" in callback:
            reason = callback.get("error_description") or callback["error"]
            raise AuthorizationFailed(
                f"Host {ctx.hostname.display} refused authorization: {reason}",
                hostname=ctx.hostname.display,
            )
        if not secrets.compare_digest(callback.get("state", ""), state):
            raise AuthorizationFailed(
                f"The login redirect for {ctx.hostname.display} carried an unexpected state value",
                hostname=ctx.hostname.display,
            )
        code = callback.get("code")
        if not code:
            raise AuthorizationFailed(
                f"The login redirect for {ctx.hostname.display} did not include an authorization code",
                hostname=ctx.hostname.display,
            )

        token_data = exchange_token(
            ctx,
            {
                "grant_type": "authorization_code",
                "client_id": login.client,
                "code": code,
                "code_verifier": code_verifier,
                "redirect_uri": redirect_uri,
            },
        )
        return credential_from_token_response(ctx.hostname, token_data)
