"""OAuth2 Resource Owner Password Credentials handshake.

Implements the ``password`` grant: the user types a username and password,
which are exchanged directly at the host's ``token`` endpoint.  Only
eligible when the CLI can prompt (i.e. not under ``--no-input``).
"""

from __future__ import annotations

from svclogin.auth.base import (
    Handshake,
    HandshakeContext,
    credential_from_token_response,
    exchange_token,
)
from svclogin.exceptions import AuthorizationFailed
from svclogin.models import Credential, LoginService
from svclogin.output import info


class PasswordHandshake(Handshake):
    """Exchange a username and password for a bearer token."""

    @property
    def grant_type(self) -> str:
        return "password"

    def missing_requirements(self, login: LoginService) -> list[str]:
        return [] if login.token else ["token"]

    def is_eligible(self, ctx: HandshakeContext) -> bool:
        return ctx.prompt is not None and super().is_eligible(ctx)

    def acquire(self, ctx: HandshakeContext) -> Credential:
        info(f"Log in to {ctx.hostname.display} with your username and password.")
        username = ctx.ask("Username").strip()
        password = ctx.ask("Password", hide_input=True)
        if not username or not password:
            raise AuthorizationFailed(
                f"A username and password are required to log in to {ctx.hostname.display}",
                hostname=ctx.hostname.display,
            )

        data = {
            "grant_type": "password",
            "client_id": ctx.login.client,
            "username": username,
            "password": password,
        }
        if ctx.login.scopes:
            data["scope"] = " ".join(ctx.login.scopes)
        token_data = exchange_token(ctx, data)
        return credential_from_token_response(ctx.hostname, token_data)
