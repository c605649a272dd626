"""OAuth2 Device Authorization Grant (:rfc:`8628`) handshake.

Flow:
    1. POST to the host's ``device`` endpoint to obtain ``device_code`` +
       ``user_code``.
    2. Print instructions: "Go to {verification_uri} and enter code:
       {user_code}".
    3. Poll the ``token`` endpoint until the user authorizes, the code
       expires, the context deadline passes, or the user cancels.
"""

from __future__ import annotations

import logging
from typing import Any

from svclogin.auth.base import (
    Handshake,
    HandshakeContext,
    credential_from_token_response,
    post_form,
)
from svclogin.exceptions import AuthorizationFailed
from svclogin.models import Credential, LoginService
from svclogin.output import info

logger = logging.getLogger(__name__)

DEVICE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"


class DeviceCodeHandshake(Handshake):
    """Authenticate via OAuth2 Device Authorization Grant (:rfc:`8628`)."""

    @property
    def grant_type(self) -> str:
        return "device_code"

    def missing_requirements(self, login: LoginService) -> list[str]:
        missing = []
        if not login.device:
            missing.append("device")
        if not login.token:
            missing.append("token")
        return missing

    def acquire(self, ctx: HandshakeContext) -> Credential:
        device_data = self._request_device_code(ctx)

        device_code: str = device_data["device_code"]
        user_code: str = device_data["user_code"]
        verification_uri: str = device_data.get(
            "verification_uri", device_data.get("verification_url", "")
        )
        interval = _as_number(device_data.get("interval"), 5)
        expires_in = _as_number(device_data.get("expires_in"), 1800)

        complete_uri = device_data.get("verification_uri_complete")
        if complete_uri:
            ctx.open_url(complete_uri)
        info(f"Go to: {verification_uri}")
        info(f"Enter code: {user_code}")
        info("\nWaiting for authorization...")

        token_data = self._poll_for_token(ctx, device_code, interval, expires_in)
        return credential_from_token_response(ctx.hostname, token_data)

    def _request_device_code(self, ctx: HandshakeContext) -> dict[str, Any]:
        """POST to the device authorization endpoint.

        Raises:
            AuthorizationFailed: On HTTP errors or if ``device_code`` /
                ``user_code`` are missing from the response.
        """
        assert ctx.login.device
        data: dict[str, str] = {"client_id": ctx.login.client}
        if ctx.login.scopes:
            data["scope"] = " ".join(ctx.login.scopes)

        status, result = post_form(ctx, ctx.login.device, data)
        if status != 200 or result is None:
            detail = (result or {}).get("error_description") or (result or {}).get("error")
            raise AuthorizationFailed(
                f"Device authorization request to {ctx.hostname.display} failed: "
                f"{detail or f'HTTP status {status}'}",
                hostname=ctx.hostname.display,
            )
        for field in ("device_code", "user_code"):
            if not result.get(field):
                raise AuthorizationFailed(
                    f"Device authorization response from {ctx.hostname.display} "
                    f"is missing '{field}'",
                    hostname=ctx.hostname.display,
                )
        return result

    def _poll_for_token(
        self,
        ctx: HandshakeContext,
        device_code: str,
        interval: float,
        expires_in: float,
    ) -> dict[str, Any]:
        """Poll the token endpoint until the user authorizes or the code expires.

        Implements the polling logic from :rfc:`8628` section 3.4, including
        ``authorization_pending`` (keep polling), ``slow_down`` (increase
        interval), ``access_denied``, and ``expired_token``.  Waiting is
        delegated to :meth:`HandshakeContext.sleep`, so cancellation and the
        overall deadline interrupt it.
        """
        assert ctx.login.token
        poll_interval = max(interval, 1.0)
        remaining_code_life = expires_in

        data: dict[str, str] = {
            "grant_type": DEVICE_GRANT,
            "device_code": device_code,
            "client_id": ctx.login.client,
        }

        while remaining_code_life > 0:
            ctx.sleep(poll_interval)
            remaining_code_life -= poll_interval

            status, token_data = post_form(ctx, ctx.login.token, data)
            token_data = token_data or {}

            if status == 200 and "access_token" in token_data:
                return token_data

            error = token_data.get("error", "")
            if error == "authorization_pending":
                continue
            if error == "slow_down":
                poll_interval += 5
                continue
            if error == "access_denied":
                raise AuthorizationFailed(
                    f"Authorization for {ctx.hostname.display} was denied",
                    hostname=ctx.hostname.display,
                )
            if error == "expired_token":
                break
            desc = token_data.get("error_description") or error or f"HTTP status {status}"
            raise AuthorizationFailed(
                f"Device authorization for {ctx.hostname.display} failed: {desc}",
                hostname=ctx.hostname.display,
            )

        raise AuthorizationFailed(
            f"The device code for {ctx.hostname.display} expired; please try again",
            hostname=ctx.hostname.display,
        )


def _as_number(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
