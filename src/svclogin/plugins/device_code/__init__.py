"""OAuth2 Device Authorization Grant (:rfc:`8628`) handshake.

Designed for headless or browserless terminals (SSH sessions, containers).
The user is shown a URL and a short code to enter on another device, then
the CLI polls for authorization.

See Also:
    :class:`~svclogin.plugins.device_code.plugin.DeviceCodeHandshake`
"""

from svclogin.plugins.device_code.plugin import DeviceCodeHandshake

__all__ = ["DeviceCodeHandshake"]
