"""OAuth2 Authorization Code with PKCE handshake.

See Also:
    :class:`~svclogin.plugins.authz_code.plugin.AuthorizationCodeHandshake`
"""

from svclogin.plugins.authz_code.plugin import AuthorizationCodeHandshake, generate_pkce_pair

__all__ = ["AuthorizationCodeHandshake", "generate_pkce_pair"]
