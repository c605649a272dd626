"""Built-in authorization handshakes.

Each sub-package implements one ``login.v1`` grant type:

- :mod:`svclogin.plugins.authz_code` -- browser redirect (OAuth2
  authorization code with PKCE).
- :mod:`svclogin.plugins.device_code` -- OAuth2 device authorization
  (:rfc:`8628`) for headless terminals.
- :mod:`svclogin.plugins.password` -- direct credential exchange.

They are registered by :func:`svclogin.auth.create_default_acquirer`.
"""
