"""Direct username/password exchange handshake.

See Also:
    :class:`~svclogin.plugins.password.plugin.PasswordHandshake`
"""

from svclogin.plugins.password.plugin import PasswordHandshake

__all__ = ["PasswordHandshake"]
