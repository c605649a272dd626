"""Token acquisition and credential persistence for svclogin.

The main entry points are:

- :class:`Handshake` -- abstract base class for authorization grants.
- :class:`TokenAcquirer` -- negotiates and runs a handshake for a
  discovered host.
- :func:`create_default_acquirer` -- an acquirer pre-loaded with the
  built-in grants.
- :class:`CredentialStore` -- atomic, structure-preserving persistence of
  per-host credentials, with the pure :func:`upsert` / :func:`remove`
  document edits.

Typical usage::

    from svclogin.auth import CredentialStore, create_default_acquirer

    credential = create_default_acquirer(settings).acquire(endpoints)
    CredentialStore(path).merge(credential)
"""

from svclogin.auth.acquirer import TokenAcquirer, create_default_acquirer
from svclogin.auth.base import Handshake, HandshakeContext
from svclogin.auth.credential_store import (
    CredentialDocument,
    CredentialStore,
    remove,
    upsert,
)

__all__ = [
    "CredentialDocument",
    "CredentialStore",
    "Handshake",
    "HandshakeContext",
    "TokenAcquirer",
    "create_default_acquirer",
    "remove",
    "upsert",
]
