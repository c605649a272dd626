"""Cancellation signal shared between the CLI and a running handshake.

The CLI creates one :class:`CancelToken` per login attempt and cancels it
from its SIGINT handler.  Handshakes never block without observing the
token; see :meth:`svclogin.auth.base.HandshakeContext.sleep` and
:meth:`~svclogin.auth.base.HandshakeContext.wait_for`.
"""

from __future__ import annotations

import threading
from typing import Optional


class CancelToken:
    """A one-shot, thread-safe cancellation flag.

    Example::

        token = CancelToken()
        signal.signal(signal.SIGINT, lambda *_: token.cancel("interrupted"))
        orchestrator.login(host, cancel=token)
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled by user") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or *timeout* elapses; return ``cancelled``."""
        return self._event.wait(timeout)
