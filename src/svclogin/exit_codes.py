"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

:class:`~svclogin.exceptions.SvcLoginError` defaults to
:data:`EXIT_GENERIC_FAILURE`, and every diagnostic produced by a login
attempt exits with it, so shell wrappers only have to check for a non-zero
status.  Usage errors come from Click and interrupts from the SIGINT handler.

Example::

    $ svclogin login example..com
    $ echo $?
    1
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""The command reported one or more error diagnostics."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_INTERRUPTED = 130
"""The user interrupted the process (SIGINT) outside of a handshake."""
