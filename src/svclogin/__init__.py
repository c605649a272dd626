"""svclogin -- Obtain and persist authentication tokens for remote service hosts.

Running ``svclogin login <hostname>`` canonicalises the hostname, discovers
the services the host advertises, runs whichever authorization handshake
the host supports, and merges the resulting token into a local credentials
file without disturbing any other entries.

Typical workflow::

    svclogin login                    # log in to the default hosted service
    svclogin login tfe.example.com    # log in to a private installation
    svclogin hosts                    # list stored credentials
    svclogin logout tfe.example.com   # forget a host

Modules:
    app: Typer application and CLI entry point.
    hostname: Hostname canonicalisation (no I/O).
    discovery: Well-known service discovery.
    auth: Token acquisition handshakes and the credentials store.
    login: The login orchestrator tying the steps together.
    config: XDG-aware settings resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stderr diagnostics with Rich support.
"""

__version__ = "0.1.0"
