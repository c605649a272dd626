"""Hostname canonicalisation.

Turns a user-supplied host string into the two forms the rest of the
package needs:

* a *comparison* form -- lower-case ASCII with internationalised labels in
  punycode, used for equality checks and as the credentials-file key;
* a *display* form -- the Unicode rendering, used in messages.

Both forms drop the default HTTPS port (443) and keep any other port as a
``:port`` suffix, so ``Example.COM`` and ``example.com:443`` compare equal.
Nothing in this module performs network I/O.
"""

from __future__ import annotations

import re
from typing import Optional

import idna

from svclogin.exceptions import InvalidHostname
from svclogin.models import DEFAULT_HOST, Hostname

DEFAULT_PORT = 443

# A-labels after IDNA encoding: letters, digits and inner hyphens only.
_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


def _split_port(given: str, shown: str) -> tuple[str, Optional[int]]:
    """Split ``host[:port]`` and validate the port; errors quote *shown*.

    Returns ``None`` for the port when it is absent or equal to the default.
    """
    if "[" in given or "]" in given:
        raise InvalidHostname(shown, "IP literal addresses are not supported")
    host, sep, port_text = given.rpartition(":")
    if not sep:
        return given, None
    if not port_text.isascii() or not port_text.isdigit():
        raise InvalidHostname(shown, f"invalid port number {port_text!r}")
    port = int(port_text)
    if port < 1 or port > 65535:
        raise InvalidHostname(shown, f"port {port} is out of range")
    if port == DEFAULT_PORT:
        return host, None
    return host, port


def normalize(raw: str, default_host: str = DEFAULT_HOST) -> Hostname:
    """Canonicalise and validate a raw hostname.

    Args:
        raw: The hostname as typed by the user.  An empty (or all
            whitespace) string selects *default_host*.
        default_host: Host substituted for an empty input.  Pass ``""`` to
            treat empty input as invalid.

    Returns:
        A :class:`~svclogin.models.Hostname` carrying both normalised forms.

    Raises:
        InvalidHostname: If the input has illegal characters, empty labels,
            oversized labels or overall length, a bad port, or malformed
            punycode.  The message quotes *raw* and names the reason.

    Example::

        >>> normalize("Bücher.Example:8443").comparison
        'xn--bcher-kva.example:8443'
    """
    given = raw.strip() or default_host
    if not given:
        raise InvalidHostname(raw, "hostname is empty")
    # errors quote what the user typed, or the default host they fell back to
    shown = raw if raw.strip() else given

    host, port = _split_port(given, shown)
    # One trailing dot names the same fully-qualified host.
    if host.endswith(".") and not host.endswith(".."):
        host = host[:-1]
    if not host:
        raise InvalidHostname(shown, "hostname is empty")

    try:
        ascii_host = idna.encode(host, uts46=True, std3_rules=True).decode("ascii")
        unicode_host = idna.decode(ascii_host)
    except idna.IDNAError as exc:
        raise InvalidHostname(shown, str(exc) or type(exc).__name__) from exc

    for label in ascii_host.split("."):
        if not _LABEL_RE.match(label):
            raise InvalidHostname(shown, f"label {label!r} is not a valid DNS label")

    suffix = f":{port}" if port is not None else ""
    return Hostname(
        raw=given,
        display=unicode_host + suffix,
        comparison=ascii_host + suffix,
    )


def for_comparison(raw: str) -> str:
    """Return only the comparison form of *raw* (no default substitution)."""
    return normalize(raw, default_host="").comparison


def same_host(a: str, b: str) -> bool:
    """Whether two host strings name the same host.

    Strings that fail normalisation only match themselves exactly.
    """
    try:
        return for_comparison(a) == for_comparison(b)
    except InvalidHostname:
        return a == b
