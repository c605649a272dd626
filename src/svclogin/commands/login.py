"""Login commands -- obtain, list, and forget stored host credentials.

Provides the ``login``, ``logout`` and ``hosts`` commands.  They are thin:
flag handling, prompts, and printing live here, while the actual work is
done by :class:`~svclogin.login.LoginOrchestrator` and
:class:`~svclogin.auth.credential_store.CredentialStore`.

Typical workflow::

    svclogin login                       # default hosted service
    svclogin login tfe.example.com --into-file ./creds.toml
    svclogin hosts
    svclogin logout tfe.example.com
"""

from __future__ import annotations

import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import typer

from svclogin.cancel import CancelToken
from svclogin.exceptions import Aborted
from svclogin.exit_codes import EXIT_GENERIC_FAILURE
from svclogin.output import debug, diagnostic, error, info, print_table, success, suggest, warning


def _prompt(label: str, hide_input: bool) -> str:
    try:
        return typer.prompt(label, hide_input=hide_input)
    except typer.Abort as exc:
        raise Aborted(f"No answer was given for {label.lower()} (input closed)") from exc


def _no_input(ctx: typer.Context) -> bool:
    return bool((ctx.obj or {}).get("no_input", False))


def _mask(token: str) -> str:
    if len(token) <= 8:
        return "****"
    return f"{token[:4]}****"


@contextmanager
def _cancel_on_interrupt(token: CancelToken) -> Iterator[None]:
    """Turn Ctrl-C into a cancellation of *token* for the duration of the block."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        token.cancel("interrupted")

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _settings(
    credentials_file: Optional[Path] = None,
    timeout: Optional[float] = None,
    no_browser: bool = False,
):
    from svclogin.config import resolve_settings
    from svclogin.exceptions import ConfigError

    try:
        return resolve_settings(
            cli_credentials_file=str(credentials_file) if credentials_file else None,
            cli_authorization_timeout=timeout,
            cli_no_browser=no_browser,
        )
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=EXIT_GENERIC_FAILURE) from None


def login_command(
    ctx: typer.Context,
    hostname: Optional[str] = typer.Argument(
        None, help="Host to log in to. Defaults to app.terraform.io."
    ),
    into_file: Optional[Path] = typer.Option(
        None,
        "--into-file",
        help="Credentials file to update instead of the default "
        "(<config dir>/credentials.toml). An existing file must be valid TOML.",
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", min=1, help="Seconds to wait for authorization."
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the login URL instead of opening a browser."
    ),
) -> None:
    """Obtain and save credentials for a remote host.

    Retrieves an authentication token for the given hostname, if it
    supports automatic login, and saves it in a credentials file in your
    config directory.

    Example::

        svclogin login tfe.example.com
    """
    from svclogin.auth import create_default_acquirer
    from svclogin.config import credentials_path
    from svclogin.discovery import ServiceDiscoverer
    from svclogin.login import LoginOrchestrator

    settings = _settings(into_file, timeout, no_browser)
    path = credentials_path(settings)
    debug(f"Using credentials file {path}")
    prompt = None if _no_input(ctx) else _prompt
    orchestrator = LoginOrchestrator(
        ServiceDiscoverer(timeout=settings.discovery_timeout),
        create_default_acquirer(settings, prompt=prompt),
        default_path=path,
        default_host=settings.default_host,
    )

    token = CancelToken()
    with _cancel_on_interrupt(token):
        outcome = orchestrator.login(hostname or "", cancel=token)

    if not outcome.ok:
        for diag in outcome.diagnostics:
            diagnostic(diag)
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)

    assert outcome.hostname is not None
    host = outcome.hostname
    label = host.display if host.display == host.comparison else f"{host.display} ({host.comparison})"
    verb = "Updated" if outcome.replaced else "Saved"
    success(f"Success! Logged in to {label}.")
    info(f"{verb} credentials in {outcome.path}")


def logout_command(
    hostname: Optional[str] = typer.Argument(
        None, help="Host to forget. Defaults to app.terraform.io."
    ),
    from_file: Optional[Path] = typer.Option(
        None, "--from-file", help="Credentials file to update instead of the default."
    ),
) -> None:
    """Remove the stored credentials for a host.

    Example::

        svclogin logout tfe.example.com
    """
    from svclogin.auth import CredentialStore
    from svclogin.config import credentials_path
    from svclogin.exceptions import SvcLoginError
    from svclogin.hostname import normalize
    from svclogin.models import Diagnostic

    settings = _settings(from_file)
    path = credentials_path(settings)
    debug(f"Using credentials file {path}")
    try:
        host = normalize(hostname or "", settings.default_host)
        removed = CredentialStore(path).forget(host.comparison)
    except SvcLoginError as exc:
        diagnostic(Diagnostic.from_error("Logout failed", exc))
        raise typer.Exit(code=EXIT_GENERIC_FAILURE) from None

    if not removed:
        warning(f"No credentials for {host.display} are stored in {path}.")
        return
    success(f"Removed credentials for {host.display} from {path}.")


def hosts_command(
    file: Optional[Path] = typer.Option(
        None, "--file", help="Credentials file to read instead of the default."
    ),
) -> None:
    """List hosts that have stored credentials.

    Example::

        svclogin hosts
        svclogin --json hosts
    """
    from svclogin.auth import CredentialStore
    from svclogin.config import credentials_path
    from svclogin.exceptions import SvcLoginError

    settings = _settings(file)
    path = credentials_path(settings)
    debug(f"Using credentials file {path}")
    try:
        entries = CredentialStore(path).load().entries()
    except SvcLoginError as exc:
        error(str(exc))
        raise typer.Exit(code=EXIT_GENERIC_FAILURE) from None

    if not entries:
        info(f"No credentials stored in {path}.")
        suggest("Log in: svclogin login <hostname>")
        return

    rows = [
        [host, _mask(cred.token), "yes" if cred.refresh_token else "no"]
        for host, cred in entries.items()
    ]
    print_table(["Host", "Token", "Refresh"], rows, title=str(path))
