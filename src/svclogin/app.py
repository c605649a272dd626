"""Command-line entry point.

``svclogin login [HOST]`` discovers the host's login service, runs the
negotiated OAuth handshake and records the token in the local credentials
file.  ``logout`` and ``hosts`` manage that file.

:func:`main` is what the ``svclogin`` console script runs.  Errors the
package knows about end the process with their own exit code; anything else
leaves a traceback under ``<data dir>/logs`` and exits 1.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any

import typer

from svclogin import __version__
from svclogin.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED


app = typer.Typer(
    name="svclogin",
    help="Obtain and save credentials for remote service hosts.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _show_version(value: bool) -> None:
    if not value:
        return
    typer.echo(f"svclogin {__version__}")
    raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", is_eager=True, callback=_show_version,
        help="Print the svclogin version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="Emit listings as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Emit listings as tab-separated text."),
    no_color: bool = typer.Option(False, "--no-color", help="Never use colour or styling."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only report warnings and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log HTTP exchanges and error causes."),
    no_input: bool = typer.Option(
        False, "--no-input", help="Never prompt; grants that need a prompt are skipped."
    ),
) -> None:
    """Install output and logging for this run before the command executes."""
    from svclogin.output import OutputFormat, OutputManager, configure_logging, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat.AUTO

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    configure_logging(output)

    ctx.ensure_object(dict)
    ctx.obj.update(no_input=no_input, verbose=verbose)


def register_commands(target: typer.Typer) -> typer.Typer:
    """Add ``login``, ``logout`` and ``hosts`` to *target*; repeat calls are no-ops."""
    from svclogin.commands.login import hosts_command, login_command, logout_command

    if not target.registered_commands:
        for name, func in (
            ("login", login_command),
            ("logout", logout_command),
            ("hosts", hosts_command),
        ):
            target.command(name)(func)
    return target


def _exit_interrupted() -> None:
    sys.stderr.write("\nInterrupted.\n")
    sys.exit(EXIT_INTERRUPTED)


def _install_sigint_exit() -> None:
    # login swaps in its own handler while a handshake is running
    def _on_sigint(signum: int, frame: Any) -> None:  # noqa: ANN401
        _exit_interrupted()

    signal.signal(signal.SIGINT, _on_sigint)


def _write_crash_log(exc: Exception) -> Path:
    """Save the active traceback and the invocation; return the file written."""
    from svclogin.config import get_data_dir

    target = get_data_dir() / "logs"
    target.mkdir(parents=True, exist_ok=True)
    path = target / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    path.write_text(
        f"svclogin {__version__}\nargv: {sys.argv!r}\n\n{traceback.format_exc()}",
        encoding="utf-8",
    )
    return path


def main() -> None:
    from svclogin.exceptions import SvcLoginError
    from svclogin.output import error

    _install_sigint_exit()
    try:
        register_commands(app)
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        _exit_interrupted()
    except SvcLoginError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        crash_log = _write_crash_log(exc)
        error(f"svclogin hit an unexpected problem; details were saved to {crash_log}")
        sys.exit(EXIT_GENERIC_FAILURE)
