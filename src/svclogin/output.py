"""Terminal output for svclogin.

Two streams, two purposes:

* **stdout** carries data only: the ``hosts`` listing, in Rich, plain
  (tab-separated) or JSON form.
* **stderr** carries everything addressed to the person at the terminal:
  handshake instructions, progress, success notes, warnings, errors, and
  the :class:`~svclogin.models.Diagnostic` records a failed login produces.

Colour follows ``NO_COLOR``, ``TERM=dumb`` and ``--no-color``; when it is
off, messages are written with plain ``print`` so that no markup or
wrapping is applied.

:func:`~svclogin.app.main_callback` builds one :class:`OutputManager` per
invocation and installs it with :func:`set_output`; the rest of the package
uses the module-level helpers (:func:`info`, :func:`warning`,
:func:`diagnostic`, ...).  :func:`configure_logging` sends the
``svclogin`` logger to the same stderr console.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from svclogin.models import Diagnostic, Severity


class OutputFormat(str, Enum):
    """How the ``hosts`` listing is rendered on stdout.

    ``AUTO`` becomes ``RICH`` on an interactive, colour-capable terminal and
    ``PLAIN`` otherwise.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (to anything) or ``TERM`` is ``dumb``."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


class OutputManager:
    """Per-invocation output settings and the consoles that honour them.

    Args:
        format: Rendering of stdout data; ``AUTO`` is resolved immediately.
        no_color: Force plain, unstyled output.
        quiet: Drop informational stderr messages (warnings and errors
            are always shown).
        verbose: Show debug messages and exception causes.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format != OutputFormat.AUTO:
            self._format = format
        elif _is_tty() and not self._no_color:
            self._format = OutputFormat.RICH
        else:
            self._format = OutputFormat.PLAIN

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=self._format == OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    @property
    def stderr_console(self) -> Console:
        """Console bound to stderr; the log handler writes through it too."""
        return self._stderr

    def _say(self, text: str, styled: Optional[str] = None) -> None:
        """Write one message to stderr, styled unless colour is off."""
        if self._no_color:
            print(text, file=sys.stderr, flush=True)
        else:
            self._stderr.print(styled if styled is not None else text)

    # --- stdout ---

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Render rows as JSON records, tab-separated lines, or a Rich table."""
        if self._format == OutputFormat.JSON:
            records = [dict(zip(headers, row)) for row in rows]
            self.print_data(json.dumps(records, indent=2, ensure_ascii=False))
            return
        if self._format == OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
            return
        table = Table(title=title, show_header=True, header_style="bold cyan")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # --- stderr ---

    def info(self, message: str) -> None:
        if not self._quiet:
            self._say(message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._say(message, f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        self._say(f"Warning: {message}", f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        self._say(f"Error: {message}", f"[bold red]Error:[/bold red] {message}")

    def suggest(self, message: str) -> None:
        """Point at a next step, e.g. the command to run after a failure."""
        if not self._quiet:
            self._say(f"→ {message}", f"[dim]→ {message}[/dim]")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._say(f"[debug] {message}", f"[dim]\\[debug] {message}[/dim]")

    def diagnostic(self, diag: Diagnostic) -> None:
        """Print the summary line, a blank line, then the detail."""
        text = f"{diag.summary}\n\n{diag.detail}" if diag.detail else diag.summary
        if diag.severity == Severity.ERROR:
            self.error(text)
        else:
            self.warning(text)
        if diag.cause is not None:
            self.debug(f"caused by {type(diag.cause).__name__}: {diag.cause}")


def configure_logging(output: OutputManager) -> None:
    """Attach a single :class:`~rich.logging.RichHandler` to the package logger.

    DEBUG with ``--verbose``, WARNING otherwise.  Records do not propagate
    to the root logger.
    """
    logger = logging.getLogger("svclogin")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.addHandler(
        RichHandler(
            console=output.stderr_console,
            show_path=False,
            markup=False,
            rich_tracebacks=output.is_verbose,
        )
    )
    logger.setLevel(logging.DEBUG if output.is_verbose else logging.WARNING)
    logger.propagate = False


# --- process-wide instance ---

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating a default one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager (tests call this between cases)."""
    global _output
    _output = None


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def debug(message: str) -> None:
    get_output().debug(message)


def diagnostic(diag: Diagnostic) -> None:
    get_output().diagnostic(diag)
