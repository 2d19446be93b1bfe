"""Exit codes and error reporting for the readygate command line."""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING, Never

from rich.markup import escape

if TYPE_CHECKING:
    from rich.console import Console

    from readygate.supervisor import SupervisorResult

__all__ = [
    "ExitCode",
    "exit_code_for",
    "exit_with_error",
    "get_error_console",
]

SIGNAL_EXIT_BASE = 128


class ExitCode(IntEnum):
    """Standard exit codes for the readygate CLI."""

    SUCCESS = 0
    RETRIES_EXHAUSTED = 1
    INVALID_ARGS = 2
    HTTP_CLIENT_ERROR = 3
    LOG_LAG = 4


def exit_code_for(result: SupervisorResult) -> int:
    """Return the process exit code for a finished supervisor run.

    Args:
        result: The supervisor's final result.

    Returns:
        128 plus the signal number when interrupted, otherwise SUCCESS after
        a healthy run and RETRIES_EXHAUSTED when the command kept failing.
    """
    if result.signal is not None:
        return SIGNAL_EXIT_BASE + int(result.signal)
    if result.succeeded:
        return ExitCode.SUCCESS
    return ExitCode.RETRIES_EXHAUSTED


def get_error_console() -> Console:
    """Return a console that writes to stderr."""
    from rich.console import Console  # noqa: PLC0415

    return Console(stderr=True)


def exit_with_error(
    message: str,
    code: ExitCode = ExitCode.INVALID_ARGS,
    *,
    console: Console | None = None,
) -> Never:
    """Report ``message`` on the error console and exit with ``code``.

    Args:
        message: Plain text; Rich markup in it is escaped.
        code: Process exit status.
        console: Console to print to. A stderr console is created if None.

    Raises:
        SystemExit: Always.
    """
    if console is None:
        console = get_error_console()

    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
    raise SystemExit(code)
