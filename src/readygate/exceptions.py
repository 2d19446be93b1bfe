"""readygate exceptions."""


class ReadyGateError(Exception):
    """Base exception for readygate errors."""


# =============================================================================
# Grammar Exceptions
# =============================================================================


class GrammarError(ReadyGateError, ValueError):
    """Raised when a duration literal or rule expression is malformed.

    Attributes:
        text: The full source text that was being parsed.
        position: Zero-based offset of the first invalid token.
        expected: Description of what the parser expected at ``position``.
    """

    def __init__(
        self,
        message: str,
        *,
        text: str,
        position: int,
        expected: str | None = None,
    ) -> None:
        """Initialize with error message and source location.

        Args:
            message: Human-readable error message.
            text: The full source text that was being parsed.
            position: Zero-based offset of the first invalid token.
            expected: Description of what was expected at the position.
        """
        super().__init__(message)
        self.text: str = text
        self.position: int = position
        self.expected: str | None = expected

    def render(self) -> str:
        """Render the error with the source text and a caret under the position.

        Returns:
            A multi-line string suitable for terminal output.
        """
        caret = " " * self.position + "^"
        return f"{self}\n  {self.text}\n  {caret}"


class LogFilterError(ReadyGateError, ValueError):
    """Raised when a log filter directive cannot be parsed."""

    def __init__(self, message: str, *, directive: str) -> None:
        """Initialize with error message and the offending directive."""
        super().__init__(message)
        self.directive: str = directive


# =============================================================================
# Supervisor Exceptions
# =============================================================================


class SpawnError(ReadyGateError):
    """Raised when the supervised command cannot be started.

    Attributes:
        command: The command line that failed to spawn.
        cause: The underlying OS error.
    """

    def __init__(
        self,
        message: str,
        *,
        command: tuple[str, ...],
        cause: OSError | None = None,
    ) -> None:
        """Initialize with error message and spawn context.

        Args:
            message: Human-readable error message.
            command: The command line that failed to spawn.
            cause: The underlying OS error.
        """
        super().__init__(message)
        self.command: tuple[str, ...] = command
        self.cause: OSError | None = cause


class ProbeTransportError(ReadyGateError):
    """Raised inside a network probe when a connection attempt fails.

    Never escapes the probe; it only drives the probe's retry loop.
    """

    def __init__(self, message: str, *, port: int, cause: Exception) -> None:
        """Initialize with error message and dial context."""
        super().__init__(message)
        self.port: int = port
        self.cause: Exception = cause


class LogChannelLagError(ReadyGateError):
    """Raised when a log-matching probe falls behind the log broadcast.

    Attributes:
        skipped: Number of log lines the probe never saw.
    """

    def __init__(self, message: str, *, skipped: int) -> None:
        """Initialize with error message and the number of skipped lines."""
        super().__init__(message)
        self.skipped: int = skipped


class TaskJoinError(ReadyGateError):
    """Raised when awaiting a scoped task that failed or was cancelled.

    Attributes:
        name: Name of the task, if it was given one.
        cancelled: True if the task was cancelled before finishing.
    """

    def __init__(
        self,
        message: str,
        *,
        name: str | None = None,
        cancelled: bool = False,
    ) -> None:
        """Initialize with error message and task context."""
        super().__init__(message)
        self.name: str | None = name
        self.cancelled: bool = cancelled


class HttpClientError(ReadyGateError):
    """Raised when the HTTP client used by readiness probes cannot be built."""
