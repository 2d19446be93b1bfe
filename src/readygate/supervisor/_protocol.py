"""Protocol definitions for the supervisor.

This module defines the interface that decouples the log fan-out from
where mirrored output ends up:
- LineSink: Protocol for consuming mirrored child output lines
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class LineSink(Protocol):
    """Protocol for consuming mirrored child stdout.

    Lines arrive in the order the child wrote them, as raw bytes including
    their trailing newline (the last line of a stream may lack one).
    """

    async def write(self, line: bytes) -> None:
        """Write one line of child output.

        Args:
            line: The raw line, including its newline if it had one.
        """
        ...

    async def flush(self) -> None:
        """Flush any buffered output."""
        ...
