"""Line sink implementations for the supervisor.

This module provides concrete implementations of the LineSink protocol.
"""

import sys
from typing import BinaryIO, final

import anyio


@final
class StdoutSink:
    """Line sink that mirrors child output to this process's stdout.

    Writes go through a worker thread so the event loop never blocks on a
    slow terminal or pipe.
    """

    __slots__ = ("_file",)

    def __init__(self, stream: BinaryIO | None = None) -> None:
        """Initialize the sink.

        Args:
            stream: Binary stream to write to. Defaults to ``sys.stdout.buffer``.
        """
        self._file = anyio.wrap_file(stream or sys.stdout.buffer)

    async def write(self, line: bytes) -> None:
        """Write one raw line."""
        _ = await self._file.write(line)

    async def flush(self) -> None:
        """Flush the underlying stream."""
        await self._file.flush()
