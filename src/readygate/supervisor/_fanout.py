"""Log fan-out: split child stdout into lines and broadcast them.

One reader turns raw chunks into lines and publishes them on a Broadcast.
A mirror, subscribed before the reader starts, relays every line to a
LineSink. Readiness probes subscribe to the same broadcast independently.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import anyio
import structlog

from readygate.utils import BroadcastLagged

if TYPE_CHECKING:
    from anyio.abc import ByteReceiveStream

    from readygate.utils import Broadcast, BroadcastReceiver

    from ._protocol import LineSink

__all__ = ["pump_lines"]

logger = structlog.get_logger(__name__)


async def _read_lines(stream: ByteReceiveStream, broadcast: Broadcast[bytes]) -> None:
    pending = bytearray()
    try:
        async for chunk in stream:
            pending.extend(chunk)
            start = 0
            while (end := pending.find(b"\n", start)) != -1:
                _ = broadcast.send(bytes(pending[start : end + 1]))
                start = end + 1
            del pending[:start]
        if pending:
            # Final line without a newline
            _ = broadcast.send(bytes(pending))
    except (anyio.ClosedResourceError, anyio.BrokenResourceError):
        logger.debug("child stdout closed while reading")
    finally:
        broadcast.close()


async def _mirror(lines: BroadcastReceiver[bytes], sink: LineSink) -> None:
    with lines:
        while True:
            try:
                line = await lines.receive()
            except BroadcastLagged as lag:
                logger.warning("log mirror lagged", missed=lag.skipped)
                continue
            except anyio.EndOfStream:
                break
            await sink.write(line)
    await sink.flush()


async def pump_lines(
    stream: ByteReceiveStream,
    broadcast: Broadcast[bytes],
    sink: LineSink,
) -> None:
    """Broadcast lines from ``stream`` and mirror them to ``sink``.

    Returns once the stream reaches end of file and the mirror has written
    and flushed every line it received. The broadcast is closed when the
    stream ends, so subscribers see ``anyio.EndOfStream`` after draining.

    Args:
        stream: Child stdout.
        broadcast: Channel to publish lines on.
        sink: Destination for mirrored output.
    """
    mirror = broadcast.subscribe()
    async with anyio.create_task_group() as tg:
        tg.start_soon(_mirror, mirror, sink, name="log mirror")
        tg.start_soon(_read_lines, stream, broadcast, name="log reader")
