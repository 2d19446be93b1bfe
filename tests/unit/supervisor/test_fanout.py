"""Unit tests for the log fan-out."""

from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

import anyio
import pytest
from anyio.abc import ByteReceiveStream
from anyio.lowlevel import checkpoint
from structlog.testing import capture_logs

from readygate.supervisor import StdoutSink, pump_lines
from readygate.utils import Broadcast

if TYPE_CHECKING:
    from tests.conftest import CollectingSink

pytestmark = pytest.mark.anyio


class ChunkStream(ByteReceiveStream):
    """Byte stream that yields predefined chunks, then ends."""

    def __init__(self, chunks: Iterable[bytes]) -> None:
        self._chunks = list(chunks)

    async def receive(self, max_bytes: int = 65536) -> bytes:
        await checkpoint()
        if not self._chunks:
            raise anyio.EndOfStream
        return self._chunks.pop(0)

    async def aclose(self) -> None:
        self._chunks.clear()


class SlowSink:
    def __init__(self) -> None:
        self.lines: list[bytes] = []
        self.flushed = False

    async def write(self, line: bytes) -> None:
        await anyio.sleep(0.01)
        self.lines.append(line)

    async def flush(self) -> None:
        self.flushed = True


class TestPumpLines:
    async def test_reassembles_lines_across_chunks(self, sink: "CollectingSink") -> None:
        broadcast: Broadcast[bytes] = Broadcast()
        stream = ChunkStream([b"hel", b"lo\nwor", b"ld\n\nsecond", b" half\n"])

        await pump_lines(stream, broadcast, sink)

        assert sink.lines == [b"hello\n", b"world\n", b"\n", b"second half\n"]
        assert sink.flushes == 1
        assert broadcast.closed

    async def test_final_unterminated_line_is_delivered(self, sink: "CollectingSink") -> None:
        broadcast: Broadcast[bytes] = Broadcast()

        await pump_lines(ChunkStream([b"one\ntwo"]), broadcast, sink)

        assert sink.lines == [b"one\n", b"two"]

    async def test_subscribers_see_lines_then_end(self, sink: "CollectingSink") -> None:
        broadcast: Broadcast[bytes] = Broadcast()
        probe_lines = broadcast.subscribe()

        await pump_lines(ChunkStream([b"a\nb\n"]), broadcast, sink)

        assert await probe_lines.receive() == b"a\n"
        assert await probe_lines.receive() == b"b\n"
        with pytest.raises(anyio.EndOfStream):
            _ = await probe_lines.receive()

    async def test_empty_stream(self, sink: "CollectingSink") -> None:
        broadcast: Broadcast[bytes] = Broadcast()

        await pump_lines(ChunkStream([]), broadcast, sink)

        assert sink.lines == []
        assert sink.flushes == 1
        assert broadcast.closed

    async def test_lagging_mirror_warns_and_continues(self) -> None:
        broadcast: Broadcast[bytes] = Broadcast(capacity=2)
        sink = SlowSink()
        chunk = b"".join(f"{index}\n".encode() for index in range(10))

        with capture_logs() as logs:
            await pump_lines(ChunkStream([chunk]), broadcast, sink)

        assert sink.lines == [b"8\n", b"9\n"]
        assert sink.flushed
        lagged = [log for log in logs if log["event"] == "log mirror lagged"]
        assert lagged
        assert lagged[0]["missed"] == 8
        assert lagged[0]["log_level"] == "warning"

    async def test_sink_failure_propagates(self) -> None:
        class BrokenSink:
            async def write(self, line: bytes) -> None:
                raise OSError("disk full")

            async def flush(self) -> None:
                pass

        with pytest.raises(ExceptionGroup) as exc_info:
            await pump_lines(ChunkStream([b"x\n"]), Broadcast(), BrokenSink())

        assert exc_info.group_contains(OSError)


class TestStdoutSink:
    async def test_writes_raw_bytes(self, tmp_path: Path) -> None:
        target = tmp_path / "out.bin"
        with target.open("wb") as stream:
            sink = StdoutSink(stream)
            await sink.write(b"caf\xc3\xa9\n")
            await sink.write(b"\xff partial")
            await sink.flush()

        assert target.read_bytes() == b"caf\xc3\xa9\n\xff partial"
