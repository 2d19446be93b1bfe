"""Single-producer, multi-consumer broadcast with lag detection.

Every receiver keeps its own cursor into a bounded ring of recent items.
The sender never waits for receivers: once the ring is full the oldest
item is dropped, and any receiver whose cursor pointed at a dropped item
is told how many items it missed on its next ``receive()``.
"""

from __future__ import annotations

from collections import deque
from typing import Generic, Self, TypeVar, final

import anyio
from anyio.lowlevel import checkpoint

__all__ = ["Broadcast", "BroadcastLagged", "BroadcastReceiver"]

T = TypeVar("T")

DEFAULT_CAPACITY = 100


class BroadcastLagged(Exception):  # noqa: N818
    """Raised by ``receive()`` when the receiver was overtaken by the sender.

    The receiver has already been moved to the oldest retained item, so the
    next ``receive()`` continues from there.

    Attributes:
        skipped: Number of items the receiver will never see.
    """

    def __init__(self, skipped: int) -> None:
        super().__init__(f"receiver lagged behind by {skipped} items")
        self.skipped: int = skipped


@final
class Broadcast(Generic[T]):
    """Bounded broadcast channel.

    Items sent after a receiver subscribes are delivered to it in order.
    Closing the broadcast lets receivers drain what is buffered and then
    raises ``anyio.EndOfStream``.
    """

    __slots__ = ("_buffer", "_capacity", "_closed", "_next_seq", "_receivers", "_wakeup")

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            msg = "broadcast capacity must be at least 1"
            raise ValueError(msg)
        self._capacity = capacity
        self._buffer: deque[T] = deque(maxlen=capacity)
        self._next_seq = 0
        self._closed = False
        self._receivers = 0
        self._wakeup = anyio.Event()

    @property
    def capacity(self) -> int:
        """Return the number of items retained for slow receivers."""
        return self._capacity

    @property
    def receiver_count(self) -> int:
        """Return the number of open receivers."""
        return self._receivers

    @property
    def closed(self) -> bool:
        """Return True once the sender has closed the broadcast."""
        return self._closed

    def subscribe(self) -> BroadcastReceiver[T]:
        """Create a receiver that sees every item sent from now on."""
        self._receivers += 1
        return BroadcastReceiver(self, self._next_seq)

    def send(self, item: T) -> int:
        """Publish an item to all receivers without waiting.

        Args:
            item: The item to publish.

        Returns:
            The number of receivers open at the time of sending.

        Raises:
            anyio.ClosedResourceError: If the broadcast was closed.
        """
        if self._closed:
            raise anyio.ClosedResourceError
        self._buffer.append(item)
        self._next_seq += 1
        self._notify()
        return self._receivers

    def close(self) -> None:
        """Close the sending side. Idempotent."""
        if not self._closed:
            self._closed = True
            self._notify()

    def _notify(self) -> None:
        self._wakeup.set()
        self._wakeup = anyio.Event()

    def _oldest_seq(self) -> int:
        return self._next_seq - len(self._buffer)

    def _release(self) -> None:
        self._receivers -= 1


@final
class BroadcastReceiver(Generic[T]):
    """One consumer's view of a Broadcast.

    Use as a context manager to unsubscribe when done.
    """

    __slots__ = ("_broadcast", "_closed", "_cursor")

    def __init__(self, broadcast: Broadcast[T], cursor: int) -> None:
        self._broadcast = broadcast
        self._cursor = cursor
        self._closed = False

    async def receive(self) -> T:
        """Wait for and return the next item.

        Raises:
            BroadcastLagged: If items were dropped before this receiver saw them.
            anyio.EndOfStream: If the broadcast is closed and fully consumed.
            anyio.ClosedResourceError: If this receiver was closed.
        """
        await checkpoint()
        broadcast = self._broadcast
        while True:
            if self._closed:
                raise anyio.ClosedResourceError

            oldest = broadcast._oldest_seq()  # noqa: SLF001
            if self._cursor < oldest:
                skipped = oldest - self._cursor
                self._cursor = oldest
                raise BroadcastLagged(skipped)

            if self._cursor < broadcast._next_seq:  # noqa: SLF001
                item = broadcast._buffer[self._cursor - oldest]  # noqa: SLF001
                self._cursor += 1
                return item

            if broadcast.closed:
                raise anyio.EndOfStream

            await broadcast._wakeup.wait()  # noqa: SLF001

    def close(self) -> None:
        """Unsubscribe from the broadcast. Idempotent."""
        if not self._closed:
            self._closed = True
            self._broadcast._release()  # noqa: SLF001

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
