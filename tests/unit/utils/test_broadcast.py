"""Unit tests for the broadcast channel."""

import anyio
import pytest

from readygate.utils import Broadcast, BroadcastLagged

pytestmark = pytest.mark.anyio


class TestBroadcast:
    async def test_every_receiver_sees_every_item_in_order(self) -> None:
        broadcast: Broadcast[int] = Broadcast()
        first = broadcast.subscribe()
        second = broadcast.subscribe()

        for item in range(3):
            assert broadcast.send(item) == 2

        assert [await first.receive() for _ in range(3)] == [0, 1, 2]
        assert [await second.receive() for _ in range(3)] == [0, 1, 2]

    async def test_receiver_only_sees_items_sent_after_subscribing(self) -> None:
        broadcast: Broadcast[str] = Broadcast()
        _ = broadcast.send("early")
        receiver = broadcast.subscribe()
        _ = broadcast.send("late")

        assert await receiver.receive() == "late"

    async def test_send_without_receivers_is_allowed(self) -> None:
        broadcast: Broadcast[int] = Broadcast()

        assert broadcast.send(1) == 0

    async def test_receive_waits_for_next_item(self) -> None:
        broadcast: Broadcast[int] = Broadcast()
        receiver = broadcast.subscribe()
        received: list[int] = []

        async def consume() -> None:
            received.append(await receiver.receive())

        async with anyio.create_task_group() as tg:
            tg.start_soon(consume)
            await anyio.sleep(0.05)
            assert received == []
            _ = broadcast.send(42)

        assert received == [42]

    async def test_slow_receiver_is_told_how_much_it_missed(self) -> None:
        broadcast: Broadcast[int] = Broadcast(capacity=3)
        receiver = broadcast.subscribe()

        for item in range(10):
            _ = broadcast.send(item)

        with pytest.raises(BroadcastLagged) as exc_info:
            _ = await receiver.receive()

        assert exc_info.value.skipped == 7
        # The receiver resumes from the oldest retained item
        assert [await receiver.receive() for _ in range(3)] == [7, 8, 9]

    async def test_lag_is_per_receiver(self) -> None:
        broadcast: Broadcast[int] = Broadcast(capacity=2)
        fast = broadcast.subscribe()
        slow = broadcast.subscribe()

        for item in range(4):
            _ = broadcast.send(item)
            assert await fast.receive() == item

        with pytest.raises(BroadcastLagged):
            _ = await slow.receive()

    async def test_close_drains_then_ends(self) -> None:
        broadcast: Broadcast[int] = Broadcast()
        receiver = broadcast.subscribe()
        _ = broadcast.send(1)
        broadcast.close()
        broadcast.close()

        assert await receiver.receive() == 1
        with pytest.raises(anyio.EndOfStream):
            _ = await receiver.receive()

    async def test_close_wakes_waiting_receivers(self) -> None:
        broadcast: Broadcast[int] = Broadcast()
        receiver = broadcast.subscribe()
        ended = anyio.Event()

        async def consume() -> None:
            with pytest.raises(anyio.EndOfStream):
                _ = await receiver.receive()
            ended.set()

        async with anyio.create_task_group() as tg:
            tg.start_soon(consume)
            await anyio.sleep(0.01)
            broadcast.close()

        assert ended.is_set()

    async def test_send_after_close_fails(self) -> None:
        broadcast: Broadcast[int] = Broadcast()
        broadcast.close()

        with pytest.raises(anyio.ClosedResourceError):
            _ = broadcast.send(1)

    async def test_receiver_context_manager_unsubscribes(self) -> None:
        broadcast: Broadcast[int] = Broadcast()

        with broadcast.subscribe() as receiver:
            assert broadcast.receiver_count == 1
        assert broadcast.receiver_count == 0

        receiver.close()
        assert broadcast.receiver_count == 0
        with pytest.raises(anyio.ClosedResourceError):
            _ = await receiver.receive()

    async def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="at least 1"):
            _ = Broadcast(capacity=0)
