"""Unit tests for scoped background tasks."""

import anyio
import pytest

from readygate.exceptions import TaskJoinError
from readygate.utils import scoped_task

pytestmark = pytest.mark.anyio


async def add(left: int, right: int) -> int:
    await anyio.sleep(0.01)
    return left + right


async def fail() -> None:
    await anyio.sleep(0)
    msg = "boom"
    raise ValueError(msg)


class TestScopedTask:
    async def test_wait_returns_result(self) -> None:
        async with scoped_task(add, 2, 3, name="adder") as task:
            assert await task.wait() == 5
            assert task.done
            assert task.name == "adder"

    async def test_runs_concurrently_with_owner(self) -> None:
        started = anyio.Event()

        async def work() -> None:
            started.set()
            await anyio.sleep_forever()

        async with scoped_task(work) as task:
            with anyio.fail_after(1):
                await started.wait()
            assert not task.done

    async def test_leaving_block_cancels_work(self) -> None:
        finished = False

        async def work() -> None:
            nonlocal finished
            await anyio.sleep(10)
            finished = True

        start = anyio.current_time()
        async with scoped_task(work) as task:
            pass

        assert task.done
        assert not finished
        assert anyio.current_time() - start < 1

    async def test_exception_in_block_cancels_work_and_propagates(self) -> None:
        cancelled = anyio.Event()

        async def work() -> None:
            try:
                await anyio.sleep_forever()
            finally:
                cancelled.set()

        with pytest.raises(KeyError):
            async with scoped_task(work):
                await anyio.sleep(0.01)
                raise KeyError("owner failed")

        assert cancelled.is_set()

    async def test_exception_group_from_block_is_not_unwrapped(self) -> None:
        raised = ExceptionGroup("startup failed", [KeyError("inner")])

        with pytest.raises(ExceptionGroup) as exc_info:
            async with scoped_task(anyio.sleep_forever):
                raise raised

        assert exc_info.value is raised
        assert exc_info.group_contains(KeyError, depth=1)

    async def test_failure_surfaces_through_wait(self) -> None:
        async with scoped_task(fail, name="failing") as task:
            with pytest.raises(TaskJoinError, match="failing") as exc_info:
                await task.wait()

        assert not exc_info.value.cancelled
        assert isinstance(exc_info.value.__cause__, ValueError)

    async def test_failure_does_not_escape_block(self) -> None:
        async with scoped_task(fail) as task:
            await anyio.sleep(0.05)
            assert task.done

    async def test_wait_after_cancel_reports_cancellation(self) -> None:
        async with scoped_task(anyio.sleep_forever, name="sleeper") as task:
            task.cancel()
            with pytest.raises(TaskJoinError) as exc_info:
                await task.wait()

        assert exc_info.value.cancelled
        assert exc_info.value.name == "sleeper"

    async def test_outer_cancellation_cancels_work(self) -> None:
        cancelled = anyio.Event()

        async def work() -> None:
            try:
                await anyio.sleep_forever()
            finally:
                cancelled.set()

        with anyio.move_on_after(0.05):
            async with scoped_task(work):
                await anyio.sleep_forever()

        assert cancelled.is_set()
