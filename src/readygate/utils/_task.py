"""Scoped background tasks.

A scoped task runs concurrently with the code that started it, but never
outlives the ``async with`` block that owns it: leaving the block for any
reason (normal exit, exception, cancellation) cancels the work.

Example:
    >>> async with scoped_task(pump, stream, name="pump") as task:
    ...     await do_other_things()
    ...     result = await task.wait()  # or just leave the block to cancel it
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Generic, TypeVar, final

import anyio

from readygate.exceptions import TaskJoinError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

__all__ = ["ScopedTask", "scoped_task"]

T = TypeVar("T")


@final
class ScopedTask(Generic[T]):
    """Handle to work started by ``scoped_task``.

    Attributes:
        name: Optional name used in logs and errors.
    """

    __slots__ = ("_cancel_scope", "_done", "_error", "_finished", "_result", "name")

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        self._cancel_scope = anyio.CancelScope()
        self._done = anyio.Event()
        self._finished = False
        self._result: T | None = None
        self._error: Exception | None = None

    @property
    def done(self) -> bool:
        """Return True once the work has finished, failed or been cancelled."""
        return self._done.is_set()

    def cancel(self) -> None:
        """Request cancellation of the work. Safe to call at any time."""
        self._cancel_scope.cancel()

    async def wait(self) -> T:
        """Wait for the work to finish and return its result.

        Returns:
            The value returned by the work.

        Raises:
            TaskJoinError: If the work raised or was cancelled.
        """
        await self._done.wait()
        if self._error is not None:
            msg = f"task {self.name or '<unnamed>'} failed: {self._error}"
            raise TaskJoinError(msg, name=self.name) from self._error
        if not self._finished:
            msg = f"task {self.name or '<unnamed>'} was cancelled"
            raise TaskJoinError(msg, name=self.name, cancelled=True)
        return self._result  # type: ignore[return-value]

    async def _run(self, func: Callable[..., Awaitable[T]], *args: object) -> None:
        try:
            with self._cancel_scope:
                try:
                    self._result = await func(*args)
                    self._finished = True
                except Exception as e:  # noqa: BLE001 - surfaced through wait()
                    self._error = e
        finally:
            self._done.set()


@asynccontextmanager
async def scoped_task(
    func: Callable[..., Awaitable[T]],
    *args: object,
    name: str | None = None,
) -> AsyncIterator[ScopedTask[T]]:
    """Run ``func(*args)`` in the background for the duration of the block.

    Args:
        func: Coroutine function to run.
        *args: Positional arguments for ``func``.
        name: Optional task name.

    Yields:
        The ScopedTask handle.
    """
    task: ScopedTask[T] = ScopedTask(name)
    block_error: BaseException | None = None
    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(task._run, func, *args, name=name)  # noqa: SLF001
            try:
                yield task
            except BaseException as e:
                block_error = e
                raise
            finally:
                task.cancel()
    except BaseExceptionGroup as group:
        # The background work never raises into the group. The task group
        # either re-raises the block's exception as is, which may itself be a
        # group, or wraps it alone in a new group; hand back the original.
        if group is not block_error and group.exceptions == (block_error,):
            assert block_error is not None  # noqa: S101
            raise block_error from block_error.__cause__
        raise
