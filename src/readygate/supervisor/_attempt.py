"""One supervised attempt: spawn, race readiness, wait for exit.

An attempt moves through these states:

    spawning ──► starting ──► ready ──► exited
        │            ├──► exited_early
        │            └──► timed_out
        └──► failed_to_spawn

While starting, readiness rules race the child's exit and the optional
ready timeout. When several finish in the same scheduling step the rules
win over the exit, and the exit wins over the timeout.
"""

from __future__ import annotations

import subprocess
from contextlib import suppress
from enum import IntEnum
from typing import TYPE_CHECKING, final

import anyio
import structlog

from readygate.exceptions import SpawnError
from readygate.rules import ProbeContext, build_probes
from readygate.utils import Broadcast, scoped_task

from ._fanout import pump_lines
from ._models import AttemptState, OutcomeKind, SupervisedOutcome

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx
    from anyio.abc import Process

    from readygate.rules import OrProbe
    from readygate.utils import ScopedTask

    from ._models import GateConfig
    from ._protocol import LineSink

__all__ = ["AttemptRunner"]

logger = structlog.get_logger(__name__)


class _Startup(IntEnum):
    """Startup race branches, lowest value wins ties."""

    READY = 0
    EXITED = 1
    TIMED_OUT = 2


@final
class AttemptRunner:
    """Runs the supervised command once and reports how it ended.

    The runner owns the child process for the duration of ``run()``; the
    child is killed and reaped on every exit path, including cancellation.

    Attributes:
        number: One-based launch number, used in logs.
        state: Current attempt state.
        pid: Process ID of the child once spawned.
    """

    __slots__ = ("_client", "_config", "_log", "_sink", "number", "pid", "state")

    def __init__(
        self,
        config: GateConfig,
        client: httpx.AsyncClient,
        sink: LineSink,
        *,
        number: int = 1,
    ) -> None:
        """Initialize the runner.

        Args:
            config: Supervisor configuration.
            client: HTTP client for HTTP and HTTPS probes.
            sink: Destination for mirrored child stdout.
            number: One-based launch number.
        """
        self._config = config
        self._client = client
        self._sink = sink
        self._log = logger.bind(attempt=number)
        self.number = number
        self.state = AttemptState.SPAWNING
        self.pid: int | None = None

    def _transition(self, state: AttemptState) -> None:
        self._log.debug("attempt state changed", old=str(self.state), new=str(state))
        self.state = state

    async def run(self) -> SupervisedOutcome:
        """Run one attempt to its terminal outcome.

        Returns:
            The terminal outcome. Spawn failures are reported as a
            FAILED_TO_SPAWN outcome rather than raised.

        Raises:
            LogChannelLagError: If a log-matching probe fell behind.
            TaskJoinError: If the log fan-out failed.
        """
        config = self._config
        broadcast: Broadcast[bytes] = Broadcast(config.log_capacity)
        # Log subscriptions must exist before the child can write anything
        probes = build_probes(config.rules, ProbeContext(self._client, broadcast))

        self._log.info("spawning command", command=list(config.command))
        try:
            process = await anyio.open_process(
                list(config.command),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=None,
            )
        except OSError as e:
            msg = f"failed to spawn {config.command[0]!r}: {e}"
            error = SpawnError(msg, command=config.command, cause=e)
            self._log.error("command failed to spawn", error=str(error))
            self._transition(AttemptState.FAILED_TO_SPAWN)
            return SupervisedOutcome(OutcomeKind.FAILED_TO_SPAWN, error=error)

        self.pid = process.pid
        try:
            assert process.stdout is not None  # noqa: S101 - opened with PIPE
            async with scoped_task(
                pump_lines, process.stdout, broadcast, self._sink, name="log fan-out"
            ) as fanout:
                return await self._supervise(process, probes, fanout)
        finally:
            with anyio.CancelScope(shield=True):
                await self._reap(process)

    async def _supervise(
        self,
        process: Process,
        probes: OrProbe,
        fanout: ScopedTask[None],
    ) -> SupervisedOutcome:
        self._transition(AttemptState.STARTING)
        startup = await self._race_startup(process, probes)

        if startup is _Startup.EXITED:
            exit_code = await process.wait()
            await fanout.wait()
            self._transition(AttemptState.EXITED_EARLY)
            return SupervisedOutcome(OutcomeKind.EXITED_WHILE_STARTING, exit_code=exit_code)

        if startup is _Startup.TIMED_OUT:
            self._log.warning("command did not become ready in time, killing it")
            with suppress(ProcessLookupError):
                process.kill()
            exit_code = await process.wait()
            await fanout.wait()
            self._transition(AttemptState.TIMED_OUT)
            return SupervisedOutcome(OutcomeKind.TIMED_OUT_WHILE_STARTING, exit_code=exit_code)

        self._transition(AttemptState.READY)
        self._log.info("command is ready", pid=process.pid)
        exit_code = await process.wait()
        await fanout.wait()
        self._transition(AttemptState.EXITED)
        return SupervisedOutcome(OutcomeKind.EXITED_WHILE_READY, exit_code=exit_code)

    async def _race_startup(self, process: Process, probes: OrProbe) -> _Startup:
        finished: set[_Startup] = set()
        timeout = self._config.ready_timeout

        async with anyio.create_task_group() as tg:

            async def branch(kind: _Startup, func: Callable[[], Awaitable[object]]) -> None:
                _ = await func()
                finished.add(kind)
                tg.cancel_scope.cancel()

            async def expire() -> None:
                assert timeout is not None  # noqa: S101
                await anyio.sleep(timeout.total_seconds())

            tg.start_soon(branch, _Startup.READY, probes.wait)
            tg.start_soon(branch, _Startup.EXITED, process.wait)
            if timeout is not None:
                tg.start_soon(branch, _Startup.TIMED_OUT, expire)

        return min(finished)

    async def _reap(self, process: Process) -> None:
        if process.returncode is None:
            self._log.debug("killing command", pid=process.pid)
            with suppress(ProcessLookupError):
                process.kill()
        await process.aclose()
