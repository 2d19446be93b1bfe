"""Retry loop around supervised attempts.

This module provides the Supervisor class that relaunches the command
until it has failed to become ready too many times in a row, and the pure
counter functions that drive that decision.
"""

from __future__ import annotations

import signal
from typing import TYPE_CHECKING, final

import anyio
import structlog

from ._attempt import AttemptRunner
from ._models import AttemptRecord, OutcomeKind, SupervisorResult
from ._output import StdoutSink

if TYPE_CHECKING:
    import httpx

    from ._models import GateConfig, SupervisedOutcome
    from ._protocol import LineSink

__all__ = ["Supervisor", "next_attempt_count", "retries_exhausted"]

logger = structlog.get_logger(__name__)


def _get_timestamp() -> str:
    """Get current timestamp in ISO 8601 format."""
    import pendulum  # noqa: PLC0415

    return pendulum.now("UTC").to_iso8601_string()


def next_attempt_count(attempts: int, outcome: SupervisedOutcome) -> int:
    """Return the attempt counter after an attempt ended with ``outcome``.

    A child that became ready and later exited resets the counter; every
    other outcome adds one.
    """
    if outcome.kind is OutcomeKind.EXITED_WHILE_READY:
        return 0
    return attempts + 1


def retries_exhausted(attempts: int, retries: int | None) -> bool:
    """Return True if the retry ceiling has been reached.

    Args:
        attempts: Current attempt counter.
        retries: Retry ceiling, or None for no limit.
    """
    return retries is not None and attempts >= retries


@final
class Supervisor:
    """Launches the command repeatedly until the retry ceiling is reached.

    Without a ceiling the command is relaunched forever, or until SIGINT or
    SIGTERM arrives. A signal cancels the running attempt, which kills the
    child, and ends the loop.
    """

    __slots__ = (
        "_attempts",
        "_client",
        "_config",
        "_handle_signals",
        "_last",
        "_launches",
        "_signal",
        "_sink",
    )

    def __init__(
        self,
        config: GateConfig,
        client: httpx.AsyncClient,
        sink: LineSink | None = None,
        *,
        handle_signals: bool = True,
    ) -> None:
        """Initialize the supervisor.

        Args:
            config: Supervisor configuration.
            client: HTTP client for HTTP and HTTPS probes.
            sink: Destination for mirrored child stdout. Uses StdoutSink if None.
            handle_signals: Whether to stop on SIGINT and SIGTERM.
        """
        self._config = config
        self._client = client
        self._sink: LineSink = sink or StdoutSink()
        self._handle_signals = handle_signals
        self._attempts = 0
        self._launches = 0
        self._last: AttemptRecord | None = None
        self._signal: signal.Signals | None = None

    async def _run_attempt(self, number: int) -> AttemptRecord:
        runner = AttemptRunner(self._config, self._client, self._sink, number=number)
        started_at = _get_timestamp()
        started = anyio.current_time()

        outcome = await runner.run()

        record = AttemptRecord(
            number=number,
            outcome=outcome,
            pid=runner.pid,
            started_at=started_at,
            finished_at=_get_timestamp(),
            elapsed=anyio.current_time() - started,
        )
        logger.info(
            "attempt finished",
            attempt=record.number,
            outcome=str(outcome.kind),
            exit_code=outcome.exit_code,
            pid=record.pid,
            started_at=record.started_at,
            finished_at=record.finished_at,
            elapsed=round(record.elapsed, 3),
        )
        return record

    async def _retry_loop(self) -> None:
        retries = self._config.retries
        while True:
            self._launches += 1
            self._last = await self._run_attempt(self._launches)
            self._attempts = next_attempt_count(self._attempts, self._last.outcome)

            if retries_exhausted(self._attempts, retries):
                if self._last.outcome.counts_as_failure:
                    logger.error("command failed to start", attempts=self._attempts)
                else:
                    logger.info("command ran to completion", attempts=self._attempts)
                return

            logger.info("relaunching command", attempts=self._attempts, retries=retries)

    async def _watch_signals(self, scope: anyio.CancelScope) -> None:
        with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
            async for signum in signals:
                self._signal = signal.Signals(signum)
                logger.warning("received signal, stopping", signal=self._signal.name)
                scope.cancel()
                return

    async def run(self) -> SupervisorResult:
        """Run attempts until the retry ceiling is reached or a signal arrives.

        Returns:
            The final counter, the last attempt record and any signal received.

        Raises:
            LogChannelLagError: If a log-matching probe fell behind.
            TaskJoinError: If the log fan-out failed.
        """
        async with anyio.create_task_group() as tg:
            if self._handle_signals:
                tg.start_soon(self._watch_signals, tg.cancel_scope)
            await self._retry_loop()
            tg.cancel_scope.cancel()

        return SupervisorResult(
            last=self._last,
            attempts=self._attempts,
            launches=self._launches,
            signal=self._signal,
        )
