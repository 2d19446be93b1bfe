"""Data models for the supervisor.

This module defines the core data types for supervised attempts:
- AttemptState: States an attempt moves through
- OutcomeKind: Terminal outcomes of an attempt
- SupervisedOutcome: Immutable terminal result of one attempt
- GateConfig: Supervisor configuration
- AttemptRecord: Log record of one finished attempt
- SupervisorResult: Final result of the retry loop
"""

from dataclasses import dataclass
from datetime import timedelta  # noqa: TC003 - Used in runtime type annotations
from enum import StrEnum
from signal import Signals  # noqa: TC003 - Used in runtime type annotations

from readygate.exceptions import SpawnError  # noqa: TC001 - Used in runtime type annotations
from readygate.rules import OrGroup  # noqa: TC001 - Used in runtime type annotations

DEFAULT_LOG_CAPACITY = 100


class AttemptState(StrEnum):
    """States of one supervised attempt.

    - SPAWNING: Building probes and launching the command
    - STARTING: Racing readiness rules against exit and timeout
    - READY: Rules satisfied, waiting for the child to exit
    - EXITED: Child exited after becoming ready
    - EXITED_EARLY: Child exited before becoming ready
    - TIMED_OUT: Child did not become ready in time and was killed
    - FAILED_TO_SPAWN: Command could not be launched
    """

    SPAWNING = "spawning"
    STARTING = "starting"
    READY = "ready"
    EXITED = "exited"
    EXITED_EARLY = "exited_early"
    TIMED_OUT = "timed_out"
    FAILED_TO_SPAWN = "failed_to_spawn"


class OutcomeKind(StrEnum):
    """Terminal outcomes of one supervised attempt."""

    FAILED_TO_SPAWN = "failed_to_spawn"
    EXITED_WHILE_STARTING = "exited_while_starting"
    TIMED_OUT_WHILE_STARTING = "timed_out_while_starting"
    EXITED_WHILE_READY = "exited_while_ready"


@dataclass(frozen=True, slots=True)
class SupervisedOutcome:
    """Terminal result of one supervised attempt.

    Attributes:
        kind: Which terminal state the attempt reached.
        exit_code: The child's exit code, where the child ran and was reaped.
        error: The spawn failure for FAILED_TO_SPAWN outcomes.
    """

    kind: OutcomeKind
    exit_code: int | None = None
    error: SpawnError | None = None

    @property
    def counts_as_failure(self) -> bool:
        """Return True if this outcome counts against the retry ceiling."""
        return self.kind is not OutcomeKind.EXITED_WHILE_READY

    def __str__(self) -> str:
        if self.error is not None:
            return f"{self.kind}: {self.error}"
        if self.exit_code is not None:
            return f"{self.kind} (exit code {self.exit_code})"
        return str(self.kind)


@dataclass(frozen=True, slots=True)
class GateConfig:
    """Configuration for the supervisor.

    Attributes:
        command: Command and arguments to execute.
        rules: Readiness expression the child must satisfy.
        ready_timeout: Time allowed to become ready, or None to wait forever.
        retries: Failed attempts allowed in a row, or None for no limit.
        log_capacity: Lines retained for slow log subscribers.
    """

    command: tuple[str, ...]
    rules: OrGroup
    ready_timeout: timedelta | None = None
    retries: int | None = None
    log_capacity: int = DEFAULT_LOG_CAPACITY

    def __post_init__(self) -> None:
        if not self.command:
            msg = "command must not be empty"
            raise ValueError(msg)
        if self.retries is not None and self.retries < 0:
            msg = "retries must not be negative"
            raise ValueError(msg)
        if self.log_capacity < 1:
            msg = "log_capacity must be at least 1"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class AttemptRecord:
    """Record of one finished attempt.

    Attributes:
        number: One-based launch number since the supervisor started.
        outcome: Terminal outcome of the attempt.
        pid: Process ID of the child, if it was spawned.
        started_at: ISO 8601 timestamp of the spawn.
        finished_at: ISO 8601 timestamp of the terminal outcome.
        elapsed: Seconds between start and finish.
    """

    number: int
    outcome: SupervisedOutcome
    pid: int | None
    started_at: str
    finished_at: str
    elapsed: float


@dataclass(frozen=True, slots=True)
class SupervisorResult:
    """Final result of the retry loop.

    Attributes:
        last: Record of the most recent attempt, if one finished.
        attempts: Attempt counter when the loop ended.
        launches: Total number of attempts made.
        signal: The signal that interrupted the loop, if any.
    """

    last: AttemptRecord | None
    attempts: int
    launches: int
    signal: Signals | None = None

    @property
    def succeeded(self) -> bool:
        """Return True if the loop ended after a healthy run."""
        return (
            self.signal is None
            and self.last is not None
            and not self.last.outcome.counts_as_failure
        )
