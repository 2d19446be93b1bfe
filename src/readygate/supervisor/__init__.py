"""Supervisor package: launch a command and gate on its readiness.

Key Components:
    - GateConfig: Configuration for the supervised command
    - AttemptRunner: One spawn-to-outcome cycle
    - Supervisor: Retry loop with signal handling
    - SupervisedOutcome, OutcomeKind: Terminal result of an attempt
    - AttemptRecord, SupervisorResult: What happened, for logs and exit codes
    - LineSink: Protocol for mirrored output consumption
    - StdoutSink: Mirror child output to stdout
    - pump_lines: Split child stdout into broadcast lines

Example:
    >>> from readygate.rules import parse_rules
    >>> from readygate.supervisor import GateConfig, Supervisor
    >>> config = GateConfig(
    ...     command=("python", "-m", "http.server", "8000"),
    ...     rules=parse_rules("http port 8000 ready"),
    ...     retries=3,
    ... )
    >>> async with httpx.AsyncClient() as client:
    ...     result = await Supervisor(config, client).run()
"""

from ._attempt import AttemptRunner
from ._fanout import pump_lines
from ._models import (
    DEFAULT_LOG_CAPACITY,
    AttemptRecord,
    AttemptState,
    GateConfig,
    OutcomeKind,
    SupervisedOutcome,
    SupervisorResult,
)
from ._output import StdoutSink
from ._protocol import LineSink
from ._supervisor import Supervisor, next_attempt_count, retries_exhausted

__all__ = [
    "DEFAULT_LOG_CAPACITY",
    "AttemptRecord",
    "AttemptRunner",
    "AttemptState",
    "GateConfig",
    "LineSink",
    "OutcomeKind",
    "StdoutSink",
    "SupervisedOutcome",
    "Supervisor",
    "SupervisorResult",
    "next_attempt_count",
    "retries_exhausted",
    "pump_lines",
]
