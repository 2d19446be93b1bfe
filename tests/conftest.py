"""Shared test fixtures for readygate tests."""

import sys
from collections.abc import Callable

import pytest
from rich.console import Console

from readygate.rules import parse_rules
from readygate.supervisor import GateConfig

PYTHON = sys.executable


class CollectingSink:
    """LineSink that keeps mirrored lines in memory."""

    def __init__(self) -> None:
        self.lines: list[bytes] = []
        self.flushes = 0

    async def write(self, line: bytes) -> None:
        self.lines.append(line)

    async def flush(self) -> None:
        self.flushes += 1

    @property
    def output(self) -> bytes:
        return b"".join(self.lines)


def python_command(source: str) -> tuple[str, ...]:
    """Return a command that runs ``source`` with the test interpreter, unbuffered."""
    return (PYTHON, "-u", "-c", source)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def console() -> Console:
    return Console(
        width=100,
        force_terminal=True,
        highlight=False,
        color_system=None,
        legacy_windows=False,
    )


@pytest.fixture
def sink() -> CollectingSink:
    return CollectingSink()


ScriptCommand = Callable[[str], tuple[str, ...]]


@pytest.fixture
def script() -> ScriptCommand:
    """Return the helper that turns Python source into a command line."""
    return python_command


GateConfigFactory = Callable[..., GateConfig]


@pytest.fixture
def make_config() -> GateConfigFactory:
    """Return a factory for GateConfig from a script and a rule expression."""

    def _make(source: str, rules: str, **kwargs: object) -> GateConfig:
        return GateConfig(
            command=python_command(source),
            rules=parse_rules(rules),
            **kwargs,  # pyright: ignore[reportArgumentType]
        )

    return _make
