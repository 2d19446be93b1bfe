import os
import socket
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

INTEGRATION_DIR = Path(__file__).parent


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if item.path.is_relative_to(INTEGRATION_DIR):
            item.add_marker(pytest.mark.integration)


def readygate_command(*args: str) -> list[str]:
    """Return the command line that runs the readygate CLI with ``args``."""
    return [sys.executable, "-m", "readygate", *args]


def cli_env() -> dict[str, str]:
    env = os.environ.copy()
    env.pop("READYGATE_LOG", None)
    return env


@pytest.fixture
def run_readygate() -> Callable[..., subprocess.CompletedProcess[str]]:
    """Run the CLI to completion and capture its output."""

    def _run(*args: str, timeout: float = 30) -> subprocess.CompletedProcess[str]:
        return subprocess.run(  # noqa: S603 - Safe: running our own CLI tool
            readygate_command(*args),
            capture_output=True,
            text=True,
            env=cli_env(),
            check=False,
            timeout=timeout,
        )

    return _run


@pytest.fixture
def free_port() -> int:
    """Return a loopback TCP port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def spawn_readygate() -> Callable[..., subprocess.Popen[str]]:
    """Start the CLI in the background with piped output."""

    def _spawn(*args: str) -> subprocess.Popen[str]:
        return subprocess.Popen(  # noqa: S603 - Safe: running our own CLI tool
            readygate_command(*args),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=cli_env(),
        )

    return _spawn
