"""Readiness probes.

A probe is the live, single-attempt form of a rule. Each probe's ``wait()``
returns once the rule's condition has been observed and runs until then,
unless it is cancelled. Probes are one-shot: ``wait()`` may only be called
once.

Network probes (TCP and HTTP) retry failed connections at most once per
second using tenacity; transport failures never escape the probe.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias, final

import anyio
import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_never

from readygate.exceptions import LogChannelLagError, ProbeTransportError
from readygate.utils import BroadcastLagged

if TYPE_CHECKING:
    import re
    from datetime import timedelta

    from tenacity import RetryCallState

    from readygate.utils import Broadcast, BroadcastReceiver

    from ._models import Http, Https

__all__ = [
    "AfterProbe",
    "HttpProbe",
    "MatchesProbe",
    "Probe",
    "ProbeContext",
    "TcpProbe",
]

LOOPBACK = "127.0.0.1"

RETRY_INTERVAL = 1.0
"""Minimum seconds between the starts of two connection attempts."""

HTTP_REQUEST_TIMEOUT = 60.0
"""Per-request timeout in seconds for HTTP probes."""

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ProbeContext:
    """Per-attempt resources shared by the probes of one rule tree.

    Attributes:
        client: HTTP client used by HTTP and HTTPS probes.
        log_lines: Broadcast of the child's stdout lines.
    """

    client: httpx.AsyncClient
    log_lines: Broadcast[bytes]


class _OneShot:
    __slots__ = ("_consumed",)

    def __init__(self) -> None:
        self._consumed = False

    def _claim(self) -> None:
        if self._consumed:
            msg = f"{type(self).__name__} has already been waited on"
            raise RuntimeError(msg)
        self._consumed = True


@final
class _AttemptPacer:
    """Tenacity hooks that space attempt starts ``interval`` seconds apart."""

    __slots__ = ("_interval", "_started")

    def __init__(self, interval: float) -> None:
        self._interval = interval
        self._started = 0.0

    def mark(self, _retry_state: RetryCallState) -> None:
        self._started = anyio.current_time()

    def remaining(self, _retry_state: RetryCallState) -> float:
        elapsed = anyio.current_time() - self._started
        return max(0.0, self._interval - elapsed)


def _paced_retrying(interval: float = RETRY_INTERVAL) -> AsyncRetrying:
    pacer = _AttemptPacer(interval)
    return AsyncRetrying(
        retry=retry_if_exception_type(ProbeTransportError),
        stop=stop_never,
        before=pacer.mark,
        wait=pacer.remaining,
        sleep=anyio.sleep,
        reraise=True,
    )


@final
class AfterProbe(_OneShot):
    """Ready once a fixed delay has elapsed."""

    __slots__ = ("duration",)

    def __init__(self, duration: timedelta) -> None:
        super().__init__()
        self.duration = duration

    async def wait(self) -> None:
        self._claim()
        await anyio.sleep(self.duration.total_seconds())
        logger.debug("timer completed", duration=str(self.duration))


@final
class TcpProbe(_OneShot):
    """Ready once a TCP connection to the loopback port succeeds."""

    __slots__ = ("port",)

    def __init__(self, port: int) -> None:
        super().__init__()
        self.port = port

    async def _connect(self) -> None:
        try:
            stream = await anyio.connect_tcp(LOOPBACK, self.port)
        except OSError as e:
            msg = f"could not connect to {LOOPBACK}:{self.port}: {e}"
            raise ProbeTransportError(msg, port=self.port, cause=e) from e
        await stream.aclose()

    async def wait(self) -> None:
        self._claim()
        log = logger.bind(port=self.port)
        async for attempt in _paced_retrying():
            with attempt:
                log.debug("connecting", attempt=attempt.retry_state.attempt_number)
                await self._connect()
        log.debug("connection established")


@final
class HttpProbe(_OneShot):
    """Ready once a HEAD request to the loopback port receives any response.

    Any status code counts; only transport failures are retried.
    """

    __slots__ = ("_client", "port", "url")

    def __init__(self, scheme: str, port: int, client: httpx.AsyncClient) -> None:
        super().__init__()
        self.port = port
        self.url = f"{scheme}://{LOOPBACK}:{port}"
        self._client = client

    @classmethod
    def for_rule(cls, rule: Http | Https, client: httpx.AsyncClient) -> HttpProbe:
        """Build the probe for an Http or Https rule."""
        scheme = type(rule).__name__.lower()
        return cls(scheme, rule.effective_port, client)

    async def _request(self) -> httpx.Response:
        try:
            return await self._client.head(self.url, timeout=HTTP_REQUEST_TIMEOUT)
        except httpx.TransportError as e:
            msg = f"HEAD {self.url} failed: {e!r}"
            raise ProbeTransportError(msg, port=self.port, cause=e) from e

    async def wait(self) -> None:
        self._claim()
        log = logger.bind(url=self.url)
        async for attempt in _paced_retrying():
            with attempt:
                log.debug("sending request", attempt=attempt.retry_state.attempt_number)
                response = await self._request()
        log.debug("request successful", status=response.status_code)


@final
class MatchesProbe(_OneShot):
    """Ready once a line of child stdout matches the pattern.

    The log subscription is taken when the probe is built, so lines sent
    before ``wait()`` starts are still seen.
    """

    __slots__ = ("_lines", "pattern")

    def __init__(self, pattern: re.Pattern[bytes], lines: BroadcastReceiver[bytes]) -> None:
        super().__init__()
        self.pattern = pattern
        self._lines = lines

    async def wait(self) -> None:
        self._claim()
        log = logger.bind(pattern=self.pattern.pattern.decode("utf-8", "replace"))
        with self._lines:
            while True:
                try:
                    line = await self._lines.receive()
                except BroadcastLagged as lag:
                    # Startup output is assumed never to outpace a single matcher
                    log.error("log lines channel lagged", missed=lag.skipped)
                    msg = f"log matching fell behind by {lag.skipped} lines"
                    raise LogChannelLagError(msg, skipped=lag.skipped) from lag
                except anyio.EndOfStream:
                    log.warning("log lines channel closed")
                    await anyio.sleep_forever()

                if self.pattern.search(line):
                    log.debug("log line matched")
                    return


Probe: TypeAlias = AfterProbe | TcpProbe | HttpProbe | MatchesProbe
