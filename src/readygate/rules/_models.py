"""Data models for readiness rules.

This module defines the parsed, immutable form of a readiness expression:
- After, Tcp, Http, Https, Matches: the five rule kinds
- Rule: closed union of the rule kinds
- AndGroup: rules that must all become ready
- OrGroup: groups of which any one becoming ready is sufficient

Rule trees are shared read-only across supervised attempts; live probes
are built from them per attempt (see ``build_probes``).
"""

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import TypeAlias

DEFAULT_HTTP_PORT = 80
DEFAULT_HTTPS_PORT = 443


@dataclass(frozen=True, slots=True)
class After:
    """Ready once a fixed delay has elapsed."""

    duration: timedelta

    def __str__(self) -> str:
        return f"after {_format_duration(self.duration)}"


@dataclass(frozen=True, slots=True)
class Tcp:
    """Ready once a TCP connection to the loopback port succeeds."""

    port: int

    def __str__(self) -> str:
        return f"tcp port {self.port} ready"


@dataclass(frozen=True, slots=True)
class Http:
    """Ready once an HTTP HEAD request to the loopback port gets any response.

    Attributes:
        port: Explicit port, or None to use the default of 80.
    """

    port: int | None = None

    @property
    def effective_port(self) -> int:
        """Return the port that will be probed."""
        return self.port if self.port is not None else DEFAULT_HTTP_PORT

    def __str__(self) -> str:
        return _format_http_family("http", self.port)


@dataclass(frozen=True, slots=True)
class Https:
    """Ready once an HTTPS HEAD request to the loopback port gets any response.

    Attributes:
        port: Explicit port, or None to use the default of 443.
    """

    port: int | None = None

    @property
    def effective_port(self) -> int:
        """Return the port that will be probed."""
        return self.port if self.port is not None else DEFAULT_HTTPS_PORT

    def __str__(self) -> str:
        return _format_http_family("https", self.port)


@dataclass(frozen=True, slots=True)
class Matches:
    """Ready once a line of the child's stdout matches a byte pattern."""

    pattern: re.Pattern[bytes]

    @property
    def source(self) -> str:
        """Return the pattern source as text."""
        return self.pattern.pattern.decode("utf-8", errors="replace")

    def __str__(self) -> str:
        escaped = self.source.replace('"', '\\"')
        return f'matches "{escaped}"'


Rule: TypeAlias = After | Tcp | Http | Https | Matches


@dataclass(frozen=True, slots=True)
class AndGroup:
    """Rules that must all signal readiness.

    Order is the order in which probes are started, not a priority.
    """

    rules: tuple[Rule, ...]

    def __post_init__(self) -> None:
        if not self.rules:
            msg = "an AND group needs at least one rule"
            raise ValueError(msg)

    def __len__(self) -> int:
        return len(self.rules)

    def __str__(self) -> str:
        return " and ".join(str(rule) for rule in self.rules)


@dataclass(frozen=True, slots=True)
class OrGroup:
    """AND groups of which any one signalling readiness is sufficient."""

    groups: tuple[AndGroup, ...]

    def __post_init__(self) -> None:
        if not self.groups:
            msg = "an OR group needs at least one AND group"
            raise ValueError(msg)

    def __len__(self) -> int:
        return len(self.groups)

    def __str__(self) -> str:
        return " or ".join(str(group) for group in self.groups)


def _format_http_family(scheme: str, port: int | None) -> str:
    if port is None:
        return f"{scheme} ready"
    return f"{scheme} port {port} ready"


def _format_duration(duration: timedelta) -> str:
    micros = duration // timedelta(microseconds=1)
    if micros % 60_000_000 == 0:
        return f"{micros // 60_000_000}m"
    if micros % 1_000_000 == 0:
        return f"{micros // 1_000_000}s"
    if micros % 1_000 == 0:
        return f"{micros // 1_000}ms"
    return f"{micros}μs"
