"""AND/OR combinators over readiness probes.

``build_probes`` turns a parsed OrGroup into a fresh tree of live probes
for one supervised attempt:

    OrProbe
    ├── AndProbe (group 0)
    │   ├── TcpProbe
    │   └── MatchesProbe
    └── AndProbe (group 1)
        └── AfterProbe
"""

from __future__ import annotations

from typing import TYPE_CHECKING, assert_never, final

import anyio
import structlog

from ._models import After, Http, Https, Matches, Tcp
from ._probes import AfterProbe, HttpProbe, MatchesProbe, TcpProbe

if TYPE_CHECKING:
    from anyio.abc import TaskGroup

    from ._models import AndGroup, OrGroup, Rule
    from ._probes import Probe, ProbeContext

__all__ = ["AndProbe", "OrProbe", "build_probe", "build_probes"]

logger = structlog.get_logger(__name__)


@final
class AndProbe:
    """Ready once every member probe is ready.

    Members run concurrently and are only cancelled when the AndProbe
    itself is cancelled.
    """

    __slots__ = ("probes",)

    def __init__(self, probes: tuple[Probe, ...]) -> None:
        if not probes:
            msg = "AndProbe requires at least one probe"
            raise ValueError(msg)
        self.probes = probes

    async def wait(self) -> None:
        if len(self.probes) == 1:
            await self.probes[0].wait()
            return

        async with anyio.create_task_group() as tg:
            for probe in self.probes:
                tg.start_soon(probe.wait)


@final
class OrProbe:
    """Ready once any member group is ready.

    The first group to finish wins and every other group is cancelled.
    """

    __slots__ = ("groups",)

    def __init__(self, groups: tuple[AndProbe, ...]) -> None:
        if not groups:
            msg = "OrProbe requires at least one group"
            raise ValueError(msg)
        self.groups = groups

    async def wait(self) -> int:
        """Wait for the first group to become ready.

        Returns:
            Index of the winning group. Groups finishing in the same
            scheduling step resolve to the lowest index.
        """
        if len(self.groups) == 1:
            await self.groups[0].wait()
            return 0

        winners: set[int] = set()

        async def race(index: int, group: AndProbe, tg: TaskGroup) -> None:
            await group.wait()
            winners.add(index)
            tg.cancel_scope.cancel()

        async with anyio.create_task_group() as tg:
            for index, group in enumerate(self.groups):
                tg.start_soon(race, index, group, tg)

        winner = min(winners)
        logger.debug("rule group ready", group=winner)
        return winner


def build_probe(rule: Rule, context: ProbeContext) -> Probe:
    """Instantiate the live probe for a single rule."""
    match rule:
        case After(duration=duration):
            return AfterProbe(duration)
        case Tcp(port=port):
            return TcpProbe(port)
        case Http() | Https():
            return HttpProbe.for_rule(rule, context.client)
        case Matches(pattern=pattern):
            return MatchesProbe(pattern, context.log_lines.subscribe())
        case _:
            assert_never(rule)


def _build_and(group: AndGroup, context: ProbeContext) -> AndProbe:
    return AndProbe(tuple(build_probe(rule, context) for rule in group.rules))


def build_probes(or_group: OrGroup, context: ProbeContext) -> OrProbe:
    """Build a fresh probe tree for one attempt.

    Log subscriptions for ``matches`` rules are taken here, so building must
    happen before the child process can write anything.

    Args:
        or_group: Parsed readiness expression.
        context: Resources for this attempt.

    Returns:
        The root OrProbe.
    """
    return OrProbe(tuple(_build_and(group, context) for group in or_group.groups))
