"""Duration literal parsing.

Parses human time literals such as ``5s``, ``250 ms`` or ``2 Minutes``
into :class:`datetime.timedelta` values. A literal is a run of decimal
digits, optional spaces or tabs, and a unit in short, singular or plural
form, matched case-insensitively.
"""

import re
from datetime import timedelta

from readygate.exceptions import GrammarError

__all__ = ["UNITS", "parse_duration", "parse_duration_prefix"]

# Families are tried in order; within a family the longest form comes first
# so that "seconds" is never cut short by "s".
UNITS: tuple[tuple[tuple[str, ...], timedelta], ...] = (
    (("seconds", "second", "s"), timedelta(seconds=1)),
    (("milliseconds", "millisecond", "ms"), timedelta(milliseconds=1)),
    (("microseconds", "microsecond", "μs", "µs"), timedelta(microseconds=1)),
    (("minutes", "minute", "m"), timedelta(minutes=1)),
)

_DIGITS = re.compile(r"[0-9]*")
_SPACE = re.compile(r"[ \t]*")
_SUFFIX = re.compile(
    "|".join(f"({'|'.join(map(re.escape, forms))})" for forms, _ in UNITS),
    re.IGNORECASE,
)
_EXPECTED_SUFFIX = "a duration unit (s, ms, μs or m)"


def parse_duration_prefix(text: str, position: int = 0) -> tuple[timedelta, int]:
    """Parse a duration literal starting at ``position`` in ``text``.

    Args:
        text: The source text.
        position: Offset at which the literal starts.

    Returns:
        The parsed duration and the offset just past the unit token.

    Raises:
        GrammarError: If no valid literal starts at ``position``.
    """
    digits = _DIGITS.match(text, position)
    if digits is None or not digits.group():
        msg = f"expected digits at position {position}"
        raise GrammarError(msg, text=text, position=position, expected="digits")

    spaces = _SPACE.match(text, digits.end())
    suffix_start = spaces.end() if spaces is not None else digits.end()
    suffix = _SUFFIX.match(text, suffix_start)
    if suffix is None:
        msg = f"expected {_EXPECTED_SUFFIX} at position {suffix_start}"
        raise GrammarError(
            msg, text=text, position=suffix_start, expected=_EXPECTED_SUFFIX
        )

    # lastindex is the 1-based index of the family group that matched
    _, base = UNITS[(suffix.lastindex or 1) - 1]
    try:
        duration = base * int(digits.group())
    except (OverflowError, ValueError):
        msg = f"duration at position {position} is too large"
        raise GrammarError(
            msg, text=text, position=position, expected="a smaller count"
        ) from None

    return duration, suffix.end()


def parse_duration(text: str) -> timedelta:
    """Parse a complete duration literal.

    Args:
        text: The literal, e.g. ``"30s"`` or ``"5 minutes"``.

    Returns:
        The parsed duration.

    Raises:
        GrammarError: If the text is not exactly one duration literal.
    """
    duration, end = parse_duration_prefix(text)
    if end != len(text):
        msg = f"unexpected trailing input at position {end}"
        raise GrammarError(msg, text=text, position=end, expected="end of input")
    return duration
