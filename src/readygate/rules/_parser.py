"""Parser for readiness rule expressions.

Grammar (keywords are case-insensitive, ``ws`` is spaces or tabs)::

    expr      := and_group (ws 'or' ws and_group)* ws?
    and_group := rule (ws 'and' ws rule)*
    rule      := 'after' ws duration
               | 'tcp' ws port ws 'ready'
               | 'http' ws (port ws)? 'ready'
               | 'https' ws (port ws)? 'ready'
               | 'matches' ws pattern
    port      := 'port' ws digits
    pattern   := quoted-string | bare-token

"and" binds tighter than "or". The parser is a small recursive-descent
scanner over the source text; every failure raises a GrammarError that
points at the first offending character.
"""

import re
from typing import final

from readygate.duration import parse_duration_prefix
from readygate.exceptions import GrammarError

from ._models import After, AndGroup, Http, Https, Matches, OrGroup, Rule, Tcp

__all__ = ["parse_rules"]

MAX_PORT = 65535

_WS = re.compile(r"[ \t]+")
_WORD = re.compile(r"[A-Za-z]+")
_DIGITS = re.compile(r"[0-9]+")
_BARE_PATTERN = re.compile(r"\S+")
_RULE_KEYWORDS = ("after", "tcp", "http", "https", "matches")


@final
class _Scanner:
    """Cursor over the expression text."""

    __slots__ = ("pos", "text")

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def error(self, expected: str, position: int | None = None) -> GrammarError:
        where = self.pos if position is None else position
        found = self.text[where : where + 10] or "end of input"
        msg = f"expected {expected} at position {where}, found {found!r}"
        return GrammarError(msg, text=self.text, position=where, expected=expected)

    def peek_word(self) -> str | None:
        match = _WORD.match(self.text, self.pos)
        return match.group().lower() if match else None

    def keyword(self, word: str) -> None:
        """Consume a case-insensitive keyword that must end at a word boundary."""
        if self.peek_word() != word:
            raise self.error(f"'{word}'")
        self.pos += len(word)

    def whitespace(self) -> None:
        match = _WS.match(self.text, self.pos)
        if match is None:
            raise self.error("whitespace")
        self.pos = match.end()

    def try_separator(self, word: str) -> bool:
        """Consume ``ws word ws`` if ``ws word`` is next, leaving the cursor alone otherwise.

        Once the separator word has been seen, the whitespace after it is required.
        """
        lead = _WS.match(self.text, self.pos)
        if lead is None:
            return False
        start = lead.end()
        match = _WORD.match(self.text, start)
        if match is None or match.group().lower() != word:
            return False
        self.pos = match.end()
        self.whitespace()
        return True


def _parse_port(scanner: _Scanner) -> int:
    scanner.keyword("port")
    scanner.whitespace()
    start = scanner.pos
    match = _DIGITS.match(scanner.text, start)
    if match is None:
        raise scanner.error("a port number")
    # Bound the length first; int() rejects very long digit runs
    digits = match.group().lstrip("0") or "0"
    port = int(digits) if len(digits) <= len(str(MAX_PORT)) else MAX_PORT + 1
    if not 1 <= port <= MAX_PORT:
        raise scanner.error(f"a port number between 1 and {MAX_PORT}", start)
    scanner.pos = match.end()
    return port


def _parse_after(scanner: _Scanner) -> After:
    scanner.keyword("after")
    scanner.whitespace()
    duration, scanner.pos = parse_duration_prefix(scanner.text, scanner.pos)
    return After(duration)


def _parse_tcp(scanner: _Scanner) -> Tcp:
    scanner.keyword("tcp")
    scanner.whitespace()
    port = _parse_port(scanner)
    scanner.whitespace()
    scanner.keyword("ready")
    return Tcp(port)


def _parse_http_family(scanner: _Scanner, scheme: str) -> int | None:
    scanner.keyword(scheme)
    scanner.whitespace()
    if scanner.peek_word() == "ready":
        scanner.keyword("ready")
        return None
    if scanner.peek_word() != "port":
        raise scanner.error("'port' or 'ready'")
    port = _parse_port(scanner)
    scanner.whitespace()
    scanner.keyword("ready")
    return port


def _compile(scanner: _Scanner, source: str, position: int) -> re.Pattern[bytes]:
    if not source:
        raise scanner.error("a non-empty pattern", position)
    try:
        return re.compile(source.encode("utf-8"))
    except re.error as e:
        msg = f"invalid pattern at position {position}: {e}"
        raise GrammarError(
            msg,
            text=scanner.text,
            position=position,
            expected="a valid regular expression",
        ) from e


def _parse_quoted_pattern(scanner: _Scanner) -> str:
    text = scanner.text
    pos = scanner.pos + 1
    chunks: list[str] = []
    while pos < len(text):
        char = text[pos]
        if char == '"':
            scanner.pos = pos + 1
            return "".join(chunks)
        if char == "\\" and text.startswith('"', pos + 1):
            chunks.append('"')
            pos += 2
            continue
        chunks.append(char)
        pos += 1
    raise scanner.error("a closing quote", len(text))


def _parse_matches(scanner: _Scanner) -> Matches:
    scanner.keyword("matches")
    scanner.whitespace()
    start = scanner.pos
    if scanner.text.startswith('"', start):
        source = _parse_quoted_pattern(scanner)
    else:
        match = _BARE_PATTERN.match(scanner.text, start)
        if match is None:
            raise scanner.error("a pattern")
        source = match.group()
        scanner.pos = match.end()
    return Matches(_compile(scanner, source, start))


def _parse_rule(scanner: _Scanner) -> Rule:
    match scanner.peek_word():
        case "after":
            return _parse_after(scanner)
        case "tcp":
            return _parse_tcp(scanner)
        case "http":
            return Http(_parse_http_family(scanner, "http"))
        case "https":
            return Https(_parse_http_family(scanner, "https"))
        case "matches":
            return _parse_matches(scanner)
        case _:
            raise scanner.error("a rule (" + ", ".join(_RULE_KEYWORDS) + ")")


def _parse_and_group(scanner: _Scanner) -> AndGroup:
    rules = [_parse_rule(scanner)]
    while scanner.try_separator("and"):
        rules.append(_parse_rule(scanner))
    return AndGroup(tuple(rules))


def parse_rules(text: str) -> OrGroup:
    """Parse a readiness expression.

    Args:
        text: The expression, e.g. ``"tcp port 8080 ready and after 2s"``.

    Returns:
        The parsed OR group of AND groups.

    Raises:
        GrammarError: On the first grammar violation, with its position.
    """
    scanner = _Scanner(text)
    groups = [_parse_and_group(scanner)]
    while scanner.try_separator("or"):
        groups.append(_parse_and_group(scanner))

    trailing = _WS.match(text, scanner.pos)
    if trailing is not None:
        scanner.pos = trailing.end()
    if not scanner.at_end():
        raise scanner.error("'and', 'or' or end of input")

    return OrGroup(tuple(groups))
