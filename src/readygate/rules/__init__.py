"""Readiness rules: expression grammar, probes and composition.

Key Components:
    - parse_rules: Parse a readiness expression into an OrGroup
    - After, Tcp, Http, Https, Matches: Rule kinds
    - AndGroup, OrGroup: All-of and any-of composition
    - ProbeContext: Per-attempt resources shared by probes
    - build_probes: Instantiate a live probe tree for one attempt

Example:
    >>> from readygate.rules import parse_rules
    >>> rules = parse_rules("tcp port 8080 ready and matches ^listening or after 30s")
    >>> len(rules)
    2
"""

from ._engine import AndProbe, OrProbe, build_probe, build_probes
from ._models import (
    DEFAULT_HTTP_PORT,
    DEFAULT_HTTPS_PORT,
    After,
    AndGroup,
    Http,
    Https,
    Matches,
    OrGroup,
    Rule,
    Tcp,
)
from ._parser import parse_rules
from ._probes import (
    AfterProbe,
    HttpProbe,
    MatchesProbe,
    Probe,
    ProbeContext,
    TcpProbe,
)

__all__ = [
    "DEFAULT_HTTPS_PORT",
    "DEFAULT_HTTP_PORT",
    "After",
    "AfterProbe",
    "AndGroup",
    "AndProbe",
    "Http",
    "HttpProbe",
    "Https",
    "Matches",
    "MatchesProbe",
    "OrGroup",
    "OrProbe",
    "Probe",
    "ProbeContext",
    "Rule",
    "Tcp",
    "TcpProbe",
    "build_probe",
    "build_probes",
    "parse_rules",
]
