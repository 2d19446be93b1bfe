"""readygate: launch a server process and gate on composable readiness rules.

Example:
    $ readygate --rules 'tcp port 8080 ready or after 30s' --retries 3 -- ./server
"""

from .duration import parse_duration
from .exceptions import ReadyGateError
from .rules import parse_rules

__version__ = "0.1.0"

__all__ = ["ReadyGateError", "__version__", "parse_duration", "parse_rules"]
