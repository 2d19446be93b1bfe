"""Logging configuration for readygate.

Logs are structured with structlog on top of the standard library's
logging machinery and written to stderr, leaving stdout to the mirrored
output of the supervised command.

Verbosity is controlled by filter directives: a comma-separated list of
``level`` or ``target=level`` entries, where ``target`` is a dotted logger
name (``readygate.rules`` or ``httpx``). A bare level sets the default.
"""

import logging
import sys
from typing import IO, Literal

import structlog

from readygate.exceptions import LogFilterError

__all__ = ["DEFAULT_LOG_FILTERS", "LogFormatType", "configure_logging", "parse_log_filters"]

LogFormatType = Literal["json", "text"]

DEFAULT_LOG_FILTERS = "info"

_LEVELS: dict[str, int] = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": logging.CRITICAL + 10,
}

# Loggers whose level was set by a previous call, so reconfiguring resets them.
_configured_targets: set[str] = set()


def _parse_level(value: str, directive: str) -> int:
    level = _LEVELS.get(value.strip().lower())
    if level is None:
        choices = ", ".join(_LEVELS)
        msg = f"unknown log level {value!r} in {directive!r} (expected one of {choices})"
        raise LogFilterError(msg, directive=directive)
    return level


def parse_log_filters(filters: str) -> tuple[int, dict[str, int]]:
    """Parse log filter directives.

    Args:
        filters: Directives such as ``"warn,readygate.rules=debug"``.

    Returns:
        The default level and a mapping of logger names to levels.

    Raises:
        LogFilterError: If a directive is malformed.
    """
    default = _LEVELS[DEFAULT_LOG_FILTERS]
    targets: dict[str, int] = {}

    for raw in filters.split(","):
        directive = raw.strip()
        if not directive:
            continue
        if "=" not in directive:
            default = _parse_level(directive, directive)
            continue

        target, _, level = directive.partition("=")
        target = target.strip().replace("::", ".")
        if not target:
            msg = f"missing target in log filter {directive!r}"
            raise LogFilterError(msg, directive=directive)
        targets[target] = _parse_level(level, directive)

    return default, targets


def configure_logging(
    filters: str | None = None,
    *,
    log_format: LogFormatType = "text",
    stream: IO[str] | None = None,
) -> None:
    """Configure structlog and stdlib logging for the process.

    Args:
        filters: Filter directives; ``DEFAULT_LOG_FILTERS`` when None or empty.
        log_format: Output format, either "json" or "text".
        stream: Destination stream. Defaults to stderr.

    Raises:
        LogFilterError: If the filter directives are malformed.
    """
    default_level, targets = parse_log_filters(filters or DEFAULT_LOG_FILTERS)

    handler = logging.StreamHandler(stream or sys.stderr)
    # structlog renders the whole line; the handler only forwards it
    handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(default_level)

    for name in _configured_targets - targets.keys():
        logging.getLogger(name).setLevel(logging.NOTSET)
    for name, level in targets.items():
        logging.getLogger(name).setLevel(level)
    _configured_targets.clear()
    _configured_targets.update(targets)

    processors: list[structlog.typing.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if log_format == "json":
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        colors = bool(getattr(handler.stream, "isatty", lambda: False)())
        processors.append(structlog.dev.ConsoleRenderer(colors=colors))

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        cache_logger_on_first_use=False,
    )
