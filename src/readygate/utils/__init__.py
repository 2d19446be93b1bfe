"""Shared utilities: broadcast channel, scoped tasks and logging setup."""

from ._broadcast import Broadcast, BroadcastLagged, BroadcastReceiver
from ._logging import (
    DEFAULT_LOG_FILTERS,
    LogFormatType,
    configure_logging,
    parse_log_filters,
)
from ._task import ScopedTask, scoped_task

__all__ = [
    "DEFAULT_LOG_FILTERS",
    "Broadcast",
    "BroadcastLagged",
    "BroadcastReceiver",
    "LogFormatType",
    "ScopedTask",
    "configure_logging",
    "parse_log_filters",
    "scoped_task",
]
