"""Human-readable status reporting for the lift remote."""
from __future__ import annotations

import logging
from typing import Optional, Protocol

_LOGGER = logging.getLogger(__name__)


class StatusSink(Protocol):
    """Receives one-line status messages meant for the operator."""

    def report(self, message: str) -> None:
        """Display or record a status message."""


class LoggingStatusSink:
    """Status sink that forwards every report to a logger at INFO level."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or _LOGGER
        self.last_message: Optional[str] = None

    def report(self, message: str) -> None:
        """Log the message and remember it as the current status line."""
        self.last_message = message
        self._logger.info("%s", message)


def report_status(sink: StatusSink, message: str) -> None:
    """
    Hand a message to the sink without letting the sink fail the caller.

    Args:
        sink: Status sink to report to
        message: Message text
    """
    try:
        sink.report(message)
    except Exception as err:
        _LOGGER.error("Error in status sink: %s", err)
