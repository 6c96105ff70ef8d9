"""User-visible notification sinks.

The engine reports every completed push, rename, delete and reconcile
through a ``Notifier``. Implementations must never raise.
"""

from __future__ import annotations

import logging
import sys
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, message: str) -> None: ...


class LogNotifier:
    """Sends notifications to the ``flux_sync.notify`` logger."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._logger = logging.getLogger("flux_sync.notify")
        self._level = level

    def notify(self, message: str) -> None:
        self._logger.log(self._level, message)


class StderrNotifier:
    """Prints notifications to stderr (CLI host)."""

    def notify(self, message: str) -> None:
        try:
            print(message, file=sys.stderr, flush=True)
        except (OSError, ValueError):
            # Closed or broken stderr: drop the message
            logger.debug("Could not print notification: %s", message)


class BufferedNotifier:
    """Collects notifications so a caller can return them later.

    Used by the MCP host to attach the messages produced during a tool call
    to the tool result. Messages are also logged.
    """

    def __init__(self, limit: int = 200) -> None:
        self._messages: list[str] = []
        self._limit = limit

    def notify(self, message: str) -> None:
        logger.info(message)
        self._messages.append(message)
        if len(self._messages) > self._limit:
            del self._messages[: -self._limit]

    @property
    def messages(self) -> list[str]:
        return list(self._messages)

    def drain(self) -> list[str]:
        """Return and forget every buffered message."""
        drained, self._messages = self._messages, []
        return drained
