"""Notification sink seam.

The workspace reports outcomes as fire-and-forget messages; the UI shell
decides how to present them (toasts, banners, ...).
"""

import logging
from dataclasses import dataclass, field
from typing import Literal, Protocol

logger = logging.getLogger(__name__)

Level = Literal["info", "warning", "error", "success"]


class NotificationSink(Protocol):
    def info(self, message: str) -> None: ...
    def warning(self, message: str) -> None: ...
    def error(self, message: str) -> None: ...
    def success(self, message: str) -> None: ...


@dataclass
class Notification:
    level: Level
    message: str


@dataclass
class RecordingNotifier:
    """Sink that keeps every message so a caller can drain and forward them."""

    messages: list[Notification] = field(default_factory=list)

    def _record(self, level: Level, message: str) -> None:
        self.messages.append(Notification(level=level, message=message))
        logger.debug(f"Notification [{level}]: {message}")

    def info(self, message: str) -> None:
        self._record("info", message)

    def warning(self, message: str) -> None:
        self._record("warning", message)

    def error(self, message: str) -> None:
        self._record("error", message)

    def success(self, message: str) -> None:
        self._record("success", message)

    def drain(self) -> list[Notification]:
        """Return and forget the recorded messages."""
        drained, self.messages = self.messages, []
        return drained

    def levels(self) -> list[str]:
        return [n.level for n in self.messages]


class LoggingNotifier:
    """Sink that only writes to the application log."""

    def info(self, message: str) -> None:
        logger.info(message)

    def warning(self, message: str) -> None:
        logger.warning(message)

    def error(self, message: str) -> None:
        logger.error(message)

    def success(self, message: str) -> None:
        logger.info(message)
