"""User-visible notices — the session-scoped replacement for toast popups."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class NoticeLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class Notice:
    level: NoticeLevel
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier:
    """Collects notices for the current session and forwards them to listeners."""

    def __init__(self, max_notices: int = 50) -> None:
        self._notices: list[Notice] = []
        self._listeners: list[Callable[[Notice], None]] = []
        self._max = max_notices

    def listen(self, listener: Callable[[Notice], None]) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _push(self, level: NoticeLevel, message: str) -> Notice:
        notice = Notice(level, message)
        self._notices.append(notice)
        del self._notices[:-self._max]
        for listener in list(self._listeners):
            listener(notice)
        return notice

    def info(self, message: str) -> Notice:
        return self._push(NoticeLevel.INFO, message)

    def success(self, message: str) -> Notice:
        return self._push(NoticeLevel.SUCCESS, message)

    def error(self, message: str) -> Notice:
        logger.warning("User-facing error: %s", message)
        return self._push(NoticeLevel.ERROR, message)

    @property
    def notices(self) -> list[Notice]:
        return list(self._notices)

    def errors(self) -> list[str]:
        return [n.message for n in self._notices if n.level is NoticeLevel.ERROR]

    def clear(self) -> None:
        self._notices.clear()
