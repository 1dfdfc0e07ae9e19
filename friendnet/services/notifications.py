from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

logger = logging.getLogger(__name__)

NotificationLevel = Literal["success", "error"]

HISTORY_LIMIT = 100


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str


@dataclass
class Notifier:
    """Transient user-facing messages.

    Notifications are recorded and forwarded to ``on_notify`` when one is
    set. Emitting never raises and never blocks the caller. Only the last
    ``HISTORY_LIMIT`` notifications are kept.
    """

    on_notify: Callable[[Notification], None] | None = None
    history: deque[Notification] = field(default_factory=lambda: deque(maxlen=HISTORY_LIMIT))

    def success(self, message: str) -> None:
        self._emit(Notification("success", message))

    def error(self, message: str) -> None:
        self._emit(Notification("error", message))

    def _emit(self, notification: Notification) -> None:
        self.history.append(notification)
        logger.info("notify level=%s message=%r", notification.level, notification.message)
        if self.on_notify is None:
            return
        try:
            self.on_notify(notification)
        except Exception:
            logger.exception("notification sink failed level=%s", notification.level)

    @property
    def errors(self) -> list[Notification]:
        return [n for n in self.history if n.level == "error"]

    @property
    def last(self) -> Notification | None:
        return self.history[-1] if self.history else None

    def clear(self) -> None:
        self.history.clear()
