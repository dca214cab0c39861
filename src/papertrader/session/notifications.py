"""Bounded notification center, newest first."""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections.abc import Callable

from papertrader.core.constants import DEFAULT_NOTIFICATION_CAP, LEVEL_INFO, VALID_LEVELS
from papertrader.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationCenter:
    """Keeps the last *cap* notifications.  Not persisted."""

    def __init__(
        self,
        cap: int = DEFAULT_NOTIFICATION_CAP,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if cap < 1:
            raise ValueError("cap must be >= 1")
        self._cap = cap
        self._clock = clock
        self._items: list[Notification] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def push(self, message: str, level: str = LEVEL_INFO) -> Notification:
        if level not in VALID_LEVELS:
            logger.debug("Unknown notification level %r, using info", level)
            level = LEVEL_INFO
        now = self._clock()
        note = Notification(
            id=f"ntf_{int(now * 1000)}_{next(self._seq)}",
            message=message,
            level=level,
            timestamp=now,
        )
        with self._lock:
            self._items.insert(0, note)
            del self._items[self._cap :]
        logger.info("[%s] %s", level, message)
        return note

    def items(self) -> list[Notification]:
        with self._lock:
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
