"""Capped, newest-first trade history."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from datetime import datetime

from papertrader.core.constants import DEFAULT_TRADE_HISTORY_CAP
from papertrader.models.trade import Trade

logger = logging.getLogger(__name__)


class TradeHistory:
    """Bounded list of trades, newest at index 0.

    When full, appending evicts the oldest trade (FIFO).  The history
    outlives sessions; only :meth:`clear` empties it.
    """

    def __init__(self, cap: int = DEFAULT_TRADE_HISTORY_CAP) -> None:
        if cap < 1:
            raise ValueError("cap must be >= 1")
        self._cap = cap
        self._trades: list[Trade] = []
        self._lock = threading.Lock()

    @property
    def cap(self) -> int:
        return self._cap

    def append(self, trade: Trade) -> None:
        with self._lock:
            self._trades.insert(0, trade)
            if len(self._trades) > self._cap:
                evicted = self._trades[self._cap :]
                del self._trades[self._cap :]
                logger.debug("Trade history full, evicted %d oldest", len(evicted))

    def items(self) -> list[Trade]:
        """Copy of the history, newest first."""
        with self._lock:
            return list(self._trades)

    def restore(self, trades: Iterable[Trade]) -> None:
        """Replace contents; input is sorted newest first and capped."""
        ordered = sorted(trades, key=lambda t: t.timestamp, reverse=True)
        with self._lock:
            self._trades = ordered[: self._cap]

    def clear(self) -> None:
        with self._lock:
            self._trades.clear()

    def count_on_day(self, now: float) -> int:
        """Number of trades on the same local calendar day as *now*."""
        day = datetime.fromtimestamp(now).date()
        with self._lock:
            return sum(1 for t in self._trades if datetime.fromtimestamp(t.timestamp).date() == day)

    def __len__(self) -> int:
        with self._lock:
            return len(self._trades)

    def __iter__(self) -> Iterator[Trade]:
        return iter(self.items())
