"""Real-time price feed shown next to the portfolio."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass

from papertrader.core.constants import DEFAULT_FEED_CAP


@dataclass(frozen=True, slots=True)
class PriceUpdate:
    symbol: str
    price: float
    timestamp: float


class PriceFeed:
    """Most recent price updates, newest first, capped at *cap*.

    Cleared when a session stops.
    """

    def __init__(self, cap: int = DEFAULT_FEED_CAP) -> None:
        self._updates: deque[PriceUpdate] = deque(maxlen=cap)
        self._lock = threading.Lock()

    def record(self, prices: dict[str, float], timestamp: float) -> None:
        with self._lock:
            for symbol, price in sorted(prices.items()):
                self._updates.appendleft(PriceUpdate(symbol, price, timestamp))

    def latest(self) -> dict[str, float]:
        """Newest price per symbol."""
        with self._lock:
            result: dict[str, float] = {}
            for update in self._updates:
                result.setdefault(update.symbol, update.price)
            return result

    def items(self) -> list[PriceUpdate]:
        with self._lock:
            return list(self._updates)

    def clear(self) -> None:
        with self._lock:
            self._updates.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._updates)
