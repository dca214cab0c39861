"""The user's watch list of markets.

The catalog is what the next session starts from and what the scheduler
scans for buy candidates.  Adding or removing a market never changes the
positions of a live session.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from papertrader.core.symbols import normalize_market, to_symbol

logger = logging.getLogger(__name__)


class CoinCatalog:
    """Ordered, duplicate-free list of Upbit markets."""

    def __init__(self, markets: Iterable[str] = ()) -> None:
        self._markets: list[str] = []
        self._lock = threading.Lock()
        for market in markets:
            self.add(market)

    def add(self, market: str) -> bool:
        """Add *market*; ``False`` if already present.

        Raises :class:`~papertrader.core.exceptions.ValidationError` for a
        malformed market.
        """
        normalized = normalize_market(market)
        with self._lock:
            if normalized in self._markets:
                return False
            self._markets.append(normalized)
        logger.info("Added %s to catalog", normalized)
        return True

    def remove(self, market: str) -> bool:
        """Remove *market*; ``False`` if it was not listed."""
        normalized = normalize_market(market)
        with self._lock:
            if normalized not in self._markets:
                return False
            self._markets.remove(normalized)
        logger.info("Removed %s from catalog", normalized)
        return True

    def restore(self, markets: Iterable[str]) -> None:
        with self._lock:
            self._markets.clear()
        for market in markets:
            self.add(market)

    @property
    def markets(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._markets)

    @property
    def symbols(self) -> list[str]:
        return [to_symbol(m) for m in self.markets]

    def __contains__(self, market: object) -> bool:
        if not isinstance(market, str):
            return False
        with self._lock:
            return normalize_market(market) in self._markets

    def __len__(self) -> int:
        with self._lock:
            return len(self._markets)
