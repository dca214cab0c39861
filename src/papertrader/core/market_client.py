"""Abstract market data interface with an Upbit implementation.

The scheduler and analysis providers talk to :class:`MarketDataProvider`
only, so tests run against deterministic in-memory data.  Failures never
escape a provider: a coin that cannot be priced is simply missing from the
result, and the caller tolerates partial data.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any

import requests

from papertrader.core.constants import (
    HTTP_TIMEOUT_SECONDS,
    UPBIT_BASE_URL,
    UPBIT_CALLS_PER_SECOND,
    UPBIT_MAX_CANDLES,
)
from papertrader.core.exceptions import DataFetchError, RateLimitError
from papertrader.core.retry import RateLimiter, retry
from papertrader.core.symbols import to_market, to_symbol
from papertrader.models.candle import Candle

logger = logging.getLogger(__name__)


class MarketDataProvider(ABC):
    """Abstract source of prices and candles, keyed by base coin."""

    @abstractmethod
    def get_prices(self, symbols: Iterable[str]) -> dict[str, float]:
        """Return ``{symbol: last price}`` for every symbol that could be priced.

        Symbols may be bare coins (``"BTC"``) or markets (``"KRW-BTC"``);
        keys of the result are always bare coins.
        """

    @abstractmethod
    def get_candles(self, symbol: str, count: int) -> list[Candle]:
        """Return up to *count* daily candles, oldest first.  ``[]`` on failure."""


class StaticMarketData(MarketDataProvider):
    """In-memory provider fed by :meth:`set_price` and :meth:`set_candles`.

    Used by the offline runner and as a test double.
    """

    def __init__(
        self,
        prices: dict[str, float] | None = None,
        candles: dict[str, list[Candle]] | None = None,
    ) -> None:
        self._prices = {to_symbol(k): float(v) for k, v in (prices or {}).items()}
        self._candles = {to_symbol(k): list(v) for k, v in (candles or {}).items()}
        self.price_calls = 0

    def set_price(self, symbol: str, price: float) -> None:
        self._prices[to_symbol(symbol)] = float(price)

    def remove_price(self, symbol: str) -> None:
        self._prices.pop(to_symbol(symbol), None)

    def set_candles(self, symbol: str, candles: list[Candle]) -> None:
        self._candles[to_symbol(symbol)] = list(candles)

    def get_prices(self, symbols: Iterable[str]) -> dict[str, float]:
        self.price_calls += 1
        result: dict[str, float] = {}
        for raw in symbols:
            symbol = to_symbol(raw)
            if symbol in self._prices:
                result[symbol] = self._prices[symbol]
        return result

    def get_candles(self, symbol: str, count: int) -> list[Candle]:
        return self._candles.get(to_symbol(symbol), [])[-count:]


# ---------------------------------------------------------------------------
# Upbit implementation
# ---------------------------------------------------------------------------


class UpbitMarketClient(MarketDataProvider):
    """Upbit public REST market data with bounded retries and rate limiting.

    No authentication required; only ``/ticker`` and ``/candles/days`` are
    used.

    Parameters
    ----------
    session:
        ``requests.Session`` (or compatible) used for every call.
    base_url:
        API root, ``https://api.upbit.com/v1`` by default.
    max_retries:
        Retries per request after the first attempt.
    calls_per_second:
        Client-side rate limit.
    sleep:
        Sleep function for backoff and rate limiting; replaceable in tests.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        base_url: str = UPBIT_BASE_URL,
        max_retries: int = 2,
        retry_delay: float = 0.5,
        calls_per_second: float = UPBIT_CALLS_PER_SECOND,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session if session is not None else requests.Session()
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._rate_limiter = RateLimiter(calls_per_second, sleep=sleep)
        self._get_json = retry(
            max_retries=max_retries,
            base_delay=retry_delay,
            max_delay=10.0,
            exceptions=(requests.RequestException, RateLimitError),
            sleep=sleep,
        )(self._request)

    # -- MarketDataProvider ---------------------------------------------------

    def get_prices(self, symbols: Iterable[str]) -> dict[str, float]:
        markets = list(dict.fromkeys(to_market(to_symbol(s)) for s in symbols))
        if not markets:
            return {}
        try:
            return self._parse_tickers(self._fetch("/ticker", {"markets": ",".join(markets)}))
        except DataFetchError as exc:
            if len(markets) == 1:
                logger.warning("No price for %s: %s", markets[0], exc)
                return {}
            # One unknown market fails the whole batch; fall back to one call each
            logger.warning("Batch ticker failed (%s), retrying per market", exc)

        prices: dict[str, float] = {}
        for market in markets:
            try:
                prices.update(self._parse_tickers(self._fetch("/ticker", {"markets": market})))
            except DataFetchError as exc:
                logger.warning("No price for %s: %s", market, exc)
        return prices

    def get_candles(self, symbol: str, count: int) -> list[Candle]:
        market = to_market(to_symbol(symbol))
        params = {"market": market, "count": max(1, min(count, UPBIT_MAX_CANDLES))}
        try:
            raw = self._fetch("/candles/days", params)
        except DataFetchError as exc:
            logger.warning("No candles for %s: %s", market, exc)
            return []
        return self._parse_candles(raw)

    # -- transport ------------------------------------------------------------

    def _fetch(self, path: str, params: dict[str, Any]) -> Any:
        """GET *path* with retries.  Every failure surfaces as :class:`DataFetchError`."""
        try:
            return self._get_json(path, params)
        except requests.RequestException as exc:
            raise DataFetchError(f"GET {path} failed: {exc}") from exc

    def _request(self, path: str, params: dict[str, Any]) -> Any:
        self._rate_limiter.acquire()
        resp = self._session.get(
            f"{self._base_url}{path}",
            params=params,
            headers={"Accept": "application/json"},
            timeout=self._timeout,
        )
        if resp.status_code == 429:
            raise RateLimitError(f"rate limited on {path}")
        if resp.status_code >= 400:
            # 4xx other than 429 will not improve on retry
            raise DataFetchError(f"GET {path} returned HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            return resp.json()
        except ValueError as exc:
            raise DataFetchError(f"GET {path} returned invalid JSON") from exc

    # -- parsing --------------------------------------------------------------

    @staticmethod
    def _parse_tickers(raw: Any) -> dict[str, float]:
        if not isinstance(raw, list):
            raise DataFetchError(f"unexpected ticker payload {type(raw).__name__}")
        prices: dict[str, float] = {}
        for item in raw:
            if not isinstance(item, dict):
                continue
            try:
                price = float(item["trade_price"])
                symbol = to_symbol(str(item["market"]))
            except (KeyError, TypeError, ValueError) as exc:
                logger.debug("Skipping malformed ticker %r: %s", item, exc)
                continue
            if price > 0:
                prices[symbol] = price
        return prices

    @staticmethod
    def _parse_candles(raw: Any) -> list[Candle]:
        """Upbit returns newest first; the result is oldest first."""
        if not isinstance(raw, list):
            return []
        candles: list[Candle] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            try:
                candles.append(Candle.from_upbit(item))
            except (KeyError, TypeError, ValueError) as exc:
                logger.debug("Skipping malformed candle %r: %s", item, exc)
        candles.sort(key=lambda c: c.timestamp)
        return candles
