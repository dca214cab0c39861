"""Analysis providers: where sub-scores come from.

The signal generator never invents inputs.  A provider supplies one
:class:`~papertrader.models.indicators.IndicatorInputs` per symbol:

- :class:`StaticAnalysisProvider` hands back inputs registered up front
  (tests, replays, or an external model pushing scores in).
- :class:`CandleAnalysisProvider` derives the technical and volume inputs
  from daily candles and takes sentiment/fundamental from injected lookups,
  neutral 5.0 when none is given.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import replace
from typing import Optional

from papertrader.core.constants import DEFAULT_CANDLE_COUNT, NEUTRAL_SCORE
from papertrader.core.exceptions import DataFetchError
from papertrader.core.market_client import MarketDataProvider
from papertrader.core.symbols import to_symbol
from papertrader.models.candle import Candle
from papertrader.models.indicators import IndicatorInputs

logger = logging.getLogger(__name__)

RSI_PERIOD = 14
_VOLUME_AVERAGE_WINDOW = 20

ScoreLookup = Callable[[str], Optional[float]]


class AnalysisProvider(ABC):
    """Source of per-symbol analysis inputs."""

    @abstractmethod
    def get_inputs(
        self,
        symbols: Iterable[str],
        prices: Mapping[str, float],
    ) -> dict[str, IndicatorInputs]:
        """Return inputs for the symbols it can analyse; others are omitted."""


# ---------------------------------------------------------------------------
# Static provider
# ---------------------------------------------------------------------------


class StaticAnalysisProvider(AnalysisProvider):
    """Returns inputs registered with :meth:`set_inputs`, repriced to the tick."""

    def __init__(self, inputs: Mapping[str, IndicatorInputs] | None = None) -> None:
        self._inputs: dict[str, IndicatorInputs] = {
            to_symbol(k): v for k, v in (inputs or {}).items()
        }

    def set_inputs(self, symbol: str, inputs: IndicatorInputs) -> None:
        self._inputs[to_symbol(symbol)] = inputs

    def remove(self, symbol: str) -> None:
        self._inputs.pop(to_symbol(symbol), None)

    def get_inputs(
        self,
        symbols: Iterable[str],
        prices: Mapping[str, float],
    ) -> dict[str, IndicatorInputs]:
        result: dict[str, IndicatorInputs] = {}
        for raw in symbols:
            symbol = to_symbol(raw)
            item = self._inputs.get(symbol)
            if item is None:
                continue
            price = prices.get(symbol)
            result[symbol] = replace(item, price=price) if price else item
        return result


# ---------------------------------------------------------------------------
# Candle-based provider
# ---------------------------------------------------------------------------


def rsi(closes: Sequence[float], period: int = RSI_PERIOD) -> float:
    """Relative strength index from simple averages of the last *period* moves.

    With fewer than ``period + 1`` closes a short-window estimate is used
    (``50 + mean pct move * 1000``, clamped to 20-80); 50 with under two.
    """
    if len(closes) < period + 1:
        recent = list(closes[-5:])
        if len(recent) < 2:
            return 50.0
        moves = [(b - a) / a for a, b in zip(recent, recent[1:]) if a]
        if not moves:
            return 50.0
        return max(20.0, min(80.0, 50.0 + sum(moves) / len(moves) * 1000.0))

    deltas = [b - a for a, b in zip(closes, closes[1:])][-period:]
    avg_gain = sum(d for d in deltas if d > 0) / period
    avg_loss = sum(-d for d in deltas if d < 0) / period
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def technical_score(change_pct: float, rsi_value: float) -> float:
    """Dip-buying technical score on the 0-10 scale.

    Sharper drops with a lower RSI score higher; no dip and a neutral RSI
    is 5.0.
    """
    if change_pct <= -3.0 and rsi_value <= 30.0:
        return 9.0
    if change_pct <= -2.0 and rsi_value <= 35.0:
        return 8.0
    if change_pct <= -1.5 and rsi_value <= 40.0:
        return 7.0
    if change_pct <= -1.0:
        return 6.0
    if rsi_value <= 35.0:
        return 6.5
    return NEUTRAL_SCORE


def volume_ratio(
    candles: Sequence[Candle], window: int = _VOLUME_AVERAGE_WINDOW
) -> float | None:
    """Latest bar volume over the mean of the preceding *window* bars."""
    if len(candles) < 2:
        return None
    previous = [c.volume for c in candles[-window - 1 : -1]]
    average = sum(previous) / len(previous)
    if average <= 0:
        return None
    return candles[-1].volume / average


class CandleAnalysisProvider(AnalysisProvider):
    """Technical and volume inputs from daily candles.

    Parameters
    ----------
    market:
        Candle source.
    candle_count:
        Bars requested per symbol.
    sentiment, fundamental:
        Optional ``symbol -> score`` lookups on the 0-10 scale.  ``None`` or
        a missing score means neutral 5.0.
    """

    def __init__(
        self,
        market: MarketDataProvider,
        candle_count: int = DEFAULT_CANDLE_COUNT,
        sentiment: ScoreLookup | None = None,
        fundamental: ScoreLookup | None = None,
    ) -> None:
        self._market = market
        self._candle_count = candle_count
        self._sentiment = sentiment
        self._fundamental = fundamental

    def get_inputs(
        self,
        symbols: Iterable[str],
        prices: Mapping[str, float],
    ) -> dict[str, IndicatorInputs]:
        result: dict[str, IndicatorInputs] = {}
        for raw in symbols:
            symbol = to_symbol(raw)
            try:
                inputs = self.analyse(symbol, prices.get(symbol))
            except DataFetchError as exc:
                logger.warning("Skipping analysis for %s: %s", symbol, exc)
                continue
            if inputs is not None:
                result[symbol] = inputs
        return result

    def analyse(self, symbol: str, price: float | None = None) -> IndicatorInputs | None:
        """Inputs for one symbol, or ``None`` when no candles are available."""
        candles = self._market.get_candles(symbol, self._candle_count)
        if not candles:
            logger.warning("No candles for %s, skipping analysis", symbol)
            return None

        closes = [c.close for c in candles]
        last = candles[-1]
        current = price if price and price > 0 else last.close
        if len(closes) >= 2 and closes[-2] > 0:
            change = (current - closes[-2]) / closes[-2] * 100.0
        else:
            change = last.change_pct
        rsi_value = rsi(closes[:-1] + [current])

        return IndicatorInputs(
            technical=technical_score(change, rsi_value),
            sentiment=_lookup(self._sentiment, symbol),
            fundamental=_lookup(self._fundamental, symbol),
            price=current,
            volume_24h=last.notional,
            change_pct=change,
            rsi=rsi_value,
            volume_ratio=volume_ratio(candles),
        )


def _lookup(fn: ScoreLookup | None, symbol: str) -> float:
    if fn is None:
        return NEUTRAL_SCORE
    value = fn(symbol)
    return NEUTRAL_SCORE if value is None else float(value)
