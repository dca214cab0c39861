"""Tests for papertrader.signals.analysis."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from papertrader.core.exceptions import DataFetchError
from papertrader.core.market_client import StaticMarketData
from papertrader.models.candle import Candle
from papertrader.models.indicators import IndicatorInputs
from papertrader.signals.analysis import (
    CandleAnalysisProvider,
    StaticAnalysisProvider,
    rsi,
    technical_score,
    volume_ratio,
)

DAY = 86_400.0


def _candles(closes: list[float], volumes: list[float] | None = None) -> list[Candle]:
    volumes = volumes or [1.0] * len(closes)
    return [
        Candle(i * DAY, close, close + 1, close - 1, close, volume)
        for i, (close, volume) in enumerate(zip(closes, volumes))
    ]


# ---------------------------------------------------------------------------
# Indicators
# ---------------------------------------------------------------------------


class TestRsi:
    def test_only_gains(self) -> None:
        assert rsi([float(c) for c in range(1, 17)]) == 100.0

    def test_only_losses(self) -> None:
        assert rsi([float(c) for c in range(17, 1, -1)]) == 0.0

    def test_balanced_moves(self) -> None:
        closes = [100.0 + (i % 2) for i in range(16)]
        assert rsi(closes) == pytest.approx(50.0)

    def test_short_history_estimate(self) -> None:
        assert rsi([100.0, 101.0]) == pytest.approx(60.0)
        assert rsi([100.0, 150.0]) == 80.0
        assert rsi([100.0]) == 50.0
        assert rsi([]) == 50.0


class TestTechnicalScore:
    @pytest.mark.parametrize(
        ("change", "rsi_value", "expected"),
        [
            (-3.5, 25.0, 9.0),
            (-2.5, 33.0, 8.0),
            (-1.6, 39.0, 7.0),
            (-1.2, 60.0, 6.0),
            (0.0, 30.0, 6.5),
            (1.0, 50.0, 5.0),
        ],
    )
    def test_tiers(self, change: float, rsi_value: float, expected: float) -> None:
        assert technical_score(change, rsi_value) == expected


class TestVolumeRatio:
    def test_spike(self) -> None:
        candles = _candles([100.0] * 21, [1.0] * 20 + [3.0])
        assert volume_ratio(candles) == pytest.approx(3.0)

    def test_too_short(self) -> None:
        assert volume_ratio(_candles([100.0])) is None

    def test_zero_average(self) -> None:
        assert volume_ratio(_candles([100.0, 100.0], [0.0, 5.0])) is None


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class TestStaticAnalysisProvider:
    def test_repriced_to_tick(self, make_inputs: Callable[..., IndicatorInputs]) -> None:
        provider = StaticAnalysisProvider({"KRW-BTC": make_inputs(price=1.0)})
        result = provider.get_inputs(["BTC", "ETH"], {"BTC": 55.0})
        assert set(result) == {"BTC"}
        assert result["BTC"].price == 55.0

    def test_set_and_remove(self, make_inputs: Callable[..., IndicatorInputs]) -> None:
        provider = StaticAnalysisProvider()
        provider.set_inputs("eth", make_inputs(price=3.0))
        assert provider.get_inputs(["ETH"], {})["ETH"].price == 3.0
        provider.remove("ETH")
        assert provider.get_inputs(["ETH"], {}) == {}


class TestCandleAnalysisProvider:
    def test_dip_scores_high(self) -> None:
        market = StaticMarketData(candles={"BTC": _candles([100.0] * 21)})
        provider = CandleAnalysisProvider(market, sentiment=lambda s: 8.0)
        inputs = provider.get_inputs(["KRW-BTC"], {"BTC": 97.0})["BTC"]
        assert inputs.change_pct == pytest.approx(-3.0)
        assert inputs.rsi == 0.0
        assert inputs.technical == 9.0
        assert inputs.sentiment == 8.0
        assert inputs.fundamental == 5.0
        assert inputs.price == 97.0
        assert inputs.volume_24h == pytest.approx(100.0)
        assert inputs.volume_ratio == pytest.approx(1.0)

    def test_falls_back_to_last_close(self) -> None:
        market = StaticMarketData(candles={"BTC": _candles([100.0, 102.0])})
        inputs = CandleAnalysisProvider(market).analyse("BTC")
        assert inputs is not None
        assert inputs.price == 102.0
        assert inputs.change_pct == pytest.approx(2.0)

    def test_lookup_none_is_neutral(self) -> None:
        market = StaticMarketData(candles={"BTC": _candles([100.0, 100.0])})
        provider = CandleAnalysisProvider(market, fundamental=lambda s: None)
        assert provider.get_inputs(["BTC"], {})["BTC"].fundamental == 5.0

    def test_no_candles_omitted(self) -> None:
        provider = CandleAnalysisProvider(StaticMarketData())
        assert provider.get_inputs(["BTC"], {}) == {}

    def test_fetch_error_omitted(self) -> None:
        market = MagicMock()
        market.get_candles.side_effect = DataFetchError("down")
        assert CandleAnalysisProvider(market).get_inputs(["BTC"], {}) == {}
