"""Tests for papertrader.signals.generator."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from papertrader.core.config import StrategyConfig
from papertrader.models.indicators import IndicatorInputs
from papertrader.signals.generator import SignalGenerator, rank

NOW = 1_700_050_800.0

Factory = Callable[..., IndicatorInputs]


class TestEvaluate:
    def test_buy_signal(self, make_inputs: Factory) -> None:
        inputs = make_inputs(technical=7.0, sentiment=6.0, fundamental=7.0, volume=6.5)
        signal = SignalGenerator(StrategyConfig()).evaluate("BTC", inputs, NOW)
        assert signal is not None
        assert signal.type == "BUY"
        assert signal.recommendation == "BUY"
        assert signal.total_score == pytest.approx(6.65)
        assert signal.id == "sig_BTC_1700050800000"
        assert signal.price == 1000.0
        assert signal.confidence == "MEDIUM"
        assert set(signal.sub_scores) == {"technical", "sentiment", "fundamental", "volume"}
        assert not signal.executed

    def test_hold_under_stricter_strategy(self, make_inputs: Factory) -> None:
        inputs = make_inputs(technical=7.0, sentiment=6.0, fundamental=7.0, volume=6.5)
        strict = StrategyConfig().with_buy(min_score=7.0)
        assert SignalGenerator(strict).evaluate("BTC", inputs, NOW) is None

    def test_sell_signal(self, make_inputs: Factory) -> None:
        inputs = make_inputs(technical=1.0, sentiment=2.0, fundamental=2.0, volume=2.0)
        signal = SignalGenerator(StrategyConfig()).evaluate("ETH", inputs, NOW)
        assert signal is not None
        assert (signal.type, signal.recommendation) == ("SELL", "SELL")

    def test_strong_buy(self, make_inputs: Factory) -> None:
        inputs = make_inputs(technical=10.0, sentiment=9.0, fundamental=9.0, volume=10.0)
        signal = SignalGenerator(StrategyConfig()).evaluate("SOL", inputs, NOW)
        assert signal is not None and signal.recommendation == "STRONG_BUY"

    def test_deterministic(self, make_inputs: Factory) -> None:
        inputs = make_inputs(technical=8.0, sentiment=8.0)
        gen = SignalGenerator(StrategyConfig())
        assert gen.evaluate("BTC", inputs, NOW) == gen.evaluate("BTC", inputs, NOW)


class TestGenerate:
    def test_skips_missing_inputs_and_holds(self, make_inputs: Factory) -> None:
        inputs = {
            "BTC": make_inputs(technical=9.0, sentiment=9.0, fundamental=9.0, volume=9.0),
            "ETH": make_inputs(),
        }
        signals = SignalGenerator(StrategyConfig()).generate(
            ["KRW-BTC", "KRW-ETH", "KRW-XRP"], inputs, NOW
        )
        assert [s.symbol for s in signals] == ["BTC"]

    def test_ranked_and_capped(self, make_inputs: Factory) -> None:
        scores = {"A": 7.0, "B": 9.5, "C": 8.0, "D": 1.0}
        inputs = {
            sym: make_inputs(technical=v, sentiment=v, fundamental=v, volume=v)
            for sym, v in scores.items()
        }
        signals = SignalGenerator(StrategyConfig(), output_cap=2).generate(scores, inputs, NOW)
        assert [s.symbol for s in signals] == ["B", "C"]

    def test_empty(self) -> None:
        assert SignalGenerator(StrategyConfig()).generate([], {}, NOW) == []


class TestRank:
    def test_ties_newest_first_then_symbol(self, make_inputs: Factory) -> None:
        gen = SignalGenerator(StrategyConfig())
        inputs = make_inputs(technical=8.0, sentiment=8.0, fundamental=8.0, volume=8.0)
        old = gen.evaluate("A", inputs, NOW)
        new = gen.evaluate("B", inputs, NOW + 60)
        same = gen.evaluate("C", inputs, NOW + 60)
        assert old is not None and new is not None and same is not None
        assert [s.symbol for s in rank([old, same, new], 10)] == ["B", "C", "A"]

    def test_zero_cap(self) -> None:
        assert rank([], 0) == []
