"""Tests for papertrader.portfolio.executor."""

from __future__ import annotations

import pytest

from papertrader.core.config import StrategyConfig
from papertrader.models.indicators import IndicatorInputs
from papertrader.models.position import Position
from papertrader.models.signal import Signal, make_signal_id
from papertrader.portfolio.executor import TradeExecutor
from papertrader.portfolio.ledger import PortfolioLedger

NOW = 1_700_050_800.0
DAY = 86_400.0
BALANCED = StrategyConfig()


def _position(pnl_pct: float, stage: int = 0, opened_at: float = NOW) -> Position:
    return Position(
        symbol="BTC",
        quantity=0.1,
        avg_price=100.0,
        current_price=100.0 * (1 + pnl_pct / 100.0),
        opened_at=opened_at,
        exit_stage=stage,
    )


def _signal(symbol: str, recommendation: str, score: float, price: float = 100_000.0) -> Signal:
    return Signal(
        id=make_signal_id(symbol, NOW),
        symbol=symbol,
        type="SELL" if recommendation == "SELL" else "BUY",
        total_score=score,
        confidence="MEDIUM",
        recommendation=recommendation,
        price=price,
        timestamp=NOW,
    )


def _inputs(**readings: float) -> IndicatorInputs:
    return IndicatorInputs(
        technical=5.0, sentiment=5.0, fundamental=5.0, price=1.0, volume_score=5.0, **readings
    )


# ---------------------------------------------------------------------------
# Exit rules
# ---------------------------------------------------------------------------


class TestExitDecision:
    def test_stop_loss(self) -> None:
        decision = TradeExecutor.exit_decision(_position(-6.5), BALANCED, NOW)
        assert decision is not None
        assert decision.reason == "stop_loss"
        assert decision.fraction == 1.0

    def test_target_three_closes(self) -> None:
        decision = TradeExecutor.exit_decision(_position(9.0, stage=2), BALANCED, NOW)
        assert decision is not None and decision.reason == "profit_target_3"
        assert decision.fraction == 1.0

    def test_target_two_sells_half(self) -> None:
        decision = TradeExecutor.exit_decision(_position(5.5), BALANCED, NOW)
        assert decision is not None
        assert (decision.reason, decision.fraction, decision.stage) == ("profit_target_2", 0.5, 2)

    def test_target_one_sells_thirty_percent(self) -> None:
        decision = TradeExecutor.exit_decision(_position(3.5), BALANCED, NOW)
        assert decision is not None
        assert (decision.reason, decision.fraction, decision.stage) == ("profit_target_1", 0.3, 1)

    def test_stage_already_taken(self) -> None:
        assert TradeExecutor.exit_decision(_position(5.5, stage=2), BALANCED, NOW) is None
        assert TradeExecutor.exit_decision(_position(3.5, stage=1), BALANCED, NOW) is None

    def test_rsi_overbought_only_in_profit(self) -> None:
        hot = _inputs(rsi=75.0)
        decision = TradeExecutor.exit_decision(_position(1.0), BALANCED, NOW, hot)
        assert decision is not None and decision.reason == "rsi_overbought"
        assert TradeExecutor.exit_decision(_position(-1.0), BALANCED, NOW, hot) is None

    def test_time_exit(self) -> None:
        stale = _position(1.0, opened_at=NOW - 8 * DAY)
        decision = TradeExecutor.exit_decision(stale, BALANCED, NOW)
        assert decision is not None and decision.reason == "time_exit"

    def test_time_exit_disabled(self) -> None:
        strategy = BALANCED.with_sell(time_based_exit_days=0)
        stale = _position(1.0, opened_at=NOW - 30 * DAY)
        assert TradeExecutor.exit_decision(stale, strategy, NOW) is None

    def test_hold(self) -> None:
        assert TradeExecutor.exit_decision(_position(1.0), BALANCED, NOW) is None


class TestApplyExits:
    def test_partial_exit_records_stage(self) -> None:
        ledger = PortfolioLedger(cash=0.0)
        ledger.load(0.0, [Position("BTC", 0.08, 50_000_000.0, 52_000_000.0, opened_at=NOW)])
        trades = TradeExecutor(ledger).apply_exits(BALANCED, NOW)
        assert len(trades) == 1
        assert trades[0].reason == "profit_target_1"
        assert trades[0].quantity == pytest.approx(0.024)
        btc = ledger.get_position("BTC")
        assert btc is not None
        assert btc.exit_stage == 1
        assert btc.quantity == pytest.approx(0.056)

    def test_second_pass_does_not_repeat_stage(self) -> None:
        ledger = PortfolioLedger(cash=0.0)
        ledger.load(0.0, [Position("BTC", 0.08, 50_000_000.0, 52_000_000.0, opened_at=NOW)])
        executor = TradeExecutor(ledger)
        executor.apply_exits(BALANCED, NOW)
        assert executor.apply_exits(BALANCED, NOW + 30) == []

    def test_tiny_partial_sells_everything(self) -> None:
        ledger = PortfolioLedger(cash=0.0)
        ledger.load(0.0, [Position("XRP", 10.0, 1_000.0, 1_040.0, opened_at=NOW)])
        trades = TradeExecutor(ledger).apply_exits(BALANCED, NOW)
        assert len(trades) == 1
        assert not ledger.has_position("XRP")

    def test_stop_loss_closes(self) -> None:
        ledger = PortfolioLedger(cash=0.0)
        ledger.load(0.0, [Position("ETH", 1.0, 3_000_000.0, 2_700_000.0, opened_at=NOW)])
        trades = TradeExecutor(ledger).apply_exits(BALANCED, NOW)
        assert [t.reason for t in trades] == ["stop_loss"]
        assert trades[0].profit == pytest.approx(-300_000.0)
        assert ledger.cash_balance == pytest.approx(2_700_000.0)


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


class TestBuyConditions:
    def test_strong_buy_bypasses_count(self) -> None:
        signal = _signal("SOL", "STRONG_BUY", 9.5)
        assert TradeExecutor.buy_conditions_met(signal, BALANCED, _inputs(rsi=80.0))

    def test_all_conditions(self) -> None:
        inputs = _inputs(rsi=25.0, change_pct=-3.0, volume_ratio=2.0)
        assert TradeExecutor.buy_conditions_met(_signal("SOL", "BUY", 7.0), BALANCED, inputs)

    def test_only_score(self) -> None:
        inputs = _inputs(rsi=50.0, change_pct=0.0, volume_ratio=1.0)
        assert not TradeExecutor.buy_conditions_met(_signal("SOL", "BUY", 7.0), BALANCED, inputs)

    def test_missing_readings_lower_requirement(self) -> None:
        assert TradeExecutor.buy_conditions_met(_signal("SOL", "BUY", 7.0), BALANCED, None)

    def test_require_multiple_signals(self) -> None:
        inputs = _inputs(rsi=25.0, change_pct=0.0, volume_ratio=1.0)
        signal = _signal("SOL", "BUY", 7.0)
        assert not TradeExecutor.buy_conditions_met(signal, BALANCED, inputs)
        relaxed = BALANCED.with_buy(require_multiple_signals=False)
        assert TradeExecutor.buy_conditions_met(signal, relaxed, inputs)


class TestExecuteSignals:
    @pytest.fixture
    def ledger(self) -> PortfolioLedger:
        return PortfolioLedger(cash=10_000_000.0)

    def test_buy_size_capped(self, ledger: PortfolioLedger) -> None:
        executor = TradeExecutor(ledger)
        assert executor.buy_amount(BALANCED) == pytest.approx(1_500_000.0)
        result = executor.execute_signals(
            [_signal("SOL", "STRONG_BUY", 9.5)], BALANCED, {"SOL": 100_000.0}, NOW
        )
        assert len(result.trades) == 1
        assert result.trades[0].total == pytest.approx(1_500_000.0)
        assert result.executed_signal_ids == (make_signal_id("SOL", NOW),)
        assert ledger.cash_balance == pytest.approx(8_500_000.0)

    def test_uses_tick_price(self, ledger: PortfolioLedger) -> None:
        result = TradeExecutor(ledger).execute_signals(
            [_signal("SOL", "STRONG_BUY", 9.5, price=1.0)], BALANCED, {"SOL": 50_000.0}, NOW
        )
        assert result.trades[0].price == 50_000.0

    def test_no_pyramiding(self, ledger: PortfolioLedger) -> None:
        executor = TradeExecutor(ledger)
        executor.execute_signals([_signal("SOL", "STRONG_BUY", 9.5)], BALANCED, {}, NOW)
        again = _signal("SOL", "STRONG_BUY", 9.6)
        result = executor.execute_signals([again], BALANCED, {}, NOW + 30)
        assert result.trades == ()
        assert result.skipped == (again.id,)

    def test_max_positions(self, ledger: PortfolioLedger) -> None:
        strategy = BALANCED.with_risk(max_positions=1)
        result = TradeExecutor(ledger).execute_signals(
            [_signal("SOL", "STRONG_BUY", 9.5), _signal("ADA", "STRONG_BUY", 9.4)],
            strategy,
            {},
            NOW,
        )
        assert [t.symbol for t in result.trades] == ["SOL"]

    def test_daily_trade_limit(self, ledger: PortfolioLedger) -> None:
        strategy = BALANCED.with_risk(daily_trade_limit=1)
        result = TradeExecutor(ledger).execute_signals(
            [_signal("SOL", "STRONG_BUY", 9.5), _signal("ADA", "STRONG_BUY", 9.4)],
            strategy,
            {},
            NOW,
        )
        assert len(result.trades) == 1
        assert len(result.skipped) == 1

    def test_sell_signal_closes_held_position(self, ledger: PortfolioLedger) -> None:
        executor = TradeExecutor(ledger)
        executor.execute_signals([_signal("SOL", "STRONG_BUY", 9.5)], BALANCED, {}, NOW)
        result = executor.execute_signals(
            [_signal("SOL", "SELL", 2.0)], BALANCED, {"SOL": 110_000.0}, NOW + 60
        )
        assert [t.action for t in result.trades] == ["SELL"]
        assert result.trades[0].reason == "sell_signal"
        assert not ledger.has_position("SOL")

    def test_sell_signal_without_position_is_skipped(self, ledger: PortfolioLedger) -> None:
        result = TradeExecutor(ledger).execute_signals(
            [_signal("SOL", "SELL", 2.0)], BALANCED, {}, NOW
        )
        assert result.trades == ()

    def test_unpriced_signal_skipped(self, ledger: PortfolioLedger) -> None:
        unpriced = _signal("SOL", "STRONG_BUY", 9.5, price=0.0)
        priced = _signal("ADA", "STRONG_BUY", 9.4)
        result = TradeExecutor(ledger).execute_signals(
            [unpriced, priced], BALANCED, {"SOL": 0.0}, NOW
        )
        assert [t.symbol for t in result.trades] == ["ADA"]
        assert result.skipped == (unpriced.id,)
        assert not ledger.has_position("SOL")

    def test_below_minimum_order(self) -> None:
        ledger = PortfolioLedger(cash=5_000.0)
        result = TradeExecutor(ledger).execute_signals(
            [_signal("SOL", "STRONG_BUY", 9.5)], BALANCED, {}, NOW
        )
        assert result.trades == ()

    def test_already_executed_ignored(self, ledger: PortfolioLedger) -> None:
        done = _signal("SOL", "STRONG_BUY", 9.5).mark_executed()
        result = TradeExecutor(ledger).execute_signals([done], BALANCED, {}, NOW)
        assert result.trades == () and result.skipped == ()

    def test_trade_ids_unique(self, ledger: PortfolioLedger) -> None:
        executor = TradeExecutor(ledger)
        result = executor.execute_signals(
            [_signal("SOL", "STRONG_BUY", 9.5), _signal("ADA", "STRONG_BUY", 9.4)],
            BALANCED,
            {},
            NOW,
        )
        ids = [t.id for t in result.trades]
        assert len(ids) == len(set(ids)) == 2
