"""Trade executor: strategy exit rules and signal execution.

Decides *when* to leave or enter a position and *how much*, then books
the resulting paper trades through the ledger.  Exit rules, checked in
order for every open position:

1. ``pnl <= stop_loss``: sell everything.
2. ``pnl >= profit_target_3``: sell everything.
3. ``pnl >= profit_target_2`` and stage < 2: sell half of what is left.
4. ``pnl >= profit_target_1`` and stage < 1: sell 30%.
5. RSI at or above ``rsi_overbought`` while in profit: sell everything.
6. Held longer than ``time_based_exit_days`` without reaching target 1:
   sell everything.

Signal execution respects the daily trade limit, ``max_positions``,
``max_single_position_pct`` and the reserve cash ratio.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from papertrader.core.config import StrategyConfig
from papertrader.core.constants import (
    ACTION_BUY,
    ACTION_SELL,
    MIN_ORDER_KRW,
    PARTIAL_EXIT_FRACTIONS,
    RECOMMEND_STRONG_BUY,
)
from papertrader.core.exceptions import InsufficientFundsError, ValidationError
from papertrader.models.indicators import IndicatorInputs
from papertrader.models.position import Position
from papertrader.models.signal import Signal
from papertrader.models.trade import Trade
from papertrader.portfolio.ledger import PortfolioLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExitDecision:
    """Sell *fraction* of the position in *symbol* for *reason*.

    ``stage`` is the exit stage to record when the position survives a
    partial exit.
    """

    symbol: str
    fraction: float
    reason: str
    stage: int | None = None


@dataclass(frozen=True)
class ExecutionResult:
    trades: tuple[Trade, ...] = ()
    executed_signal_ids: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()


class TradeExecutor:
    """Applies a strategy to a ledger.

    Parameters
    ----------
    ledger:
        The books to trade against.
    """

    def __init__(self, ledger: PortfolioLedger) -> None:
        self._ledger = ledger
        self._seq = itertools.count()

    # -- exits ----------------------------------------------------------------

    @staticmethod
    def exit_decision(
        position: Position,
        strategy: StrategyConfig,
        now: float,
        inputs: IndicatorInputs | None = None,
    ) -> ExitDecision | None:
        """First matching exit rule for *position*, or ``None`` to hold."""
        sell = strategy.sell
        pnl = position.pnl_percent
        symbol = position.symbol

        if pnl <= sell.stop_loss:
            return ExitDecision(symbol, 1.0, "stop_loss")
        if pnl >= sell.profit_target_3:
            return ExitDecision(symbol, 1.0, "profit_target_3")
        if pnl >= sell.profit_target_2 and position.exit_stage < 2:
            return ExitDecision(symbol, PARTIAL_EXIT_FRACTIONS[1], "profit_target_2", stage=2)
        if pnl >= sell.profit_target_1 and position.exit_stage < 1:
            return ExitDecision(symbol, PARTIAL_EXIT_FRACTIONS[0], "profit_target_1", stage=1)
        if inputs is not None and inputs.rsi is not None:
            if inputs.rsi >= sell.rsi_overbought and pnl > 0:
                return ExitDecision(symbol, 1.0, "rsi_overbought")
        if (
            sell.time_based_exit_days > 0
            and position.held_days(now) >= sell.time_based_exit_days
            and pnl < sell.profit_target_1
        ):
            return ExitDecision(symbol, 1.0, "time_exit")
        return None

    def apply_exits(
        self,
        strategy: StrategyConfig,
        now: float,
        inputs: Mapping[str, IndicatorInputs] | None = None,
    ) -> list[Trade]:
        """Evaluate every open position and book the resulting sells.

        Exits are not subject to the daily trade limit.
        """
        trades: list[Trade] = []
        for position in self._ledger.positions():
            decision = self.exit_decision(
                position, strategy, now, (inputs or {}).get(position.symbol)
            )
            if decision is None:
                continue
            quantity = position.quantity * decision.fraction
            if decision.fraction < 1.0 and quantity * position.current_price < MIN_ORDER_KRW:
                # Too small to split; take the whole position at this stage
                quantity = position.quantity
            trade = self._book(
                position.symbol, ACTION_SELL, position.current_price, quantity, now, decision.reason
            )
            if trade is None:
                continue
            trades.append(trade)
            if decision.stage is not None:
                self._ledger.set_exit_stage(position.symbol, decision.stage)
        return trades

    # -- entries --------------------------------------------------------------

    @staticmethod
    def buy_conditions_met(
        signal: Signal,
        strategy: StrategyConfig,
        inputs: IndicatorInputs | None = None,
    ) -> bool:
        """Count the buy conditions a BUY signal satisfies.

        Conditions: score at or above ``min_score``; RSI at or below
        ``rsi_oversold``; price change at or below ``buy_threshold``;
        volume ratio at or above ``volume_threshold_multiplier``.  Three are
        required with ``require_multiple_signals``, otherwise two.  Readings
        that are unavailable neither count nor are required.  STRONG_BUY
        signals pass on score alone.
        """
        if signal.recommendation == RECOMMEND_STRONG_BUY:
            return True
        buy = strategy.buy
        checks = [signal.total_score >= buy.min_score]
        if inputs is not None:
            if inputs.rsi is not None:
                checks.append(inputs.rsi <= buy.rsi_oversold)
            if inputs.change_pct is not None:
                checks.append(inputs.change_pct <= buy.buy_threshold)
            if inputs.volume_ratio is not None:
                checks.append(inputs.volume_ratio >= strategy.risk.volume_threshold_multiplier)
        required = min(3 if buy.require_multiple_signals else 2, len(checks))
        return sum(checks) >= required

    def buy_amount(self, strategy: StrategyConfig) -> float:
        """KRW to spend on one new position under the risk limits."""
        risk = strategy.risk
        total = self._ledger.total_value()
        reserve = total * risk.reserve_cash_ratio
        spendable = self._ledger.cash_balance - reserve
        cap = total * risk.max_single_position_pct / 100.0
        return max(0.0, min(spendable, cap))

    def execute_signals(
        self,
        signals: Sequence[Signal],
        strategy: StrategyConfig,
        prices: Mapping[str, float],
        now: float,
        inputs: Mapping[str, IndicatorInputs] | None = None,
    ) -> ExecutionResult:
        """Book trades for actionable signals, best score first."""
        inputs = inputs or {}
        trades: list[Trade] = []
        executed: list[str] = []
        skipped: list[str] = []

        for signal in signals:
            if signal.executed:
                continue
            if self._ledger.trades_today(now) >= strategy.risk.daily_trade_limit:
                logger.info("Daily trade limit %d reached", strategy.risk.daily_trade_limit)
                skipped.append(signal.id)
                break
            price = prices.get(signal.symbol) or signal.price
            if price <= 0:
                logger.warning("No usable price for %s, skipping signal", signal.symbol)
                skipped.append(signal.id)
                continue
            if signal.type == ACTION_SELL:
                trade = self._execute_sell(signal, price, now)
            else:
                trade = self._execute_buy(signal, strategy, price, now, inputs.get(signal.symbol))
            if trade is None:
                skipped.append(signal.id)
                continue
            trades.append(trade)
            executed.append(signal.id)

        return ExecutionResult(tuple(trades), tuple(executed), tuple(skipped))

    def _execute_buy(
        self,
        signal: Signal,
        strategy: StrategyConfig,
        price: float,
        now: float,
        inputs: IndicatorInputs | None,
    ) -> Trade | None:
        if self._ledger.has_position(signal.symbol):
            logger.debug("Already holding %s, ignoring buy signal", signal.symbol)
            return None
        if len(self._ledger.symbols) >= strategy.risk.max_positions:
            logger.debug("max_positions=%d reached", strategy.risk.max_positions)
            return None
        if not self.buy_conditions_met(signal, strategy, inputs):
            logger.debug("Buy conditions not met for %s", signal.symbol)
            return None
        amount = self.buy_amount(strategy)
        if amount < MIN_ORDER_KRW:
            logger.debug("Buy of %s skipped: only %.0f KRW spendable", signal.symbol, amount)
            return None
        return self._book(
            signal.symbol, ACTION_BUY, price, amount / price, now, signal.recommendation.lower()
        )

    def _execute_sell(self, signal: Signal, price: float, now: float) -> Trade | None:
        position = self._ledger.get_position(signal.symbol)
        if position is None:
            return None
        return self._book(signal.symbol, ACTION_SELL, price, position.quantity, now, "sell_signal")

    def _book(
        self,
        symbol: str,
        action: str,
        price: float,
        quantity: float,
        now: float,
        reason: str,
    ) -> Trade | None:
        trade = Trade.create(symbol, action, price, quantity, now, reason, seq=next(self._seq))
        try:
            return self._ledger.record_trade(trade)
        except (InsufficientFundsError, ValidationError) as exc:
            logger.warning("%s %s rejected: %s", action, symbol, exc)
            return None
