"""Portfolio ledger: the only writer of cash and positions.

The ledger marks positions to market (:meth:`PortfolioLedger.revalue`),
applies simulated fills (:meth:`PortfolioLedger.record_trade`) and keeps
the capped trade history.  It performs no I/O; prices come in as plain
mappings from the scheduler.

When a :class:`~papertrader.models.session.TradingSession` is bound, the
ledger mirrors its cash balance and realised P&L onto it so the session
record always matches the books.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Mapping
from dataclasses import replace

from papertrader.core.constants import ACTION_BUY, DEFAULT_TRADE_HISTORY_CAP, QUANTITY_EPSILON
from papertrader.core.exceptions import InsufficientFundsError, ValidationError
from papertrader.core.symbols import to_symbol
from papertrader.models.position import Position
from papertrader.models.session import TradingSession
from papertrader.models.trade import Trade
from papertrader.portfolio.history import TradeHistory

logger = logging.getLogger(__name__)

# Cash comparisons tolerate float dust from quantity * price round trips.
_CASH_EPSILON = 1e-6


class PortfolioLedger:
    """Cash, open positions and trade history for one session.

    Parameters
    ----------
    cash:
        Opening cash balance in KRW.
    history:
        Trade history to append to.  Shared across sessions so that
        ``stop`` followed by ``start`` keeps earlier trades.
    """

    def __init__(
        self,
        cash: float = 0.0,
        history: TradeHistory | None = None,
        trade_cap: int = DEFAULT_TRADE_HISTORY_CAP,
    ) -> None:
        if cash < 0:
            raise ValidationError(f"cash={cash} must be >= 0.")
        self._cash = float(cash)
        self._realized = 0.0
        self._positions: dict[str, Position] = {}
        self._history = history if history is not None else TradeHistory(trade_cap)
        self._session: TradingSession | None = None
        self._lock = threading.RLock()

    # -- session binding ------------------------------------------------------

    def bind_session(self, session: TradingSession | None) -> None:
        """Mirror cash onto *session* from now on.  ``None`` unbinds."""
        with self._lock:
            self._session = session
            self._sync_session()

    def reset(self, cash: float = 0.0) -> None:
        """Drop all positions and set cash.  Trade history is kept."""
        with self._lock:
            self._positions.clear()
            self._cash = float(cash)
            self._realized = 0.0
            self._sync_session()

    def load(
        self,
        cash: float,
        positions: list[Position],
        realized_pnl: float = 0.0,
    ) -> None:
        """Restore books from a snapshot."""
        with self._lock:
            self._cash = float(cash)
            self._realized = float(realized_pnl)
            self._positions = {p.symbol: replace(p) for p in positions if p.quantity > 0}
            self._refresh_allocation()
            self._sync_session()

    # -- read access ----------------------------------------------------------

    @property
    def cash_balance(self) -> float:
        with self._lock:
            return self._cash

    @property
    def history(self) -> TradeHistory:
        return self._history

    @property
    def trades(self) -> list[Trade]:
        return self._history.items()

    @property
    def symbols(self) -> list[str]:
        with self._lock:
            return list(self._positions)

    def positions(self) -> list[Position]:
        """Copies of the open positions, in insertion order."""
        with self._lock:
            return [replace(p) for p in self._positions.values()]

    def get_position(self, symbol: str) -> Position | None:
        with self._lock:
            pos = self._positions.get(to_symbol(symbol))
            return replace(pos) if pos is not None else None

    def has_position(self, symbol: str) -> bool:
        with self._lock:
            return to_symbol(symbol) in self._positions

    # -- valuation ------------------------------------------------------------

    def invested_value(self) -> float:
        with self._lock:
            return sum(p.value for p in self._positions.values())

    def total_value(self) -> float:
        """``cash + Σ position value``."""
        with self._lock:
            return self._cash + self.invested_value()

    def unrealized_pnl(self) -> float:
        with self._lock:
            return sum(p.unrealized_pnl for p in self._positions.values())

    def realized_pnl(self) -> float:
        with self._lock:
            return self._realized

    def trades_today(self, now: float) -> int:
        return self._history.count_on_day(now)

    # -- mutation -------------------------------------------------------------

    def seed(
        self,
        allocations: Mapping[str, float],
        prices: Mapping[str, float],
        now: float,
    ) -> list[Position]:
        """Open the initial positions of a session.

        *allocations* maps symbol to KRW amount.  Each position is opened at
        its current price with ``avg_price == current_price``.  No trades are
        recorded.  Symbols without a usable price are skipped.
        """
        with self._lock:
            wanted = {to_symbol(s): float(a) for s, a in allocations.items() if a > 0}
            total = sum(wanted.values())
            if total > self._cash + _CASH_EPSILON:
                raise InsufficientFundsError(
                    f"seed needs {total:,.0f} KRW but only {self._cash:,.0f} is available"
                )
            opened: list[Position] = []
            for symbol, amount in wanted.items():
                price = _valid_price(prices.get(symbol))
                if price is None:
                    logger.warning("Not seeding %s: no valid price", symbol)
                    continue
                position = Position(
                    symbol=symbol,
                    quantity=amount / price,
                    avg_price=price,
                    current_price=price,
                    opened_at=now,
                )
                self._positions[symbol] = position
                self._cash -= amount
                opened.append(position)
            self._cash = max(0.0, self._cash)
            self._refresh_allocation()
            self._sync_session()
            logger.info(
                "Seeded %d positions, cash balance %.0f KRW", len(opened), self._cash
            )
            return [replace(p) for p in opened]

    def revalue(self, prices: Mapping[str, float]) -> list[str]:
        """Mark positions to *prices*.  Returns the symbols that were updated.

        Non-positive or non-numeric prices are skipped with a warning;
        positions missing from *prices* keep their last mark.  Calling twice
        with the same mapping leaves the same state.
        """
        updated: list[str] = []
        with self._lock:
            for raw_symbol, raw_price in prices.items():
                symbol = to_symbol(raw_symbol)
                position = self._positions.get(symbol)
                if position is None:
                    continue
                price = _valid_price(raw_price)
                if price is None:
                    logger.warning("Ignoring invalid price %r for %s", raw_price, symbol)
                    continue
                position.current_price = price
                updated.append(symbol)
            self._refresh_allocation()
        return updated

    def record_trade(self, trade: Trade) -> Trade:
        """Apply *trade* to cash and positions and append it to history.

        Returns the stored trade; for sells ``profit`` is filled in.

        Raises
        ------
        ValidationError
            Malformed trade, or a sell of an unknown symbol or of more than
            is held.
        InsufficientFundsError
            A buy costing more than the cash balance.
        """
        errors = trade.validate()
        if errors:
            raise ValidationError("; ".join(errors))

        with self._lock:
            symbol = to_symbol(trade.symbol)
            if trade.action == ACTION_BUY:
                stored = self._apply_buy(symbol, trade)
            else:
                stored = self._apply_sell(symbol, trade)
            self._history.append(stored)
            self._refresh_allocation()
            self._sync_session()

        logger.info(
            "%s %.8f %s @ %.2f (%s)%s",
            stored.action,
            stored.quantity,
            symbol,
            stored.price,
            stored.reason or "manual",
            f" profit {stored.profit:.0f}" if stored.profit is not None else "",
        )
        return stored

    def set_exit_stage(self, symbol: str, stage: int) -> None:
        with self._lock:
            position = self._positions.get(to_symbol(symbol))
            if position is not None:
                position.exit_stage = max(position.exit_stage, stage)

    # -- internals ------------------------------------------------------------

    def _apply_buy(self, symbol: str, trade: Trade) -> Trade:
        if trade.total > self._cash + _CASH_EPSILON:
            raise InsufficientFundsError(
                f"buy of {symbol} costs {trade.total:,.0f} KRW, cash is {self._cash:,.0f}"
            )
        position = self._positions.get(symbol)
        if position is None:
            self._positions[symbol] = Position(
                symbol=symbol,
                quantity=trade.quantity,
                avg_price=trade.price,
                current_price=trade.price,
                opened_at=trade.timestamp,
            )
        else:
            new_qty = position.quantity + trade.quantity
            position.avg_price = (
                position.quantity * position.avg_price + trade.quantity * trade.price
            ) / new_qty
            position.quantity = new_qty
            position.current_price = trade.price
        self._cash = max(0.0, self._cash - trade.total)
        return replace(trade, symbol=symbol, profit=None)

    def _apply_sell(self, symbol: str, trade: Trade) -> Trade:
        position = self._positions.get(symbol)
        if position is None:
            raise ValidationError(f"cannot sell {symbol}: no open position.")
        if trade.quantity > position.quantity * (1 + 1e-9) + QUANTITY_EPSILON:
            raise ValidationError(
                f"cannot sell {trade.quantity} {symbol}: only {position.quantity} held."
            )
        quantity = min(trade.quantity, position.quantity)
        profit = (trade.price - position.avg_price) * quantity
        position.quantity -= quantity
        position.current_price = trade.price
        if position.quantity <= QUANTITY_EPSILON:
            del self._positions[symbol]
        self._cash += trade.price * quantity
        self._realized += profit
        return replace(
            trade,
            symbol=symbol,
            quantity=quantity,
            total=trade.price * quantity,
            profit=profit,
        )

    def _refresh_allocation(self) -> None:
        total = self._cash + sum(p.value for p in self._positions.values())
        for position in self._positions.values():
            position.allocation_pct = position.value / total * 100.0 if total > 0 else 0.0

    def _sync_session(self) -> None:
        if self._session is not None:
            self._session.cash_balance = self._cash
            self._session.realized_pnl = self._realized


def _valid_price(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        price = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price
