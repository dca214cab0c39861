"""Executed paper trade data model.

A :class:`Trade` is an immutable record of one simulated fill.  The
ledger validates it, applies it to cash and positions, and appends it to
the capped trade history (newest first).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from papertrader.core.constants import ACTION_BUY, ACTION_SELL, VALID_ACTIONS


@dataclass(frozen=True, slots=True)
class Trade:
    """Record of a single simulated trade.

    Parameters
    ----------
    id:
        Unique, deterministic identifier (see :func:`make_trade_id`).
    timestamp:
        Unix epoch (seconds) of the fill.
    symbol:
        Base coin, e.g. ``"BTC"``.
    action:
        ``"BUY"`` or ``"SELL"``.
    price:
        Fill price in KRW.
    quantity:
        Quantity in base coin units.
    total:
        ``price * quantity`` in KRW.
    profit:
        Realised profit in KRW for sells, filled in by the ledger.
        ``None`` for buys.
    reason:
        Why the trade happened, e.g. ``"signal"``, ``"stop_loss"``,
        ``"profit_target_2"``.
    """

    id: str
    timestamp: float
    symbol: str
    action: str
    price: float
    quantity: float
    total: float
    profit: float | None = None
    reason: str = ""

    @classmethod
    def create(
        cls,
        symbol: str,
        action: str,
        price: float,
        quantity: float,
        timestamp: float,
        reason: str = "",
        seq: int = 0,
    ) -> Trade:
        """Build a trade with ``total`` and ``id`` filled in."""
        return cls(
            id=make_trade_id(symbol, action, timestamp, seq),
            timestamp=timestamp,
            symbol=symbol,
            action=action,
            price=price,
            quantity=quantity,
            total=price * quantity,
            reason=reason,
        )

    # -- convenience ----------------------------------------------------------

    @property
    def is_buy(self) -> bool:
        return self.action == ACTION_BUY

    @property
    def is_sell(self) -> bool:
        return self.action == ACTION_SELL

    # -- serialisation --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "symbol": self.symbol,
            "action": self.action,
            "price": self.price,
            "quantity": self.quantity,
            "total": self.total,
            "profit": self.profit,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Trade:
        """Rebuild from :meth:`to_dict` output.

        Raises ``KeyError``/``ValueError``/``TypeError`` on malformed records
        so the caller can reset the slice.
        """
        price = float(data["price"])
        quantity = float(data["quantity"])
        total = data.get("total")
        return cls(
            id=str(data["id"]),
            timestamp=float(data["timestamp"]),
            symbol=str(data["symbol"]),
            action=str(data["action"]).upper(),
            price=price,
            quantity=quantity,
            total=float(total) if total is not None else price * quantity,
            profit=_opt_float(data.get("profit")),
            reason=str(data.get("reason") or ""),
        )

    # -- validation -----------------------------------------------------------

    def validate(self) -> list[str]:
        """Return a list of validation errors (empty means valid)."""
        errors: list[str] = []
        if not self.symbol:
            errors.append("symbol must not be empty.")
        if self.action not in VALID_ACTIONS:
            errors.append(f"action={self.action!r} must be 'BUY' or 'SELL'.")
        if not self.price > 0:
            errors.append(f"price={self.price} must be > 0.")
        if not self.quantity > 0:
            errors.append(f"quantity={self.quantity} must be > 0.")
        if self.total < 0:
            errors.append(f"total={self.total} must be >= 0.")
        if self.timestamp < 0:
            errors.append(f"timestamp={self.timestamp} must be >= 0.")
        return errors


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_trade_id(symbol: str, action: str, timestamp: float, seq: int = 0) -> str:
    """``"trd_BTC_buy_1700000000000_0"``: symbol, side, epoch millis, sequence."""
    return f"trd_{symbol}_{action.lower()}_{int(timestamp * 1000)}_{seq}"


def _opt_float(val: object) -> float | None:
    if val is None:
        return None
    try:
        return float(val)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
