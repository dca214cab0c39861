"""Open position data model.

A :class:`Position` tracks one simulated holding: cost basis, the last
mark price, and how many profit-target stages have already been taken.

Unlike the other models this is *mutable* because the ledger revalues
positions in place on every tick.  Only
:class:`~papertrader.portfolio.ledger.PortfolioLedger` should mutate it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from papertrader.core.constants import SECONDS_PER_DAY
from papertrader.core.symbols import to_market


@dataclass(slots=True)
class Position:
    """A single open coin position.

    Parameters
    ----------
    symbol:
        Base coin, e.g. ``"BTC"``.
    quantity:
        Quantity held (base coin units).
    avg_price:
        Volume-weighted average entry price.
    current_price:
        Last mark price applied by ``revalue``.
    market:
        Upbit market; derived from *symbol* when empty.
    opened_at:
        Unix epoch (seconds) of the first buy.
    exit_stage:
        Profit-target stages already taken (0-2).  Target 3 closes the
        position, so the stage never reaches 3 on an open position.
    allocation_pct:
        Share of total portfolio value, recomputed on every revalue.
    """

    symbol: str
    quantity: float
    avg_price: float
    current_price: float
    market: str = ""
    opened_at: float = 0.0
    exit_stage: int = 0
    allocation_pct: float = 0.0

    def __post_init__(self) -> None:
        if not self.market:
            self.market = to_market(self.symbol)

    # -- derived properties ---------------------------------------------------

    @property
    def value(self) -> float:
        """Mark-to-market value: ``quantity * current_price``."""
        return self.quantity * self.current_price

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.avg_price

    @property
    def unrealized_pnl(self) -> float:
        return self.value - self.cost_basis

    @property
    def pnl_percent(self) -> float:
        """Unrealised P&L percent against :attr:`avg_price`.  ``0.0`` if unpriced."""
        if self.avg_price == 0.0:
            return 0.0
        return (self.current_price - self.avg_price) / self.avg_price * 100.0

    def held_days(self, now: float) -> float:
        return max(0.0, now - self.opened_at) / SECONDS_PER_DAY

    # -- serialisation --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "market": self.market,
            "quantity": self.quantity,
            "avg_price": self.avg_price,
            "current_price": self.current_price,
            "opened_at": self.opened_at,
            "exit_stage": self.exit_stage,
            "allocation_pct": self.allocation_pct,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Position:
        """Rebuild from :meth:`to_dict` output.  Raises on missing core fields."""
        return cls(
            symbol=str(data["symbol"]),
            quantity=float(data["quantity"]),
            avg_price=float(data["avg_price"]),
            current_price=float(data["current_price"]),
            market=str(data.get("market") or ""),
            opened_at=float(data.get("opened_at") or 0.0),
            exit_stage=int(data.get("exit_stage") or 0),
            allocation_pct=float(data.get("allocation_pct") or 0.0),
        )

    # -- validation -----------------------------------------------------------

    def validate(self) -> list[str]:
        """Return a list of validation errors (empty means valid)."""
        errors: list[str] = []
        if not self.symbol:
            errors.append("symbol must not be empty.")
        if self.quantity < 0:
            errors.append(f"quantity={self.quantity} must be >= 0.")
        if self.avg_price <= 0:
            errors.append(f"avg_price={self.avg_price} must be > 0.")
        if self.current_price <= 0:
            errors.append(f"current_price={self.current_price} must be > 0.")
        if not 0 <= self.exit_stage <= 2:
            errors.append(f"exit_stage={self.exit_stage} outside 0-2 range.")
        return errors
