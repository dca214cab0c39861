"""Trading session data model.

One :class:`TradingSession` exists per run, from ``start`` to ``stop``.
``cash_balance`` is owned by the portfolio ledger; the controller only
changes ``status``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from papertrader.core.config import SessionConfig
from papertrader.core.constants import (
    STATUS_PAUSED,
    STATUS_RUNNING,
    STATUS_STOPPED,
)

_VALID_STATUSES = frozenset({STATUS_STOPPED, STATUS_RUNNING, STATUS_PAUSED})


@dataclass(slots=True)
class TradingSession:
    """Mutable state of the live (or last) session.

    Parameters
    ----------
    id:
        ``"session_<epoch millis>"``.
    started_at:
        Unix epoch (seconds).
    config:
        The :class:`SessionConfig` the session was started with.
    initial_amount:
        Starting capital in KRW.
    cash_balance:
        Uninvested KRW.  Only the ledger writes this.
    status:
        ``STOPPED``, ``RUNNING`` or ``PAUSED``.
    realized_pnl:
        Profit booked by sells so far.  Only the ledger writes this.
    """

    id: str
    started_at: float
    config: SessionConfig
    initial_amount: float
    cash_balance: float
    status: str = STATUS_STOPPED
    realized_pnl: float = 0.0

    @property
    def is_running(self) -> bool:
        return self.status == STATUS_RUNNING

    @property
    def is_paused(self) -> bool:
        return self.status == STATUS_PAUSED

    @property
    def is_active(self) -> bool:
        """Running or paused, i.e. not yet stopped."""
        return self.status in (STATUS_RUNNING, STATUS_PAUSED)

    def total_return_pct(self, total_value: float) -> float:
        """Percent return of *total_value* against :attr:`initial_amount`."""
        if self.initial_amount <= 0:
            return 0.0
        return (total_value - self.initial_amount) / self.initial_amount * 100.0

    # -- serialisation --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "started_at": self.started_at,
            "config": self.config.to_dict(),
            "initial_amount": self.initial_amount,
            "cash_balance": self.cash_balance,
            "status": self.status,
            "realized_pnl": self.realized_pnl,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TradingSession:
        status = str(data.get("status") or STATUS_STOPPED).upper()
        if status not in _VALID_STATUSES:
            raise ValueError(f"unknown session status {status!r}")
        return cls(
            id=str(data["id"]),
            started_at=float(data["started_at"]),
            config=SessionConfig.from_dict(data["config"]),
            initial_amount=float(data["initial_amount"]),
            cash_balance=float(data["cash_balance"]),
            status=status,
            realized_pnl=float(data.get("realized_pnl") or 0.0),
        )

    # -- validation -----------------------------------------------------------

    def validate(self) -> list[str]:
        errors: list[str] = []
        if not self.id:
            errors.append("id must not be empty.")
        if self.initial_amount <= 0:
            errors.append(f"initial_amount={self.initial_amount} must be > 0.")
        if self.cash_balance < 0:
            errors.append(f"cash_balance={self.cash_balance} must be >= 0.")
        if self.status not in _VALID_STATUSES:
            errors.append(f"status={self.status!r} is not a known status.")
        return errors


def make_session_id(started_at: float) -> str:
    return f"session_{int(started_at * 1000)}"
