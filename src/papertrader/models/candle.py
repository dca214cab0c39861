"""OHLCV candle data model.

Represents a single bar as returned by the Upbit candle endpoints.
Immutable so it can be safely shared between the analysis provider and
tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True, slots=True)
class Candle:
    """A single OHLCV bar.

    Parameters
    ----------
    timestamp:
        Bar open time as a Unix epoch in **seconds** (UTC).
    open, high, low, close:
        Prices for the bar in KRW.
    volume:
        Traded volume in the base coin during this bar.
    traded_value:
        Traded value in KRW during this bar.  ``0.0`` when the source does
        not report it; use :attr:`notional` for a best-effort figure.
    """

    timestamp: float
    open: float
    high: float
    low: float
    close: float
    volume: float
    traded_value: float = 0.0

    # -- derived properties ---------------------------------------------------

    @property
    def change_pct(self) -> float:
        """Percent change from open to close.  ``0.0`` for a zero open."""
        if self.open == 0.0:
            return 0.0
        return (self.close - self.open) / self.open * 100.0

    @property
    def notional(self) -> float:
        """KRW value traded: :attr:`traded_value`, else ``close * volume``."""
        if self.traded_value > 0:
            return self.traded_value
        return self.close * self.volume

    # -- construction ---------------------------------------------------------

    @classmethod
    def from_upbit(cls, payload: dict[str, Any]) -> Candle:
        """Build from one element of Upbit's ``/candles/*`` response.

        Raises ``KeyError``/``ValueError`` for malformed payloads.
        """
        raw_ts = payload["candle_date_time_utc"]
        opened = datetime.fromisoformat(str(raw_ts)).replace(tzinfo=timezone.utc)
        return cls(
            timestamp=opened.timestamp(),
            open=float(payload["opening_price"]),
            high=float(payload["high_price"]),
            low=float(payload["low_price"]),
            close=float(payload["trade_price"]),
            volume=float(payload["candle_acc_trade_volume"]),
            traded_value=float(payload.get("candle_acc_trade_price") or 0.0),
        )

    # -- validation -----------------------------------------------------------

    def validate(self) -> list[str]:
        """Return a list of validation errors (empty means valid)."""
        errors: list[str] = []
        if self.timestamp < 0:
            errors.append(f"timestamp={self.timestamp} must be >= 0.")
        for name in ("open", "high", "low", "close", "volume", "traded_value"):
            if getattr(self, name) < 0:
                errors.append(f"{name}={getattr(self, name)} must be >= 0.")
        if self.high < max(self.open, self.close, self.low):
            errors.append(f"high={self.high} must be the bar maximum.")
        if self.low > min(self.open, self.close):
            errors.append(f"low={self.low} must be the bar minimum.")
        return errors
