"""Trading signal data model.

A :class:`Signal` is the output of the signal generator: a scored,
tiered buy or sell suggestion for one coin at one price.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from papertrader.core.constants import (
    SCORE_MAX,
    SCORE_MIN,
    VALID_ACTIONS,
    VALID_CONFIDENCE,
)


@dataclass(frozen=True)
class Signal:
    """A scored recommendation for a single coin.

    Parameters
    ----------
    id:
        Deterministic identifier, ``sig_<SYMBOL>_<epoch millis>``.
    symbol:
        Base coin, e.g. ``"BTC"``.
    type:
        ``"BUY"`` or ``"SELL"``.
    total_score:
        Weighted composite on the 0-10 scale.
    confidence:
        ``"LOW"``, ``"MEDIUM"`` or ``"HIGH"``.
    recommendation:
        ``"STRONG_BUY"``, ``"BUY"`` or ``"SELL"``.  HOLD never becomes a
        signal.
    price:
        Price the signal was generated at.
    timestamp:
        Unix epoch (seconds).
    executed:
        ``True`` once the trade executor acted on it.
    reason:
        Short human-readable explanation.
    sub_scores:
        The normalised ``technical``/``sentiment``/``fundamental``/``volume``
        inputs, kept for display.
    confidence_value:
        The 0-1 number the bucket was derived from.
    """

    id: str
    symbol: str
    type: str
    total_score: float
    confidence: str
    recommendation: str
    price: float
    timestamp: float
    executed: bool = False
    reason: str = ""
    sub_scores: dict[str, float] = field(default_factory=dict)
    confidence_value: float = 0.0

    def mark_executed(self) -> Signal:
        return replace(self, executed=True)

    # -- serialisation --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "type": self.type,
            "total_score": self.total_score,
            "confidence": self.confidence,
            "recommendation": self.recommendation,
            "price": self.price,
            "timestamp": self.timestamp,
            "executed": self.executed,
            "reason": self.reason,
            "sub_scores": dict(self.sub_scores),
            "confidence_value": self.confidence_value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Signal:
        sub_scores = data.get("sub_scores") or {}
        if not isinstance(sub_scores, dict):
            raise TypeError("sub_scores must be a mapping")
        return cls(
            id=str(data["id"]),
            symbol=str(data["symbol"]),
            type=str(data["type"]).upper(),
            total_score=float(data["total_score"]),
            confidence=str(data["confidence"]).upper(),
            recommendation=str(data.get("recommendation") or data["type"]).upper(),
            price=float(data["price"]),
            timestamp=float(data["timestamp"]),
            executed=bool(data.get("executed", False)),
            reason=str(data.get("reason") or ""),
            sub_scores={str(k): float(v) for k, v in sub_scores.items()},
            confidence_value=float(data.get("confidence_value") or 0.0),
        )

    # -- validation -----------------------------------------------------------

    def validate(self) -> list[str]:
        """Return a list of validation errors (empty means valid)."""
        errors: list[str] = []
        if not self.symbol:
            errors.append("symbol must not be empty.")
        if self.type not in VALID_ACTIONS:
            errors.append(f"type={self.type!r} must be 'BUY' or 'SELL'.")
        if not SCORE_MIN <= self.total_score <= SCORE_MAX:
            errors.append(f"total_score={self.total_score} outside 0-10 range.")
        if self.confidence not in VALID_CONFIDENCE:
            errors.append(f"confidence={self.confidence!r} is not a known bucket.")
        if self.price < 0:
            errors.append(f"price={self.price} must be >= 0.")
        if self.timestamp < 0:
            errors.append(f"timestamp={self.timestamp} must be >= 0.")
        return errors


def make_signal_id(symbol: str, timestamp: float) -> str:
    return f"sig_{symbol}_{int(timestamp * 1000)}"
