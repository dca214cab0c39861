"""Per-symbol analysis inputs consumed by the signal generator."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class IndicatorInputs:
    """Sub-scores and raw readings for one coin at one tick.

    Parameters
    ----------
    technical, sentiment, fundamental:
        Sub-scores on the scale given by *scale* (``10`` by default; use
        ``100`` for percent-style sources).
    price:
        Current price in KRW.
    volume_score:
        Volume sub-score.  When ``None`` it is derived from *volume_24h*.
    volume_24h:
        24-hour traded value in KRW.
    confidence:
        Explicit 0-1 confidence from an upstream model, if any.
    change_pct:
        Recent percent price change (24h or last bar).
    rsi:
        14-period RSI, if available.
    volume_ratio:
        Latest volume divided by its recent average.
    scale:
        Upper bound of the sub-score scale.
    """

    technical: float
    sentiment: float
    fundamental: float
    price: float
    volume_score: float | None = None
    volume_24h: float | None = None
    confidence: float | None = None
    change_pct: float | None = None
    rsi: float | None = None
    volume_ratio: float | None = None
    scale: float = 10.0

    def validate(self) -> list[str]:
        errors: list[str] = []
        if self.scale <= 0:
            errors.append(f"scale={self.scale} must be > 0.")
        if self.price < 0:
            errors.append(f"price={self.price} must be >= 0.")
        if self.volume_score is None and self.volume_24h is None:
            errors.append("either volume_score or volume_24h is required.")
        if self.confidence is not None and not 0.0 <= self.confidence <= 1.0:
            errors.append(f"confidence={self.confidence} outside 0-1 range.")
        return errors
