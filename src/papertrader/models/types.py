"""Domain-specific type aliases for papertrader.

These aliases document intent at call sites without introducing runtime cost.
"""

from __future__ import annotations

from typing import TypeAlias

# An Upbit market code, e.g. ``"KRW-BTC"``.
Market: TypeAlias = str

# A base coin ticker, e.g. ``"BTC"``.  Ledgers and signals are keyed by it.
CoinSymbol: TypeAlias = str

# A score on the 0-10 scale used by every sub-score and the composite.
Score: TypeAlias = float

# Latest trade price per coin, quoted in KRW.
PriceMap: TypeAlias = dict[str, float]

# Unix epoch in seconds.
Timestamp: TypeAlias = float
