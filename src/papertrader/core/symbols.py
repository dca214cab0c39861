"""Upbit market ↔ base-coin conversion.

Markets are ``"<QUOTE>-<COIN>"`` strings (``"KRW-BTC"``); ledgers, prices
and signals are keyed by the bare coin symbol (``"BTC"``).
"""

from __future__ import annotations

import re

from papertrader.core.constants import MARKET_SEPARATOR, QUOTE_ASSET
from papertrader.core.exceptions import ValidationError

_SYMBOL_RE = re.compile(r"^[A-Z0-9]{1,15}$")


def to_market(symbol: str, quote: str = QUOTE_ASSET) -> str:
    """Convert a base coin to an Upbit market.

    >>> to_market("btc")
    'KRW-BTC'
    """
    return f"{quote}{MARKET_SEPARATOR}{symbol.upper().strip()}"


def to_symbol(market: str) -> str:
    """Convert an Upbit market (or a bare symbol) to the base coin.

    >>> to_symbol("KRW-BTC")
    'BTC'
    >>> to_symbol("eth")
    'ETH'
    """
    return market.upper().strip().rsplit(MARKET_SEPARATOR, 1)[-1]


def normalize_market(value: str, quote: str = QUOTE_ASSET) -> str:
    """Accept ``"BTC"``, ``"krw-btc"`` or ``"KRW-BTC"`` and return ``"KRW-BTC"``.

    Raises :class:`ValidationError` for empty or malformed input.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("market must be a non-empty string.")
    text = value.upper().strip()
    if MARKET_SEPARATOR in text:
        market_quote, _, coin = text.partition(MARKET_SEPARATOR)
        if not _SYMBOL_RE.match(market_quote) or not _SYMBOL_RE.match(coin):
            raise ValidationError(f"malformed market {value!r}.")
        return f"{market_quote}{MARKET_SEPARATOR}{coin}"
    if not _SYMBOL_RE.match(text):
        raise ValidationError(f"malformed coin symbol {value!r}.")
    return to_market(text, quote)
