"""Initial split of investable cash across the selected coins.

Three policies are available:

``equal`` (default)
    Every coin gets the same KRW amount.
``score_weighted``
    Amounts proportional to each coin's composite score (neutral 5.0 when
    a score is unknown).
``tiered``
    The strategy's tier fractions are applied to the tiers present in the
    selection (rescaled so they use all investable cash), then split evenly
    inside each tier.

All policies return amounts that sum to *investable*.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from papertrader.core.config import Allocation
from papertrader.core.constants import (
    NEUTRAL_SCORE,
    POLICY_EQUAL,
    POLICY_SCORE_WEIGHTED,
    POLICY_TIERED,
    TIER1,
    TIER1_SYMBOLS,
    TIER2,
    TIER2_SYMBOLS,
    TIER3,
)
from papertrader.core.exceptions import ValidationError
from papertrader.core.symbols import to_symbol

logger = logging.getLogger(__name__)


def tier_of(symbol: str) -> str:
    """Risk tier of a coin: BTC/ETH are TIER1, large alts TIER2, the rest TIER3."""
    coin = to_symbol(symbol)
    if coin in TIER1_SYMBOLS:
        return TIER1
    if coin in TIER2_SYMBOLS:
        return TIER2
    return TIER3


def split_equal(symbols: Sequence[str], investable: float) -> dict[str, float]:
    if not symbols:
        return {}
    share = investable / len(symbols)
    return {to_symbol(s): share for s in symbols}


def split_score_weighted(
    symbols: Sequence[str],
    investable: float,
    scores: Mapping[str, float],
) -> dict[str, float]:
    weights = {
        to_symbol(s): max(0.0, float(scores.get(to_symbol(s), NEUTRAL_SCORE))) for s in symbols
    }
    total = sum(weights.values())
    if total <= 0:
        logger.warning("All scores are zero; falling back to an equal split")
        return split_equal(symbols, investable)
    return {symbol: investable * weight / total for symbol, weight in weights.items()}


def split_tiered(
    symbols: Sequence[str],
    investable: float,
    allocation: Allocation,
) -> dict[str, float]:
    tier_fraction = {TIER1: allocation.tier1, TIER2: allocation.tier2, TIER3: allocation.tier3}
    members: dict[str, list[str]] = {}
    for raw in symbols:
        symbol = to_symbol(raw)
        members.setdefault(tier_of(symbol), []).append(symbol)

    present_total = sum(tier_fraction[tier] for tier in members)
    if present_total <= 0:
        logger.warning("Selected tiers have no allocation; falling back to an equal split")
        return split_equal(symbols, investable)

    amounts: dict[str, float] = {}
    for tier, coins in members.items():
        tier_amount = investable * tier_fraction[tier] / present_total
        for symbol in coins:
            amounts[symbol] = tier_amount / len(coins)
    # Keep the caller's ordering
    return {to_symbol(s): amounts[to_symbol(s)] for s in symbols}


def plan_allocation(
    policy: str,
    symbols: Sequence[str],
    investable: float,
    allocation: Allocation | None = None,
    scores: Mapping[str, float] | None = None,
) -> dict[str, float]:
    """Dispatch to the split function for *policy*.

    Raises :class:`ValidationError` for an unknown policy or a negative
    amount.
    """
    if investable < 0:
        raise ValidationError(f"investable={investable} must be >= 0.")
    if policy == POLICY_EQUAL:
        return split_equal(symbols, investable)
    if policy == POLICY_SCORE_WEIGHTED:
        return split_score_weighted(symbols, investable, scores or {})
    if policy == POLICY_TIERED:
        return split_tiered(symbols, investable, allocation or Allocation())
    raise ValidationError(f"unknown allocation policy {policy!r}")
