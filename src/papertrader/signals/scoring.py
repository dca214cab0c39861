"""Composite scoring, recommendation tiers and confidence buckets.

Every function here is pure: the same inputs always give the same output,
which is what makes signal generation reproducible in tests.

Composite weights (0-10 scale)::

    technical 0.30 + sentiment 0.25 + fundamental 0.25 + volume 0.20
"""

from __future__ import annotations

import math
import statistics

from papertrader.core.config import StrategyConfig
from papertrader.core.constants import (
    CONFIDENCE_HIGH,
    CONFIDENCE_HIGH_MIN,
    CONFIDENCE_LOW,
    CONFIDENCE_MEDIUM,
    CONFIDENCE_MEDIUM_MIN,
    DERIVED_CONFIDENCE_CEILING,
    DERIVED_CONFIDENCE_FLOOR,
    NEUTRAL_SCORE,
    RECOMMEND_BUY,
    RECOMMEND_HOLD,
    RECOMMEND_SELL,
    RECOMMEND_STRONG_BUY,
    SCORE_MAX,
    SCORE_MIN,
    VOLUME_BREAKPOINTS,
    VOLUME_FLOOR_SCORE,
    WEIGHT_FUNDAMENTAL,
    WEIGHT_SENTIMENT,
    WEIGHT_TECHNICAL,
    WEIGHT_VOLUME,
)
from papertrader.models.indicators import IndicatorInputs

WEIGHTS: dict[str, float] = {
    "technical": WEIGHT_TECHNICAL,
    "sentiment": WEIGHT_SENTIMENT,
    "fundamental": WEIGHT_FUNDAMENTAL,
    "volume": WEIGHT_VOLUME,
}


def clamp_score(value: float) -> float:
    """Clamp to 0-10; NaN becomes neutral."""
    if math.isnan(value):
        return NEUTRAL_SCORE
    return max(SCORE_MIN, min(SCORE_MAX, value))


def normalize(value: float, scale: float = SCORE_MAX) -> float:
    """Map *value* from ``0..scale`` onto ``0..10``."""
    if scale <= 0:
        raise ValueError("scale must be positive")
    return clamp_score(float(value) / scale * SCORE_MAX)


def volume_score(volume_24h: float) -> float:
    """Bucket 24h traded value (KRW) into a 0-10 volume sub-score.

    >>> volume_score(2e9), volume_score(5e8), volume_score(5e7), volume_score(1e6)
    (10.0, 7.5, 5.0, 2.5)
    """
    for threshold, score in VOLUME_BREAKPOINTS:
        if volume_24h >= threshold:
            return score
    return VOLUME_FLOOR_SCORE


def sub_scores(inputs: IndicatorInputs) -> dict[str, float]:
    """The four normalised sub-scores for *inputs*.

    An explicit ``volume_score`` wins over ``volume_24h``; the latter is
    bucketed with :func:`volume_score` and is already on the 0-10 scale.
    """
    if inputs.volume_score is not None:
        volume = normalize(inputs.volume_score, inputs.scale)
    else:
        volume = volume_score(inputs.volume_24h or 0.0)
    return {
        "technical": normalize(inputs.technical, inputs.scale),
        "sentiment": normalize(inputs.sentiment, inputs.scale),
        "fundamental": normalize(inputs.fundamental, inputs.scale),
        "volume": volume,
    }


def weighted_score(scores: dict[str, float]) -> float:
    return clamp_score(sum(scores[name] * weight for name, weight in WEIGHTS.items()))


def composite_score(inputs: IndicatorInputs) -> float:
    """Weighted composite of the normalised sub-scores, 0-10."""
    return weighted_score(sub_scores(inputs))


def recommend(score: float, strategy: StrategyConfig) -> str:
    """``STRONG_BUY``, ``BUY``, ``SELL`` or ``HOLD`` for *score*.

    A strong buy is always also a buy: presets whose ``strong_buy_score``
    sits below ``min_score`` still need ``min_score``.
    """
    buy = strategy.buy
    if score >= max(buy.strong_buy_score, buy.min_score):
        return RECOMMEND_STRONG_BUY
    if score >= buy.min_score:
        return RECOMMEND_BUY
    if score <= strategy.sell.sell_threshold:
        return RECOMMEND_SELL
    return RECOMMEND_HOLD


def derive_confidence(score: float, scores: dict[str, float]) -> float:
    """Confidence from distance to neutral and agreement between sub-scores.

    ``0.5 + 0.3 * |score - 5| / 5 + 0.2 * consistency``, clamped to
    ``[0.3, 0.95]``.  Consistency is ``1 - stdev / 5`` over the sub-scores.
    """
    values = list(scores.values())
    spread = statistics.pstdev(values) if len(values) > 1 else 0.0
    consistency = max(0.0, 1.0 - spread / NEUTRAL_SCORE)
    raw = 0.5 + 0.3 * abs(score - NEUTRAL_SCORE) / NEUTRAL_SCORE + 0.2 * consistency
    return max(DERIVED_CONFIDENCE_FLOOR, min(DERIVED_CONFIDENCE_CEILING, raw))


def confidence_value(inputs: IndicatorInputs, score: float, scores: dict[str, float]) -> float:
    """Upstream confidence when supplied, otherwise :func:`derive_confidence`."""
    if inputs.confidence is not None:
        return max(0.0, min(1.0, float(inputs.confidence)))
    return derive_confidence(score, scores)


def confidence_bucket(value: float) -> str:
    if value >= CONFIDENCE_HIGH_MIN:
        return CONFIDENCE_HIGH
    if value >= CONFIDENCE_MEDIUM_MIN:
        return CONFIDENCE_MEDIUM
    return CONFIDENCE_LOW
