"""Turn per-symbol analysis inputs into ranked buy/sell signals."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from papertrader.core.config import StrategyConfig
from papertrader.core.constants import (
    ACTION_BUY,
    ACTION_SELL,
    DEFAULT_SIGNAL_OUTPUT_CAP,
    RECOMMEND_HOLD,
    RECOMMEND_SELL,
)
from papertrader.core.symbols import to_symbol
from papertrader.models.indicators import IndicatorInputs
from papertrader.models.signal import Signal, make_signal_id
from papertrader.signals import scoring

logger = logging.getLogger(__name__)


def rank(signals: Iterable[Signal], cap: int) -> list[Signal]:
    """Sort by score descending, newest first on ties, and keep *cap*.

    Symbol order breaks any remaining tie so output is stable.
    """
    ordered = sorted(signals, key=lambda s: (-s.total_score, -s.timestamp, s.symbol))
    return ordered[: max(0, cap)]


class SignalGenerator:
    """Scores inputs with the session strategy.

    Pure apart from logging: no randomness, ids derived from symbol and
    timestamp.
    """

    def __init__(
        self, strategy: StrategyConfig, output_cap: int = DEFAULT_SIGNAL_OUTPUT_CAP
    ) -> None:
        self.strategy = strategy
        self.output_cap = output_cap

    def evaluate(self, symbol: str, inputs: IndicatorInputs, now: float) -> Signal | None:
        """Signal for one symbol, or ``None`` when the recommendation is HOLD."""
        subs = scoring.sub_scores(inputs)
        score = scoring.weighted_score(subs)
        recommendation = scoring.recommend(score, self.strategy)
        if recommendation == RECOMMEND_HOLD:
            return None
        conf = scoring.confidence_value(inputs, score, subs)
        signal_type = ACTION_SELL if recommendation == RECOMMEND_SELL else ACTION_BUY
        return Signal(
            id=make_signal_id(symbol, now),
            symbol=symbol,
            type=signal_type,
            total_score=round(score, 4),
            confidence=scoring.confidence_bucket(conf),
            recommendation=recommendation,
            price=inputs.price,
            timestamp=now,
            reason=_describe(recommendation, score, subs),
            sub_scores={k: round(v, 4) for k, v in subs.items()},
            confidence_value=round(conf, 4),
        )

    def generate(
        self,
        symbols: Iterable[str],
        inputs: Mapping[str, IndicatorInputs],
        now: float,
    ) -> list[Signal]:
        """Signals for *symbols* that have inputs, ranked and capped.

        Symbols missing from *inputs* are skipped.
        """
        produced: list[Signal] = []
        for raw in symbols:
            symbol = to_symbol(raw)
            item = inputs.get(symbol)
            if item is None:
                logger.debug("No analysis inputs for %s", symbol)
                continue
            signal = self.evaluate(symbol, item, now)
            if signal is not None:
                produced.append(signal)
        ranked = rank(produced, self.output_cap)
        if ranked:
            logger.info(
                "Generated %d signals: %s",
                len(ranked),
                ", ".join(f"{s.symbol} {s.recommendation} {s.total_score:.2f}" for s in ranked),
            )
        return ranked


def _describe(recommendation: str, score: float, subs: dict[str, float]) -> str:
    strongest = max(subs, key=subs.__getitem__)
    weakest = min(subs, key=subs.__getitem__)
    return (
        f"{recommendation} at {score:.2f}/10 "
        f"(strongest {strongest} {subs[strongest]:.1f}, weakest {weakest} {subs[weakest]:.1f})"
    )
