"""Validated strategy, session and engine configuration.

:class:`StrategyConfig` is the immutable bundle of allocation fractions and
buy/sell/risk thresholds applied to a paper-trading session.  Four named
presets ship with the package; ``balanced`` is the default.

:class:`EngineSettings` holds the scheduler cadence and history caps and is
loaded from ``papertrader_settings.json``.  Both loaders follow the same
rule: missing or unparseable values fall back to defaults, validation
problems are logged and never raise.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from papertrader.core.constants import (
    ALLOCATION_TOLERANCE,
    DEFAULT_ALLOCATION,
    DEFAULT_BUY_THRESHOLD,
    DEFAULT_CANDLE_COUNT,
    DEFAULT_DAILY_TARGET_PCT,
    DEFAULT_DAILY_TRADE_LIMIT,
    DEFAULT_FEED_CAP,
    DEFAULT_INITIAL_AMOUNT,
    DEFAULT_MAX_POSITIONS,
    DEFAULT_MAX_SINGLE_POSITION_PCT,
    DEFAULT_MIN_BUY_SCORE,
    DEFAULT_NOTIFICATION_CAP,
    DEFAULT_PROFIT_TARGETS,
    DEFAULT_REFRESH_COOLDOWN_SECONDS,
    DEFAULT_REQUIRE_MULTIPLE_SIGNALS,
    DEFAULT_RESERVE_CASH_RATIO,
    DEFAULT_RSI_OVERBOUGHT,
    DEFAULT_RSI_OVERSOLD,
    DEFAULT_SELL_THRESHOLD,
    DEFAULT_SIGNAL_HISTORY_CAP,
    DEFAULT_SIGNAL_OUTPUT_CAP,
    DEFAULT_STOP_LOSS,
    DEFAULT_STRONG_BUY_SCORE,
    DEFAULT_SYMBOLS_PER_TICK,
    DEFAULT_TICK_INTERVAL_SECONDS,
    DEFAULT_TIME_BASED_EXIT_DAYS,
    DEFAULT_TRADE_HISTORY_CAP,
    DEFAULT_VOLUME_THRESHOLD_MULTIPLIER,
    POLICY_EQUAL,
    SCORE_MAX,
    SCORE_MIN,
    STORE_DIRNAME,
    VALID_POLICIES,
)
from papertrader.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

ALLOCATION_KEYS: tuple[str, ...] = ("cash", "tier1", "tier2", "tier3")


# ---------------------------------------------------------------------------
# Strategy building blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Allocation:
    """Portfolio split between reserve cash and the three risk tiers.

    Values are fractions.  They are expected to sum to 1; use
    :meth:`normalized` to force that while keeping the ratios.
    """

    cash: float = DEFAULT_ALLOCATION["cash"]
    tier1: float = DEFAULT_ALLOCATION["tier1"]
    tier2: float = DEFAULT_ALLOCATION["tier2"]
    tier3: float = DEFAULT_ALLOCATION["tier3"]

    @property
    def total(self) -> float:
        return self.cash + self.tier1 + self.tier2 + self.tier3

    @property
    def invested(self) -> float:
        """Fraction of capital allocated to tiers (everything except cash)."""
        return self.tier1 + self.tier2 + self.tier3

    def normalized(self) -> Allocation:
        """Scale all four fractions so they sum to 1.

        Returned unchanged when already within tolerance or when the total
        is not positive (the latter is reported by ``validate``).
        """
        total = self.total
        if total <= 0 or abs(total - 1.0) <= ALLOCATION_TOLERANCE:
            return self
        return Allocation(
            cash=self.cash / total,
            tier1=self.tier1 / total,
            tier2=self.tier2 / total,
            tier3=self.tier3 / total,
        )

    def adjusted(self, key: str, value: float) -> Allocation:
        """Set one fraction and rescale the other three to fill the remainder.

        When the other three are all zero the remainder is split evenly
        between them.
        """
        if key not in ALLOCATION_KEYS:
            raise KeyError(key)
        value = max(0.0, min(1.0, float(value)))
        current = self.to_dict()
        others = [k for k in ALLOCATION_KEYS if k != key]
        other_sum = sum(current[k] for k in others)
        remaining = 1.0 - value
        updated = {key: value}
        for k in others:
            if other_sum == 0:
                updated[k] = remaining / len(others)
            else:
                updated[k] = current[k] * remaining / other_sum
        return Allocation(**updated).normalized()

    def validate(self) -> list[str]:
        errors: list[str] = []
        for key in ALLOCATION_KEYS:
            val = getattr(self, key)
            if not 0.0 <= val <= 1.0:
                errors.append(f"allocation.{key}={val} outside 0-1 range.")
        if self.total <= 0:
            errors.append("allocation fractions must sum to a positive number.")
        return errors

    def to_dict(self) -> dict[str, float]:
        return {key: getattr(self, key) for key in ALLOCATION_KEYS}

    @classmethod
    def from_dict(cls, data: Any) -> Allocation:
        if not isinstance(data, dict):
            return cls()
        # The dashboard stores tiers as t1/t2/t3
        return cls(
            cash=_safe_float(data.get("cash"), DEFAULT_ALLOCATION["cash"]),
            tier1=_safe_float(_first(data, "tier1", "t1"), DEFAULT_ALLOCATION["tier1"]),
            tier2=_safe_float(_first(data, "tier2", "t2"), DEFAULT_ALLOCATION["tier2"]),
            tier3=_safe_float(_first(data, "tier3", "t3"), DEFAULT_ALLOCATION["tier3"]),
        )


@dataclass(frozen=True)
class BuyConditions:
    """Entry thresholds.

    ``buy_threshold`` is a percent price change (negative = dip) counted
    as one of the buy conditions alongside the score and RSI checks.
    """

    min_score: float = DEFAULT_MIN_BUY_SCORE
    rsi_oversold: float = DEFAULT_RSI_OVERSOLD
    strong_buy_score: float = DEFAULT_STRONG_BUY_SCORE
    buy_threshold: float = DEFAULT_BUY_THRESHOLD
    require_multiple_signals: bool = DEFAULT_REQUIRE_MULTIPLE_SIGNALS

    def validate(self) -> list[str]:
        errors: list[str] = []
        if not SCORE_MIN <= self.min_score <= SCORE_MAX:
            errors.append(f"buy.min_score={self.min_score} outside 0-10 range.")
        if not SCORE_MIN <= self.strong_buy_score <= SCORE_MAX:
            errors.append(f"buy.strong_buy_score={self.strong_buy_score} outside 0-10 range.")
        if not 0 < self.rsi_oversold < 100:
            errors.append(f"buy.rsi_oversold={self.rsi_oversold} outside 0-100 range.")
        return errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "min_score": self.min_score,
            "rsi_oversold": self.rsi_oversold,
            "strong_buy_score": self.strong_buy_score,
            "buy_threshold": self.buy_threshold,
            "require_multiple_signals": self.require_multiple_signals,
        }

    @classmethod
    def from_dict(cls, data: Any) -> BuyConditions:
        if not isinstance(data, dict):
            return cls()
        return cls(
            min_score=_safe_float(_first(data, "min_score", "minScore"), DEFAULT_MIN_BUY_SCORE),
            rsi_oversold=_safe_float(
                _first(data, "rsi_oversold", "rsiOversold"), DEFAULT_RSI_OVERSOLD
            ),
            strong_buy_score=_safe_float(
                _first(data, "strong_buy_score", "strongBuyScore"), DEFAULT_STRONG_BUY_SCORE
            ),
            buy_threshold=_safe_float(
                _first(data, "buy_threshold", "buyThreshold"), DEFAULT_BUY_THRESHOLD
            ),
            require_multiple_signals=_safe_bool(
                _first(data, "require_multiple_signals", "requireMultipleSignals"),
                DEFAULT_REQUIRE_MULTIPLE_SIGNALS,
            ),
        )


@dataclass(frozen=True)
class SellConditions:
    """Exit thresholds.  Profit targets and stop loss are percentages."""

    profit_target_1: float = DEFAULT_PROFIT_TARGETS[0]
    profit_target_2: float = DEFAULT_PROFIT_TARGETS[1]
    profit_target_3: float = DEFAULT_PROFIT_TARGETS[2]
    stop_loss: float = DEFAULT_STOP_LOSS
    sell_threshold: float = DEFAULT_SELL_THRESHOLD
    rsi_overbought: float = DEFAULT_RSI_OVERBOUGHT
    time_based_exit_days: int = DEFAULT_TIME_BASED_EXIT_DAYS

    @property
    def profit_targets(self) -> tuple[float, float, float]:
        return (self.profit_target_1, self.profit_target_2, self.profit_target_3)

    def validate(self) -> list[str]:
        errors: list[str] = []
        t1, t2, t3 = self.profit_targets
        if not 0 < t1 < t2 < t3:
            errors.append(f"sell profit targets ({t1}, {t2}, {t3}) must be positive and ascending.")
        if self.stop_loss >= 0:
            errors.append(f"sell.stop_loss={self.stop_loss} must be negative.")
        if not SCORE_MIN <= self.sell_threshold <= SCORE_MAX:
            errors.append(f"sell.sell_threshold={self.sell_threshold} outside 0-10 range.")
        if not 0 < self.rsi_overbought < 100:
            errors.append(f"sell.rsi_overbought={self.rsi_overbought} outside 0-100 range.")
        if self.time_based_exit_days < 0:
            errors.append(f"sell.time_based_exit_days={self.time_based_exit_days} must be >= 0.")
        return errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "profit_target_1": self.profit_target_1,
            "profit_target_2": self.profit_target_2,
            "profit_target_3": self.profit_target_3,
            "stop_loss": self.stop_loss,
            "sell_threshold": self.sell_threshold,
            "rsi_overbought": self.rsi_overbought,
            "time_based_exit_days": self.time_based_exit_days,
        }

    @classmethod
    def from_dict(cls, data: Any) -> SellConditions:
        if not isinstance(data, dict):
            return cls()
        return cls(
            profit_target_1=_safe_float(
                _first(data, "profit_target_1", "profitTarget1"), DEFAULT_PROFIT_TARGETS[0]
            ),
            profit_target_2=_safe_float(
                _first(data, "profit_target_2", "profitTarget2"), DEFAULT_PROFIT_TARGETS[1]
            ),
            profit_target_3=_safe_float(
                _first(data, "profit_target_3", "profitTarget3"), DEFAULT_PROFIT_TARGETS[2]
            ),
            stop_loss=_safe_float(_first(data, "stop_loss", "stopLoss"), DEFAULT_STOP_LOSS),
            sell_threshold=_safe_float(
                _first(data, "sell_threshold", "sellThreshold"), DEFAULT_SELL_THRESHOLD
            ),
            rsi_overbought=_safe_float(
                _first(data, "rsi_overbought", "rsiOverbought"), DEFAULT_RSI_OVERBOUGHT
            ),
            time_based_exit_days=_safe_int(
                _first(data, "time_based_exit_days", "timeBasedExit"),
                DEFAULT_TIME_BASED_EXIT_DAYS,
            ),
        )


@dataclass(frozen=True)
class RiskManagement:
    """Position-count, reserve and daily-activity limits."""

    max_positions: int = DEFAULT_MAX_POSITIONS
    reserve_cash_ratio: float = DEFAULT_RESERVE_CASH_RATIO
    max_single_position_pct: float = DEFAULT_MAX_SINGLE_POSITION_PCT
    daily_trade_limit: int = DEFAULT_DAILY_TRADE_LIMIT
    volume_threshold_multiplier: float = DEFAULT_VOLUME_THRESHOLD_MULTIPLIER

    def validate(self) -> list[str]:
        errors: list[str] = []
        if self.max_positions < 1:
            errors.append(f"risk.max_positions={self.max_positions} must be >= 1.")
        if not 0.0 <= self.reserve_cash_ratio < 1.0:
            errors.append(f"risk.reserve_cash_ratio={self.reserve_cash_ratio} outside 0-1 range.")
        if not 0.0 < self.max_single_position_pct <= 100.0:
            errors.append(
                f"risk.max_single_position_pct={self.max_single_position_pct} outside 0-100 range."
            )
        if self.daily_trade_limit < 0:
            errors.append(f"risk.daily_trade_limit={self.daily_trade_limit} must be >= 0.")
        if self.volume_threshold_multiplier <= 0:
            errors.append(
                f"risk.volume_threshold_multiplier={self.volume_threshold_multiplier} must be > 0."
            )
        return errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_positions": self.max_positions,
            "reserve_cash_ratio": self.reserve_cash_ratio,
            "max_single_position_pct": self.max_single_position_pct,
            "daily_trade_limit": self.daily_trade_limit,
            "volume_threshold_multiplier": self.volume_threshold_multiplier,
        }

    @classmethod
    def from_dict(cls, data: Any) -> RiskManagement:
        if not isinstance(data, dict):
            return cls()
        return cls(
            max_positions=_safe_int(
                _first(data, "max_positions", "maxCoinsToTrade", "maxPositions"),
                DEFAULT_MAX_POSITIONS,
            ),
            reserve_cash_ratio=_safe_float(
                _first(data, "reserve_cash_ratio", "reserveCashRatio"),
                DEFAULT_RESERVE_CASH_RATIO,
            ),
            max_single_position_pct=_safe_float(
                _first(data, "max_single_position_pct", "maxSinglePosition"),
                DEFAULT_MAX_SINGLE_POSITION_PCT,
            ),
            daily_trade_limit=_safe_int(
                _first(data, "daily_trade_limit", "dailyTradeLimit"), DEFAULT_DAILY_TRADE_LIMIT
            ),
            volume_threshold_multiplier=_safe_float(
                _first(data, "volume_threshold_multiplier", "volumeThreshold"),
                DEFAULT_VOLUME_THRESHOLD_MULTIPLIER,
            ),
        )


# ---------------------------------------------------------------------------
# StrategyConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StrategyConfig:
    """Immutable strategy applied to a session.

    Build one from a preset (:meth:`preset`), a dashboard-style dict
    (:meth:`from_dict`) or a JSON file (:meth:`from_file`), or construct it
    directly in tests.  ``with_*`` helpers return modified copies.
    """

    name: str = "balanced"
    allocation: Allocation = field(default_factory=Allocation)
    buy: BuyConditions = field(default_factory=BuyConditions)
    sell: SellConditions = field(default_factory=SellConditions)
    risk: RiskManagement = field(default_factory=RiskManagement)

    # -- derived ----------------------------------------------------------

    @property
    def is_normalized(self) -> bool:
        return abs(self.allocation.total - 1.0) <= ALLOCATION_TOLERANCE

    def normalized(self) -> StrategyConfig:
        """Copy whose allocation fractions sum to 1, ratios preserved."""
        allocation = self.allocation.normalized()
        if allocation is self.allocation:
            return self
        return replace(self, allocation=allocation)

    def with_risk(self, **changes: Any) -> StrategyConfig:
        return replace(self, risk=replace(self.risk, **changes))

    def with_buy(self, **changes: Any) -> StrategyConfig:
        return replace(self, buy=replace(self.buy, **changes))

    def with_sell(self, **changes: Any) -> StrategyConfig:
        return replace(self, sell=replace(self.sell, **changes))

    # -- validation -------------------------------------------------------

    def validate(self) -> list[str]:
        """Return a list of human-readable validation errors (empty = OK)."""
        errors: list[str] = []
        if not self.name:
            errors.append("strategy name must not be empty.")
        errors.extend(self.allocation.validate())
        errors.extend(self.buy.validate())
        errors.extend(self.sell.validate())
        errors.extend(self.risk.validate())
        if self.sell.rsi_overbought <= self.buy.rsi_oversold:
            errors.append(
                f"rsi_overbought={self.sell.rsi_overbought} must exceed "
                f"rsi_oversold={self.buy.rsi_oversold}."
            )
        if self.sell.sell_threshold >= self.buy.min_score:
            errors.append(
                f"sell_threshold={self.sell.sell_threshold} must be below "
                f"min_score={self.buy.min_score}."
            )
        return errors

    # -- serialisation ----------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "allocation": self.allocation.to_dict(),
            "buy": self.buy.to_dict(),
            "sell": self.sell.to_dict(),
            "risk": self.risk.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> StrategyConfig:
        """Build from a dict, falling back to defaults key by key.

        Accepts the snake_case layout produced by :meth:`to_dict` and the
        dashboard's camelCase layout (``buyConditions``, ``sellConditions``,
        ``riskManagement``, ``allocations`` with ``t1``..``t3``).
        """
        if not isinstance(data, dict):
            return cls()
        return cls(
            name=str(data.get("name") or "custom"),
            allocation=Allocation.from_dict(_first(data, "allocation", "allocations")),
            buy=BuyConditions.from_dict(_first(data, "buy", "buyConditions")),
            sell=SellConditions.from_dict(_first(data, "sell", "sellConditions")),
            risk=RiskManagement.from_dict(_first(data, "risk", "riskManagement")),
        )

    @classmethod
    def from_file(cls, path: Path) -> StrategyConfig:
        """Load a strategy from JSON.  A missing or corrupt file gives the default."""
        try:
            data = json.loads(path.read_text(encoding="utf-8")) or {}
        except (OSError, json.JSONDecodeError, TypeError) as exc:
            logger.warning("Could not read strategy from %s: %s", path, exc)
            data = {}
        cfg = cls.from_dict(data) if data else cls()
        for err in cfg.validate():
            logger.warning("Strategy validation: %s", err)
        return cfg

    @classmethod
    def preset(cls, name: str) -> StrategyConfig:
        """Return a named preset.  Raises :class:`ConfigError` for unknown names."""
        try:
            return PRESETS[name]
        except KeyError:
            raise ConfigError(
                f"unknown strategy preset {name!r}; choose from {sorted(PRESETS)}"
            ) from None


PRESETS: dict[str, StrategyConfig] = {
    "ultra_conservative": StrategyConfig(
        name="ultra_conservative",
        allocation=Allocation(cash=0.7, tier1=0.2, tier2=0.08, tier3=0.02),
        buy=BuyConditions(
            min_score=9.0,
            rsi_oversold=38.0,
            strong_buy_score=8.5,
            buy_threshold=-1.0,
            require_multiple_signals=True,
        ),
        sell=SellConditions(
            profit_target_1=2.0,
            profit_target_2=4.0,
            profit_target_3=6.0,
            stop_loss=-4.0,
            sell_threshold=2.0,
            rsi_overbought=66.0,
            time_based_exit_days=10,
        ),
        risk=RiskManagement(
            max_positions=3,
            reserve_cash_ratio=0.5,
            max_single_position_pct=10.0,
            daily_trade_limit=4,
            volume_threshold_multiplier=1.2,
        ),
    ),
    "conservative": StrategyConfig(
        name="conservative",
        allocation=Allocation(cash=0.55, tier1=0.3, tier2=0.12, tier3=0.03),
        buy=BuyConditions(
            min_score=8.0,
            rsi_oversold=36.0,
            strong_buy_score=8.8,
            buy_threshold=-1.5,
            require_multiple_signals=True,
        ),
        sell=SellConditions(
            profit_target_1=3.0,
            profit_target_2=5.0,
            profit_target_3=7.0,
            stop_loss=-5.0,
            sell_threshold=2.5,
            rsi_overbought=68.0,
            time_based_exit_days=8,
        ),
        risk=RiskManagement(
            max_positions=4,
            reserve_cash_ratio=0.4,
            max_single_position_pct=12.0,
            daily_trade_limit=5,
            volume_threshold_multiplier=1.3,
        ),
    ),
    "balanced": StrategyConfig(),
    "aggressive": StrategyConfig(
        name="aggressive",
        allocation=Allocation(cash=0.2, tier1=0.5, tier2=0.2, tier3=0.1),
        buy=BuyConditions(
            min_score=4.5,
            rsi_oversold=28.0,
            strong_buy_score=9.5,
            buy_threshold=-3.0,
            require_multiple_signals=False,
        ),
        sell=SellConditions(
            profit_target_1=4.0,
            profit_target_2=8.0,
            profit_target_3=12.0,
            stop_loss=-8.0,
            sell_threshold=4.0,
            rsi_overbought=72.0,
            time_based_exit_days=5,
        ),
        risk=RiskManagement(
            max_positions=6,
            reserve_cash_ratio=0.15,
            max_single_position_pct=20.0,
            daily_trade_limit=10,
            volume_threshold_multiplier=1.8,
        ),
    ),
}


# ---------------------------------------------------------------------------
# SessionConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SessionConfig:
    """Everything needed to start one session.

    Parameters
    ----------
    coins:
        Upbit markets (``"KRW-BTC"``) or bare symbols.
    initial_amount:
        Starting capital in KRW.
    strategy:
        Strategy applied for the whole session.
    allocation_policy:
        How investable cash is split across coins at start:
        ``"equal"`` (default), ``"score_weighted"`` or ``"tiered"``.
    """

    coins: tuple[str, ...] = ()
    initial_amount: float = DEFAULT_INITIAL_AMOUNT
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    allocation_policy: str = POLICY_EQUAL

    def validate(self) -> list[str]:
        errors: list[str] = []
        if not self.coins:
            errors.append("at least one coin must be selected.")
        if len(set(self.coins)) != len(self.coins):
            errors.append("coin list contains duplicates.")
        if not self.initial_amount > 0:
            errors.append(f"initial_amount={self.initial_amount} must be > 0.")
        if self.allocation_policy not in VALID_POLICIES:
            errors.append(
                f"allocation_policy={self.allocation_policy!r} must be one of "
                f"{sorted(VALID_POLICIES)}."
            )
        errors.extend(self.strategy.validate())
        return errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "coins": list(self.coins),
            "initial_amount": self.initial_amount,
            "strategy": self.strategy.to_dict(),
            "allocation_policy": self.allocation_policy,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionConfig:
        raw_coins = data.get("coins") or []
        if not isinstance(raw_coins, list):
            raise TypeError("coins must be a list")
        return cls(
            coins=tuple(str(c) for c in raw_coins),
            initial_amount=float(data["initial_amount"]),
            strategy=StrategyConfig.from_dict(data.get("strategy")),
            allocation_policy=str(data.get("allocation_policy") or POLICY_EQUAL),
        )


# ---------------------------------------------------------------------------
# EngineSettings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineSettings:
    """Scheduler cadence, history caps and execution switches."""

    tick_interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS
    refresh_cooldown_seconds: float = DEFAULT_REFRESH_COOLDOWN_SECONDS
    trade_history_cap: int = DEFAULT_TRADE_HISTORY_CAP
    signal_history_cap: int = DEFAULT_SIGNAL_HISTORY_CAP
    signal_output_cap: int = DEFAULT_SIGNAL_OUTPUT_CAP
    notification_cap: int = DEFAULT_NOTIFICATION_CAP
    symbols_per_tick: int = DEFAULT_SYMBOLS_PER_TICK
    feed_cap: int = DEFAULT_FEED_CAP
    candle_count: int = DEFAULT_CANDLE_COUNT
    auto_execute: bool = True
    daily_target_pct: float = DEFAULT_DAILY_TARGET_PCT
    allocation_policy: str = POLICY_EQUAL
    store_dir: str = STORE_DIRNAME

    @classmethod
    def from_file(cls, path: Path) -> EngineSettings:
        """Load from ``papertrader_settings.json``.

        Missing or unparseable values fall back to defaults.  Validation
        warnings are logged but never raise.
        """
        try:
            data: dict[str, Any] = json.loads(path.read_text(encoding="utf-8")) or {}
            if not isinstance(data, dict):
                data = {}
        except (OSError, json.JSONDecodeError, TypeError) as exc:
            logger.warning("Could not read settings from %s: %s", path, exc)
            data = {}

        policy = str(data.get("allocation_policy") or POLICY_EQUAL)
        settings = cls(
            tick_interval_seconds=_safe_float(
                data.get("tick_interval_seconds"), DEFAULT_TICK_INTERVAL_SECONDS
            ),
            refresh_cooldown_seconds=_safe_float(
                data.get("refresh_cooldown_seconds"), DEFAULT_REFRESH_COOLDOWN_SECONDS
            ),
            trade_history_cap=_safe_int(data.get("trade_history_cap"), DEFAULT_TRADE_HISTORY_CAP),
            signal_history_cap=_safe_int(
                data.get("signal_history_cap"), DEFAULT_SIGNAL_HISTORY_CAP
            ),
            signal_output_cap=_safe_int(data.get("signal_output_cap"), DEFAULT_SIGNAL_OUTPUT_CAP),
            notification_cap=_safe_int(data.get("notification_cap"), DEFAULT_NOTIFICATION_CAP),
            symbols_per_tick=_safe_int(data.get("symbols_per_tick"), DEFAULT_SYMBOLS_PER_TICK),
            feed_cap=_safe_int(data.get("feed_cap"), DEFAULT_FEED_CAP),
            candle_count=_safe_int(data.get("candle_count"), DEFAULT_CANDLE_COUNT),
            auto_execute=_safe_bool(data.get("auto_execute"), True),
            daily_target_pct=_safe_float(data.get("daily_target_pct"), DEFAULT_DAILY_TARGET_PCT),
            allocation_policy=policy if policy in VALID_POLICIES else POLICY_EQUAL,
            store_dir=str(data.get("store_dir") or STORE_DIRNAME),
        )

        for err in settings.validate():
            logger.warning("Settings validation: %s", err)

        return settings

    def validate(self) -> list[str]:
        """Return a list of human-readable validation warnings (empty = OK)."""
        errors: list[str] = []
        if self.tick_interval_seconds <= 0:
            errors.append(f"tick_interval_seconds={self.tick_interval_seconds} must be > 0.")
        if self.refresh_cooldown_seconds < 0:
            errors.append(
                f"refresh_cooldown_seconds={self.refresh_cooldown_seconds} must be >= 0."
            )
        for name in (
            "trade_history_cap",
            "signal_history_cap",
            "signal_output_cap",
            "notification_cap",
            "symbols_per_tick",
            "feed_cap",
            "candle_count",
        ):
            if getattr(self, name) < 1:
                errors.append(f"{name}={getattr(self, name)} must be >= 1.")
        if self.allocation_policy not in VALID_POLICIES:
            errors.append(f"allocation_policy={self.allocation_policy!r} is not recognised.")
        return errors


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _safe_int(value: Any, default: int) -> int:
    try:
        return int(float(str(value).replace("%", "").strip()))
    except (TypeError, ValueError):
        return default


def _safe_float(value: Any, default: float) -> float:
    try:
        return float(str(value).replace("%", "").strip())
    except (TypeError, ValueError):
        return default


def _safe_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "1", "yes", "on"):
            return True
        if text in ("false", "0", "no", "off"):
            return False
    if isinstance(value, (int, float)):
        return bool(value)
    return default
