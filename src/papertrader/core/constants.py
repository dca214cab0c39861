"""Shared constants for papertrader.

Defaults for strategies, scheduler cadence, history caps and scoring live
here so there is a single source of truth.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Markets.  All simulated positions are quoted in KRW (Upbit spot markets).
# ---------------------------------------------------------------------------
QUOTE_ASSET: str = "KRW"
MARKET_SEPARATOR: str = "-"

# ---------------------------------------------------------------------------
# Session status values.
# ---------------------------------------------------------------------------
STATUS_STOPPED: str = "STOPPED"
STATUS_RUNNING: str = "RUNNING"
STATUS_PAUSED: str = "PAUSED"

# ---------------------------------------------------------------------------
# Trade / signal vocabulary.
# ---------------------------------------------------------------------------
ACTION_BUY: str = "BUY"
ACTION_SELL: str = "SELL"
VALID_ACTIONS: frozenset[str] = frozenset({ACTION_BUY, ACTION_SELL})

CONFIDENCE_LOW: str = "LOW"
CONFIDENCE_MEDIUM: str = "MEDIUM"
CONFIDENCE_HIGH: str = "HIGH"
VALID_CONFIDENCE: frozenset[str] = frozenset(
    {CONFIDENCE_LOW, CONFIDENCE_MEDIUM, CONFIDENCE_HIGH}
)

RECOMMEND_STRONG_BUY: str = "STRONG_BUY"
RECOMMEND_BUY: str = "BUY"
RECOMMEND_HOLD: str = "HOLD"
RECOMMEND_SELL: str = "SELL"

LEVEL_INFO: str = "info"
LEVEL_SUCCESS: str = "success"
LEVEL_WARNING: str = "warning"
LEVEL_ERROR: str = "error"
VALID_LEVELS: frozenset[str] = frozenset({LEVEL_INFO, LEVEL_SUCCESS, LEVEL_WARNING, LEVEL_ERROR})

# ---------------------------------------------------------------------------
# Allocation policies for the initial split of investable cash.
# ---------------------------------------------------------------------------
POLICY_EQUAL: str = "equal"
POLICY_SCORE_WEIGHTED: str = "score_weighted"
POLICY_TIERED: str = "tiered"
VALID_POLICIES: frozenset[str] = frozenset({POLICY_EQUAL, POLICY_SCORE_WEIGHTED, POLICY_TIERED})

# Risk tiers.  Anything not listed in TIER1/TIER2 falls into TIER3.
TIER1: str = "TIER1"
TIER2: str = "TIER2"
TIER3: str = "TIER3"
TIER1_SYMBOLS: frozenset[str] = frozenset({"BTC", "ETH"})
TIER2_SYMBOLS: frozenset[str] = frozenset({"SOL", "ADA", "DOT", "LINK"})

# ---------------------------------------------------------------------------
# Scoring: composite weights and volume breakpoints (0-10 scale).
# ---------------------------------------------------------------------------
SCORE_MIN: float = 0.0
SCORE_MAX: float = 10.0
NEUTRAL_SCORE: float = 5.0

WEIGHT_TECHNICAL: float = 0.30
WEIGHT_SENTIMENT: float = 0.25
WEIGHT_FUNDAMENTAL: float = 0.25
WEIGHT_VOLUME: float = 0.20

# (minimum 24h traded value, sub-score); first match wins.
VOLUME_BREAKPOINTS: tuple[tuple[float, float], ...] = (
    (1e9, 10.0),
    (1e8, 7.5),
    (1e7, 5.0),
)
VOLUME_FLOOR_SCORE: float = 2.5

CONFIDENCE_HIGH_MIN: float = 0.8
CONFIDENCE_MEDIUM_MIN: float = 0.5
DERIVED_CONFIDENCE_FLOOR: float = 0.3
DERIVED_CONFIDENCE_CEILING: float = 0.95

# ---------------------------------------------------------------------------
# Strategy defaults ("balanced" preset).
# ---------------------------------------------------------------------------
DEFAULT_ALLOCATION: dict[str, float] = {"cash": 0.4, "tier1": 0.42, "tier2": 0.15, "tier3": 0.03}
ALLOCATION_TOLERANCE: float = 0.001

DEFAULT_MIN_BUY_SCORE: float = 6.5
DEFAULT_RSI_OVERSOLD: float = 30.0
DEFAULT_STRONG_BUY_SCORE: float = 9.0
DEFAULT_BUY_THRESHOLD: float = -2.0  # % price change that counts as a dip
DEFAULT_REQUIRE_MULTIPLE_SIGNALS: bool = True

DEFAULT_PROFIT_TARGETS: tuple[float, float, float] = (3.0, 5.0, 8.0)  # %
DEFAULT_STOP_LOSS: float = -6.0  # %
DEFAULT_SELL_THRESHOLD: float = 3.0
DEFAULT_RSI_OVERBOUGHT: float = 70.0
DEFAULT_TIME_BASED_EXIT_DAYS: int = 7

DEFAULT_MAX_POSITIONS: int = 4
DEFAULT_RESERVE_CASH_RATIO: float = 0.3
DEFAULT_MAX_SINGLE_POSITION_PCT: float = 15.0
DEFAULT_DAILY_TRADE_LIMIT: int = 6
DEFAULT_VOLUME_THRESHOLD_MULTIPLIER: float = 1.5

# Fraction of the remaining quantity sold at profit targets 1 and 2.
# Target 3 always closes the position.
PARTIAL_EXIT_FRACTIONS: tuple[float, float] = (0.3, 0.5)

# Smallest simulated order, matching the exchange minimum for KRW markets.
MIN_ORDER_KRW: float = 5_000.0

# ---------------------------------------------------------------------------
# Engine defaults.
# ---------------------------------------------------------------------------
DEFAULT_INITIAL_AMOUNT: float = 10_000_000.0
DEFAULT_TICK_INTERVAL_SECONDS: float = 30.0
DEFAULT_FEED_INTERVAL_SECONDS: float = 3.0
DEFAULT_REFRESH_COOLDOWN_SECONDS: float = 5.0
DEFAULT_TRADE_HISTORY_CAP: int = 50
DEFAULT_SIGNAL_HISTORY_CAP: int = 30
DEFAULT_SIGNAL_OUTPUT_CAP: int = 5
DEFAULT_NOTIFICATION_CAP: int = 10
DEFAULT_SYMBOLS_PER_TICK: int = 5
DEFAULT_FEED_CAP: int = 50
DEFAULT_DAILY_TARGET_PCT: float = 2.0
DEFAULT_CANDLE_COUNT: int = 50

# Quantities below this are treated as a fully closed position.
QUANTITY_EPSILON: float = 1e-12

SECONDS_PER_DAY: int = 24 * 60 * 60

# ---------------------------------------------------------------------------
# Persistence keys.
# ---------------------------------------------------------------------------
STORE_KEY_PREFIX: str = "papertrader"
SNAPSHOT_VERSION: int = 1
SETTINGS_FILENAME: str = "papertrader_settings.json"
STRATEGY_FILENAME: str = "papertrader_strategy.json"
STORE_DIRNAME: str = "papertrader_data"

# ---------------------------------------------------------------------------
# Upbit public API.
# ---------------------------------------------------------------------------
UPBIT_BASE_URL: str = "https://api.upbit.com/v1"
UPBIT_MAX_CANDLES: int = 200
UPBIT_CALLS_PER_SECOND: float = 8.0
HTTP_TIMEOUT_SECONDS: float = 10.0
