"""Domain data models for papertrader.

Re-exports all model classes for convenient imports::

    from papertrader.models import Candle, Position, Signal, Trade, TradingSession
"""

from papertrader.models.candle import Candle
from papertrader.models.indicators import IndicatorInputs
from papertrader.models.notification import Notification
from papertrader.models.position import Position
from papertrader.models.session import TradingSession
from papertrader.models.signal import Signal
from papertrader.models.trade import Trade
from papertrader.models.types import CoinSymbol, Market, PriceMap, Score, Timestamp

__all__ = [
    "Candle",
    "CoinSymbol",
    "IndicatorInputs",
    "Market",
    "Notification",
    "Position",
    "PriceMap",
    "Score",
    "Signal",
    "Timestamp",
    "Trade",
    "TradingSession",
]
