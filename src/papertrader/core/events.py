"""In-process event system for decoupled communication.

The session controller publishes lifecycle, revaluation, trade, signal and
notification events on an :class:`EventBus`.  The view layer subscribes
to render; the persistence gateway subscribes to snapshot state.

Usage::

    bus = EventBus()
    bus.subscribe(TradeExecuted, on_trade)
    bus.publish(TradeExecuted(trade=trade, position=None))
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Callable, Type

from papertrader.core.config import StrategyConfig
from papertrader.models.notification import Notification
from papertrader.models.position import Position
from papertrader.models.session import TradingSession
from papertrader.models.signal import Signal
from papertrader.models.trade import Trade

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SessionStarted:
    """Emitted once the initial positions are seeded and the timer is armed."""

    session: TradingSession
    positions: tuple[Position, ...]
    timestamp: float


@dataclass(frozen=True)
class SessionPaused:
    session: TradingSession
    timestamp: float


@dataclass(frozen=True)
class SessionResumed:
    session: TradingSession
    timestamp: float


@dataclass(frozen=True)
class SessionStopped:
    """Emitted after the timer is cancelled; ``session`` is the final state."""

    session: TradingSession
    total_value: float
    timestamp: float


@dataclass(frozen=True)
class PositionsRevalued:
    """Emitted after a tick marks positions to the latest prices.

    ``positions`` are copies; mutating them does not affect the ledger.
    """

    positions: tuple[Position, ...]
    cash_balance: float
    total_value: float
    timestamp: float


@dataclass(frozen=True)
class TradeExecuted:
    """Emitted after the ledger accepts a trade.

    ``position`` is a copy of the resulting position, or ``None`` when a
    sell closed it.
    """

    trade: Trade
    position: Position | None


@dataclass(frozen=True)
class SignalGenerated:
    """Emitted with the ranked, capped signals produced by one tick."""

    signals: tuple[Signal, ...]
    timestamp: float


@dataclass(frozen=True)
class NotificationRaised:
    notification: Notification


@dataclass(frozen=True)
class CatalogChanged:
    """Emitted when a market is added to or removed from the watch list."""

    markets: tuple[str, ...]
    timestamp: float


@dataclass(frozen=True)
class StrategyUpdated:
    """Emitted when the pending strategy for the next session changes."""

    strategy: StrategyConfig
    timestamp: float


@dataclass(frozen=True)
class HistoryCleared:
    timestamp: float


SESSION_EVENTS: tuple[type, ...] = (
    SessionStarted,
    SessionPaused,
    SessionResumed,
    SessionStopped,
    PositionsRevalued,
    TradeExecuted,
    SignalGenerated,
    NotificationRaised,
)

# Type alias for event handlers
EventHandler = Callable[[Any], None]


# ---------------------------------------------------------------------------
# EventBus
# ---------------------------------------------------------------------------


class EventBus:
    """In-process pub/sub event bus.

    Thread-safe.  Handlers are called synchronously on the publishing
    thread (the scheduler's timer thread during ticks).  A handler that
    raises is logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._handlers: dict[Type, list[EventHandler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: Type, handler: EventHandler) -> None:
        """Register *handler* to be called when *event_type* is published."""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

    def subscribe_many(self, event_types: Iterable[Type], handler: EventHandler) -> None:
        for event_type in event_types:
            self.subscribe(event_type, handler)

    def unsubscribe(self, event_type: Type, handler: EventHandler) -> None:
        """Remove *handler* from *event_type* subscribers.  Unknown handlers are ignored."""
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, event: object) -> None:
        """Dispatch *event* to all registered handlers for its type.

        Handlers are called in registration order.
        """
        with self._lock:
            handlers = list(self._handlers.get(type(event), []))

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Event handler %s failed for %s",
                    getattr(handler, "__qualname__", repr(handler)),
                    type(event).__name__,
                )

    def clear(self) -> None:
        """Remove all subscriptions."""
        with self._lock:
            self._handlers.clear()

    def has_subscribers(self, event_type: Type) -> bool:
        with self._lock:
            return bool(self._handlers.get(event_type))
