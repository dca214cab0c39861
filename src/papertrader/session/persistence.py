"""Persistence gateway: the single reader/writer of durable session state.

State is split into independent slices, each stored under its own key as
a versioned JSON envelope ``{"version": 1, "data": ...}``:

=========================  ===========================================
key                        data
=========================  ===========================================
``papertrader.session``    live session or ``null``
``papertrader.positions``  open positions
``papertrader.trades``     trade history, newest first
``papertrader.signals``    signal history, best first
``papertrader.catalog``    watch-list markets
``papertrader.strategy``   strategy for the next session
=========================  ===========================================

Restoring reads each slice on its own: a corrupt slice is logged, reset to
its default, and the other slices still load.  Notifications and the price
feed are never persisted.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from papertrader.core.config import StrategyConfig
from papertrader.core.constants import SNAPSHOT_VERSION, STORE_KEY_PREFIX
from papertrader.core.events import (
    CatalogChanged,
    EventBus,
    HistoryCleared,
    PositionsRevalued,
    SessionPaused,
    SessionResumed,
    SessionStarted,
    SessionStopped,
    SignalGenerated,
    StrategyUpdated,
    TradeExecuted,
)
from papertrader.core.exceptions import PaperTraderError, PersistenceError
from papertrader.core.storage import KeyValueStore
from papertrader.core.symbols import normalize_market
from papertrader.models.position import Position
from papertrader.models.session import TradingSession
from papertrader.models.signal import Signal
from papertrader.models.trade import Trade

logger = logging.getLogger(__name__)

SLICES: tuple[str, ...] = ("session", "positions", "trades", "signals", "catalog", "strategy")

SNAPSHOT_EVENTS: tuple[type, ...] = (
    SessionStarted,
    SessionPaused,
    SessionResumed,
    SessionStopped,
    PositionsRevalued,
    TradeExecuted,
    SignalGenerated,
    CatalogChanged,
    StrategyUpdated,
    HistoryCleared,
)


@dataclass
class PersistedState:
    """Everything the gateway saves and restores.

    ``failed`` lists the slices that were reset because they were corrupt.
    """

    session: TradingSession | None = None
    positions: list[Position] = field(default_factory=list)
    trades: list[Trade] = field(default_factory=list)
    signals: list[Signal] = field(default_factory=list)
    catalog: list[str] = field(default_factory=list)
    strategy: StrategyConfig | None = None
    failed: list[str] = field(default_factory=list)


class PersistenceGateway:
    """Snapshots and restores :class:`PersistedState` through a key-value store."""

    def __init__(self, store: KeyValueStore, prefix: str = STORE_KEY_PREFIX) -> None:
        self._store = store
        self._prefix = prefix
        self._handler: Callable[[object], None] | None = None
        self._bus: EventBus | None = None

    def key(self, name: str) -> str:
        return f"{self._prefix}.{name}"

    # -- write ----------------------------------------------------------------

    def snapshot(self, state: PersistedState) -> bool:
        """Write every slice.  Failures are logged, never raised.

        Returns ``True`` when all slices were written.
        """
        payloads: dict[str, Any] = {
            "session": state.session.to_dict() if state.session is not None else None,
            "positions": [p.to_dict() for p in state.positions],
            "trades": [t.to_dict() for t in state.trades],
            "signals": [s.to_dict() for s in state.signals],
            "catalog": list(state.catalog),
            "strategy": state.strategy.to_dict() if state.strategy is not None else None,
        }
        ok = True
        for name, data in payloads.items():
            try:
                self._write(name, data)
            except PersistenceError as exc:
                ok = False
                logger.error("Snapshot of %s failed: %s", name, exc)
        return ok

    def _write(self, name: str, data: Any) -> None:
        try:
            raw = json.dumps({"version": SNAPSHOT_VERSION, "data": data})
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"{name} is not serialisable: {exc}") from exc
        try:
            self._store.set(self.key(name), raw)
        except PersistenceError:
            raise
        except OSError as exc:
            raise PersistenceError(f"store rejected {name}: {exc}") from exc

    # -- read -----------------------------------------------------------------

    def restore(self) -> PersistedState:
        """Load every slice, resetting corrupt ones to their defaults."""
        state = PersistedState()
        state.session = self._read("session", _parse_session, None, state.failed)
        state.positions = self._read("positions", _parse_positions, [], state.failed)
        state.trades = self._read("trades", _parse_trades, [], state.failed)
        state.signals = self._read("signals", _parse_signals, [], state.failed)
        state.catalog = self._read("catalog", _parse_catalog, [], state.failed)
        state.strategy = self._read("strategy", _parse_strategy, None, state.failed)
        logger.info(
            "Restored snapshot: session=%s positions=%d trades=%d signals=%d catalog=%d%s",
            state.session.id if state.session else None,
            len(state.positions),
            len(state.trades),
            len(state.signals),
            len(state.catalog),
            f" (reset: {', '.join(state.failed)})" if state.failed else "",
        )
        return state

    def _read(
        self,
        name: str,
        parser: Callable[[Any], Any],
        default: Any,
        failed: list[str],
    ) -> Any:
        raw = self._store.get(self.key(name))
        if raw is None:
            return default
        try:
            return parser(_unwrap(name, raw))
        except (PaperTraderError, ValueError, TypeError, KeyError, AttributeError) as exc:
            logger.warning("Discarding corrupt %s snapshot, using default: %s", name, exc)
            failed.append(name)
            return default

    # -- wiring ---------------------------------------------------------------

    def bind(self, bus: EventBus, source: Callable[[], PersistedState]) -> None:
        """Snapshot ``source()`` after every state-changing event on *bus*."""
        self.unbind()

        def _on_event(event: object) -> None:
            self.snapshot(source())

        self._handler = _on_event
        self._bus = bus
        bus.subscribe_many(SNAPSHOT_EVENTS, _on_event)

    def unbind(self) -> None:
        if self._bus is not None and self._handler is not None:
            for event_type in SNAPSHOT_EVENTS:
                self._bus.unsubscribe(event_type, self._handler)
        self._bus = None
        self._handler = None

    def clear(self) -> None:
        """Remove every slice from the store."""
        for name in SLICES:
            try:
                self._store.remove(self.key(name))
            except PersistenceError as exc:
                logger.error("Could not remove %s: %s", name, exc)


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def _unwrap(name: str, raw: str) -> Any:
    try:
        envelope = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PersistenceError(f"{name} is not valid JSON: {exc}") from exc
    if not isinstance(envelope, dict) or "data" not in envelope:
        raise PersistenceError(f"{name} has no envelope")
    if envelope.get("version") != SNAPSHOT_VERSION:
        raise PersistenceError(f"{name} has unsupported version {envelope.get('version')!r}")
    return envelope["data"]


def _require_list(data: Any) -> list[Any]:
    if not isinstance(data, list):
        raise TypeError(f"expected a list, got {type(data).__name__}")
    return data


def _parse_session(data: Any) -> TradingSession | None:
    if data is None:
        return None
    session = TradingSession.from_dict(data)
    errors = session.validate()
    if errors:
        raise PersistenceError("; ".join(errors))
    return session


def _parse_positions(data: Any) -> list[Position]:
    positions = [Position.from_dict(item) for item in _require_list(data)]
    for position in positions:
        errors = position.validate()
        if errors:
            raise PersistenceError(f"position {position.symbol}: {'; '.join(errors)}")
    return positions


def _parse_trades(data: Any) -> list[Trade]:
    return [Trade.from_dict(item) for item in _require_list(data)]


def _parse_signals(data: Any) -> list[Signal]:
    return [Signal.from_dict(item) for item in _require_list(data)]


def _parse_catalog(data: Any) -> list[str]:
    return [normalize_market(str(item)) for item in _require_list(data)]


def _parse_strategy(data: Any) -> StrategyConfig | None:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise TypeError("strategy must be an object")
    strategy = StrategyConfig.from_dict(data).normalized()
    errors = strategy.validate()
    if errors:
        raise PersistenceError("; ".join(errors))
    return strategy
