"""Session controller: the paper-trading state machine.

::

    STOPPED --start(config)--> RUNNING --pause()--> PAUSED --resume()--> RUNNING
    RUNNING | PAUSED --stop()--> STOPPED

The controller owns the one live :class:`TradingSession`, its ledger and
its scheduler.  Every public method returns a :class:`CommandResult`;
errors a caller can act on become ``success=False`` results and nothing
raises across this boundary.

A tick runs in two phases.  Prices and analysis inputs are fetched without
holding the state lock.  The results are then committed under the lock,
but only if the tick's generation is still current and the session is
still running; otherwise they are discarded.  Events are published after
the lock is released.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, TypeVar

from papertrader.core.config import EngineSettings, SessionConfig, StrategyConfig
from papertrader.core.constants import (
    ACTION_SELL,
    LEVEL_ERROR,
    LEVEL_SUCCESS,
    LEVEL_WARNING,
    POLICY_SCORE_WEIGHTED,
    STATUS_PAUSED,
    STATUS_RUNNING,
    STATUS_STOPPED,
)
from papertrader.core.events import (
    CatalogChanged,
    EventBus,
    HistoryCleared,
    NotificationRaised,
    PositionsRevalued,
    SessionPaused,
    SessionResumed,
    SessionStarted,
    SessionStopped,
    SignalGenerated,
    StrategyUpdated,
    TradeExecuted,
)
from papertrader.core.exceptions import DataFetchError, PaperTraderError, ValidationError
from papertrader.core.market_client import MarketDataProvider
from papertrader.core.storage import KeyValueStore
from papertrader.core.symbols import normalize_market, to_symbol
from papertrader.models.indicators import IndicatorInputs
from papertrader.models.notification import Notification
from papertrader.models.position import Position
from papertrader.models.session import TradingSession, make_session_id
from papertrader.models.signal import Signal
from papertrader.models.trade import Trade
from papertrader.portfolio.allocation import plan_allocation
from papertrader.portfolio.executor import TradeExecutor
from papertrader.portfolio.history import TradeHistory
from papertrader.portfolio.ledger import PortfolioLedger
from papertrader.session.catalog import CoinCatalog
from papertrader.session.feed import PriceFeed
from papertrader.session.notifications import NotificationCenter
from papertrader.session.persistence import PersistedState, PersistenceGateway
from papertrader.session.scheduler import TickScheduler, TimerFactory
from papertrader.signals import scoring
from papertrader.signals.analysis import AnalysisProvider
from papertrader.signals.generator import SignalGenerator
from papertrader.signals.history import SignalHistory

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a controller command.

    ``session`` is a copy of the live session after the command (``None``
    when there is none); ``data`` carries command-specific output.
    """

    success: bool
    message: str
    session: TradingSession | None = None
    data: Any = None


@dataclass(frozen=True)
class PerformanceSummary:
    total_value: float
    cash_balance: float
    invested_value: float
    unrealized_pnl: float
    realized_pnl: float
    total_return_pct: float
    position_count: int
    trade_count: int
    win_rate: float


def _command(method: F) -> F:
    """Turn exceptions escaping a public method into failed results."""

    @functools.wraps(method)
    def wrapper(self: SessionController, *args: Any, **kwargs: Any) -> CommandResult:
        try:
            return method(self, *args, **kwargs)
        except PaperTraderError as exc:
            logger.warning("%s failed: %s", method.__name__, exc)
            return CommandResult(False, str(exc), self._session_copy())
        except Exception as exc:
            logger.error("Unexpected error in %s: %s", method.__name__, exc, exc_info=True)
            return CommandResult(False, f"Unexpected error: {exc}", self._session_copy())

    return wrapper  # type: ignore[return-value]


class SessionController:
    """Owns the live session and dispatches UI commands.

    Parameters
    ----------
    market:
        Price and candle source.
    analysis:
        Source of signal inputs.  Without one the session only revalues
        and applies exit rules.
    store:
        Durable store for snapshots.  Without one nothing is persisted and
        :meth:`restore` fails.
    bus:
        Event bus the view layer listens on.
    settings:
        Scheduler cadence, caps and switches.
    timer_factory:
        Passed to the scheduler; tests inject a manual timer.
    clock:
        Wall clock for timestamps (Unix seconds).
    monotonic:
        Clock for the refresh cooldown.
    """

    def __init__(
        self,
        market: MarketDataProvider,
        analysis: AnalysisProvider | None = None,
        store: KeyValueStore | None = None,
        bus: EventBus | None = None,
        settings: EngineSettings | None = None,
        timer_factory: TimerFactory | None = None,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._market = market
        self._analysis = analysis
        self._settings = settings or EngineSettings()
        self._bus = bus or EventBus()
        self._clock = clock

        self._lock = threading.RLock()
        self._history = TradeHistory(self._settings.trade_history_cap)
        self._ledger = PortfolioLedger(history=self._history)
        self._executor = TradeExecutor(self._ledger)
        self._signals = SignalHistory(self._settings.signal_history_cap)
        self._notifications = NotificationCenter(self._settings.notification_cap, clock=clock)
        self._catalog = CoinCatalog()
        self._feed = PriceFeed(self._settings.feed_cap)
        self._scheduler = TickScheduler(
            self._tick,
            interval=self._settings.tick_interval_seconds,
            cooldown=self._settings.refresh_cooldown_seconds,
            timer_factory=timer_factory,
            clock=monotonic,
        )

        self._session: TradingSession | None = None
        self._generator: SignalGenerator | None = None
        self._pending_strategy = StrategyConfig()
        self._rotation = 0
        self._day: date | None = None
        self._day_open_value = 0.0
        self._target_hit_day: date | None = None

        self._gateway = PersistenceGateway(store) if store is not None else None
        if self._gateway is not None:
            self._gateway.bind(self._bus, self.snapshot_state)

    # -- read access ----------------------------------------------------------

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def scheduler(self) -> TickScheduler:
        return self._scheduler

    @property
    def ledger(self) -> PortfolioLedger:
        return self._ledger

    @property
    def gateway(self) -> PersistenceGateway | None:
        return self._gateway

    @property
    def session(self) -> TradingSession | None:
        return self._session_copy()

    @property
    def status(self) -> str:
        with self._lock:
            return self._session.status if self._session is not None else STATUS_STOPPED

    @property
    def positions(self) -> list[Position]:
        with self._lock:
            return self._ledger.positions() if self._session is not None else []

    @property
    def trades(self) -> list[Trade]:
        return self._history.items()

    @property
    def signals(self) -> list[Signal]:
        return self._signals.items()

    @property
    def notifications(self) -> list[Notification]:
        return self._notifications.items()

    @property
    def catalog(self) -> tuple[str, ...]:
        return self._catalog.markets

    @property
    def price_feed(self) -> PriceFeed:
        return self._feed

    @property
    def pending_strategy(self) -> StrategyConfig:
        return self._pending_strategy

    def snapshot_state(self) -> PersistedState:
        """Current durable state, as written by the persistence gateway."""
        with self._lock:
            active = self._session is not None
            return PersistedState(
                session=self._session_copy(),
                positions=self._ledger.positions() if active else [],
                trades=self._history.items(),
                signals=self._signals.items(),
                catalog=list(self._catalog.markets),
                strategy=self._pending_strategy,
            )

    def default_config(self, initial_amount: float) -> SessionConfig:
        """Session config built from the catalog and the pending strategy."""
        return SessionConfig(
            coins=self._catalog.markets,
            initial_amount=initial_amount,
            strategy=self._pending_strategy,
            allocation_policy=self._settings.allocation_policy,
        )

    # -- lifecycle commands ---------------------------------------------------

    @_command
    def start(self, config: SessionConfig | None = None) -> CommandResult:
        """Seed positions and start ticking.

        While RUNNING this is a no-op returning the live session; while
        PAUSED it resumes (any *config* is ignored).
        """
        with self._lock:
            if self._session is not None and self._session.is_running:
                return CommandResult(True, "Session already running", self._session_copy())
            paused = self._session is not None and self._session.is_paused
        if paused:
            if config is not None:
                logger.info("Session is paused; resuming instead of applying new config")
            return self.resume()
        if config is None:
            raise ValidationError("No session configuration given.")

        config = self._prepare_config(config)
        symbols = [to_symbol(m) for m in config.coins]
        prices = self._fetch_prices(symbols)
        priced = [s for s in symbols if prices.get(s, 0) > 0]
        missing = [s for s in symbols if s not in priced]
        if missing:
            logger.warning("No start price for %s, skipping", ", ".join(missing))
        if not priced:
            raise DataFetchError("No price data for any selected coin.")

        strategy = config.strategy
        scores: dict[str, float] = {}
        if config.allocation_policy == POLICY_SCORE_WEIGHTED and self._analysis is not None:
            inputs = self._analysis.get_inputs(priced, prices)
            scores = {s: scoring.composite_score(i) for s, i in inputs.items()}

        events: list[object] = []
        with self._lock:
            if self._session is not None and self._session.is_active:
                return CommandResult(True, "Session already running", self._session_copy())

            now = self._clock()
            reserve = config.initial_amount * strategy.risk.reserve_cash_ratio
            plan = plan_allocation(
                config.allocation_policy,
                priced,
                config.initial_amount - reserve,
                strategy.allocation,
                scores,
            )
            session = TradingSession(
                id=make_session_id(now),
                started_at=now,
                config=config,
                initial_amount=config.initial_amount,
                cash_balance=config.initial_amount,
                status=STATUS_RUNNING,
            )
            self._ledger.reset(config.initial_amount)
            self._ledger.bind_session(session)
            seeded = self._ledger.seed(plan, prices, now)

            self._session = session
            self._generator = SignalGenerator(strategy, self._settings.signal_output_cap)
            self._rotation = 0
            self._start_day(now)
            self._feed.clear()
            self._feed.record({s: prices[s] for s in priced}, now)
            if missing:
                self._notify(
                    f"No price data for {', '.join(missing)}; not included", LEVEL_WARNING, events
                )
            self._scheduler.start()
            events.insert(0, SessionStarted(self._session_copy(), tuple(seeded), now))
            logger.info(
                "Session %s started: %d coins, %.0f KRW, strategy %s",
                session.id,
                len(seeded),
                config.initial_amount,
                strategy.name,
            )
            result = CommandResult(
                True, f"Session started with {len(seeded)} coins", self._session_copy()
            )
        self._publish(events)
        return result

    @_command
    def pause(self) -> CommandResult:
        with self._lock:
            if self._session is None:
                return CommandResult(False, "No active session")
            if self._session.is_paused:
                return CommandResult(True, "Session already paused", self._session_copy())
            self._scheduler.stop()
            self._session.status = STATUS_PAUSED
            event = SessionPaused(self._session_copy(), self._clock())
            logger.info("Session %s paused", self._session.id)
            result = CommandResult(True, "Session paused", self._session_copy())
        self._publish([event])
        return result

    @_command
    def resume(self) -> CommandResult:
        with self._lock:
            if self._session is None:
                return CommandResult(False, "No active session")
            if self._session.is_running:
                return CommandResult(True, "Session already running", self._session_copy())
            self._session.status = STATUS_RUNNING
            self._scheduler.start()
            event = SessionResumed(self._session_copy(), self._clock())
            logger.info("Session %s resumed", self._session.id)
            result = CommandResult(True, "Session resumed", self._session_copy())
        self._publish([event])
        return result

    @_command
    def stop(self) -> CommandResult:
        """End the session.  Trades, signals and notifications are kept."""
        with self._lock:
            if self._session is None:
                return CommandResult(False, "No active session")
            self._scheduler.stop()
            self._feed.clear()
            total = self._ledger.total_value()
            self._session.status = STATUS_STOPPED
            final = self._session_copy()
            self._ledger.bind_session(None)
            self._ledger.reset(0.0)
            self._session = None
            self._generator = None
            event = SessionStopped(final, total, self._clock())
            logger.info(
                "Session %s stopped: value %.0f KRW (%+.2f%%)",
                final.id,
                total,
                final.total_return_pct(total),
            )
        self._publish([event])
        return CommandResult(True, "Session stopped", final, data=total)

    @_command
    def manual_refresh(self) -> CommandResult:
        """Run one tick now.  Fails while not RUNNING or inside the cooldown."""
        with self._lock:
            if self._session is None or not self._session.is_running:
                return CommandResult(False, "Session is not running", self._session_copy())
        if not self._scheduler.request_refresh():
            return CommandResult(
                False, "Refresh skipped (cooldown or tick in progress)", self._session_copy()
            )
        return CommandResult(True, "Refreshed", self._session_copy())

    # -- catalog / strategy ---------------------------------------------------

    @_command
    def add_coin(self, market: str) -> CommandResult:
        if not self._catalog.add(market):
            return CommandResult(False, f"{normalize_market(market)} is already in the catalog")
        self._publish([CatalogChanged(self._catalog.markets, self._clock())])
        return CommandResult(True, f"Added {normalize_market(market)}", data=self._catalog.markets)

    @_command
    def remove_coin(self, market: str) -> CommandResult:
        if not self._catalog.remove(market):
            return CommandResult(False, f"{normalize_market(market)} is not in the catalog")
        self._publish([CatalogChanged(self._catalog.markets, self._clock())])
        return CommandResult(
            True, f"Removed {normalize_market(market)}", data=self._catalog.markets
        )

    @_command
    def update_strategy(self, strategy: StrategyConfig | str) -> CommandResult:
        """Store a normalised copy of *strategy* (or a preset name) for the next session."""
        if isinstance(strategy, str):
            strategy = StrategyConfig.preset(strategy)
        normalized = strategy.normalized()
        errors = normalized.validate()
        if errors:
            raise ValidationError("; ".join(errors))
        with self._lock:
            self._pending_strategy = normalized
        self._publish([StrategyUpdated(normalized, self._clock())])
        return CommandResult(
            True, f"Strategy {normalized.name} saved", self._session_copy(), data=normalized
        )

    # -- persistence / reporting ----------------------------------------------

    @_command
    def restore(self) -> CommandResult:
        """Load the last snapshot.  An active session comes back PAUSED."""
        if self._gateway is None:
            return CommandResult(False, "No store configured")
        with self._lock:
            if self._session is not None:
                return CommandResult(
                    False, "Stop the current session before restoring", self._session_copy()
                )
            state = self._gateway.restore()
            self._history.restore(state.trades)
            self._signals.restore(state.signals)
            self._catalog.restore(state.catalog)
            self._pending_strategy = state.strategy or StrategyConfig()

            session = state.session
            if session is not None and session.is_active:
                session.status = STATUS_PAUSED
                self._ledger.load(session.cash_balance, state.positions, session.realized_pnl)
                self._ledger.bind_session(session)
                self._session = session
                self._generator = SignalGenerator(
                    session.config.strategy, self._settings.signal_output_cap
                )
                self._start_day(self._clock())
            message = "Restored session" if self._session is not None else "Restored history"
            if state.failed:
                message += f" (reset corrupt: {', '.join(state.failed)})"
            return CommandResult(True, message, self._session_copy(), data=state.failed)

    @_command
    def clear_history(self) -> CommandResult:
        self._history.clear()
        self._signals.clear()
        self._notifications.clear()
        self._publish([HistoryCleared(self._clock())])
        return CommandResult(True, "History cleared", self._session_copy())

    @_command
    def performance(self) -> CommandResult:
        with self._lock:
            total = self._ledger.total_value()
            sells = [t for t in self._history.items() if t.action == ACTION_SELL]
            wins = sum(1 for t in sells if (t.profit or 0.0) > 0)
            summary = PerformanceSummary(
                total_value=total,
                cash_balance=self._ledger.cash_balance,
                invested_value=self._ledger.invested_value(),
                unrealized_pnl=self._ledger.unrealized_pnl(),
                realized_pnl=self._ledger.realized_pnl(),
                total_return_pct=(
                    self._session.total_return_pct(total) if self._session is not None else 0.0
                ),
                position_count=len(self._ledger.symbols),
                trade_count=len(self._history),
                win_rate=wins / len(sells) * 100.0 if sells else 0.0,
            )
            return CommandResult(True, "Performance", self._session_copy(), data=summary)

    # -- tick -----------------------------------------------------------------

    def _tick(self, generation: int) -> None:
        with self._lock:
            if not self._is_live(generation):
                return
            session = self._session
            if session is None:
                return
            held = self._ledger.symbols
            batch = self._next_batch(self._candidates(session))
            watch = list(dict.fromkeys(held + batch))

        prices = self._fetch_prices(watch)
        inputs: dict[str, IndicatorInputs] = {}
        if self._analysis is not None and prices:
            priced_batch = [s for s in batch if s in prices]
            inputs = self._analysis.get_inputs(priced_batch, prices)

        with self._lock:
            if not self._is_live(generation):
                logger.debug("Discarding results of superseded tick %d", generation)
                return
            events = self._commit_tick(session, held, batch, prices, inputs)
        self._publish(events)

    def _commit_tick(
        self,
        session: TradingSession,
        held: list[str],
        batch: list[str],
        prices: dict[str, float],
        inputs: dict[str, IndicatorInputs],
    ) -> list[object]:
        """Apply one tick's market data.  Caller holds the lock."""
        events: list[object] = []
        now = self._clock()
        strategy = session.config.strategy

        if not prices:
            self._notify("No price data received this tick", LEVEL_ERROR, events)
            return events
        unpriced = [s for s in held if s not in prices]
        if unpriced:
            self._notify(f"No price data for {', '.join(unpriced)}", LEVEL_WARNING, events)

        self._feed.record(prices, now)
        self._ledger.revalue(prices)
        events.append(
            PositionsRevalued(
                tuple(self._ledger.positions()),
                self._ledger.cash_balance,
                self._ledger.total_value(),
                now,
            )
        )

        trades: list[Trade] = self._executor.apply_exits(strategy, now, inputs)
        for trade in trades:
            if trade.reason == "stop_loss":
                self._notify(f"Stop loss hit for {trade.symbol}", LEVEL_WARNING, events)

        generator = self._generator
        signals = generator.generate(batch, inputs, now) if generator is not None else []
        if signals and self._settings.auto_execute:
            result = self._executor.execute_signals(signals, strategy, prices, now, inputs)
            executed = set(result.executed_signal_ids)
            signals = [s.mark_executed() if s.id in executed else s for s in signals]
            trades.extend(result.trades)
        if signals:
            self._signals.add(signals)
            events.append(SignalGenerated(tuple(signals), now))

        for trade in trades:
            events.append(TradeExecuted(trade, self._ledger.get_position(trade.symbol)))
        if trades:
            self._notify(f"{len(trades)} trade(s) executed", LEVEL_SUCCESS, events)
        self._check_daily_target(now, events)
        return events

    # -- internals ------------------------------------------------------------

    def _is_live(self, generation: int) -> bool:
        return (
            self._session is not None
            and self._session.status == STATUS_RUNNING
            and self._scheduler.is_current(generation)
        )

    def _candidates(self, session: TradingSession) -> list[str]:
        coins = [to_symbol(m) for m in session.config.coins]
        return list(dict.fromkeys(coins + self._catalog.symbols))

    def _next_batch(self, candidates: list[str]) -> list[str]:
        """Up to ``symbols_per_tick`` candidates, rotating across ticks."""
        size = self._settings.symbols_per_tick
        if len(candidates) <= size:
            return list(candidates)
        start = self._rotation % len(candidates)
        self._rotation = (start + size) % len(candidates)
        return [candidates[(start + i) % len(candidates)] for i in range(size)]

    def _fetch_prices(self, symbols: Iterable[str]) -> dict[str, float]:
        symbols = list(symbols)
        if not symbols:
            return {}
        try:
            return self._market.get_prices(symbols)
        except DataFetchError as exc:
            logger.warning("Price fetch failed: %s", exc)
            return {}

    def _prepare_config(self, config: SessionConfig) -> SessionConfig:
        coins = tuple(normalize_market(c) for c in config.coins)
        config = replace(config, coins=coins, strategy=config.strategy.normalized())
        errors = config.validate()
        if errors:
            raise ValidationError("; ".join(errors))
        return config

    def _start_day(self, now: float) -> None:
        self._day = date.fromtimestamp(now)
        self._day_open_value = self._ledger.total_value()
        self._target_hit_day = None

    def _check_daily_target(self, now: float, events: list[object]) -> None:
        today = date.fromtimestamp(now)
        total = self._ledger.total_value()
        if today != self._day:
            self._day = today
            self._day_open_value = total
        if self._day_open_value <= 0 or self._target_hit_day == today:
            return
        gain = (total - self._day_open_value) / self._day_open_value * 100.0
        if gain >= self._settings.daily_target_pct:
            self._target_hit_day = today
            self._notify(
                f"Daily target reached: {gain:+.2f}% today", LEVEL_SUCCESS, events
            )

    def _notify(self, message: str, level: str, events: list[object]) -> None:
        events.append(NotificationRaised(self._notifications.push(message, level)))

    def _publish(self, events: Iterable[object]) -> None:
        for event in events:
            self._bus.publish(event)

    def _session_copy(self) -> TradingSession | None:
        with self._lock:
            return replace(self._session) if self._session is not None else None
