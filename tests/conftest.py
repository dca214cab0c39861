"""Shared pytest fixtures for papertrader tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from papertrader.core.config import EngineSettings, SessionConfig, StrategyConfig
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
from papertrader.core.market_client import StaticMarketData
from papertrader.core.storage import InMemoryKeyValueStore
from papertrader.models.indicators import IndicatorInputs
from papertrader.session.controller import SessionController
from papertrader.signals.analysis import StaticAnalysisProvider

# Midday UTC, so local-date bucketing is stable in most timezones
START_TS = 1_700_050_800.0

ALL_EVENTS = (
    SessionStarted,
    SessionPaused,
    SessionResumed,
    SessionStopped,
    PositionsRevalued,
    TradeExecuted,
    SignalGenerated,
    NotificationRaised,
    CatalogChanged,
    StrategyUpdated,
    HistoryCleared,
)


# ---------------------------------------------------------------------------
# Manual time: a clock that also hands out timers fired by advance()
# ---------------------------------------------------------------------------


class _ManualTimer:
    def __init__(
        self, owner: ManualTime, interval: float, fn: Callable[..., Any], args: tuple
    ) -> None:
        self._owner = owner
        self.interval = interval
        self.fn = fn
        self.args = args
        self.due: float | None = None
        self.cancelled = False
        self.fired = False

    def start(self) -> None:
        self.due = self._owner.now + self.interval
        self._owner.timers.append(self)

    def cancel(self) -> None:
        self.cancelled = True


class ManualTime:
    """Deterministic wall clock, monotonic clock and timer factory in one."""

    def __init__(self, start: float = START_TS) -> None:
        self.now = start
        self.timers: list[_ManualTimer] = []

    def __call__(self) -> float:
        return self.now

    def timer(self, interval: float, fn: Callable[..., Any], args: tuple) -> _ManualTimer:
        return _ManualTimer(self, interval, fn, args)

    @property
    def pending(self) -> list[_ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        """Move time forward, firing due timers in order."""
        target = self.now + seconds
        while True:
            due = [t for t in self.pending if t.due is not None and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due or 0.0)
            self.now = timer.due or self.now
            timer.fired = True
            timer.fn(*timer.args)
        self.now = target


class EventRecorder:
    """Collects every event published on a bus."""

    def __init__(self, bus: EventBus) -> None:
        self.events: list[object] = []
        bus.subscribe_many(ALL_EVENTS, self.events.append)

    def of_type(self, event_type: type) -> list[Any]:
        return [e for e in self.events if isinstance(e, event_type)]

    def clear(self) -> None:
        self.events.clear()


def _make_inputs(
    technical: float = 5.0,
    sentiment: float = 5.0,
    fundamental: float = 5.0,
    volume: float = 5.0,
    price: float = 1000.0,
    **extra: Any,
) -> IndicatorInputs:
    return IndicatorInputs(
        technical=technical,
        sentiment=sentiment,
        fundamental=fundamental,
        price=price,
        volume_score=volume,
        **extra,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def manual_time() -> ManualTime:
    return ManualTime()


@pytest.fixture
def market() -> StaticMarketData:
    return StaticMarketData({"BTC": 50_000_000.0, "ETH": 3_000_000.0, "SOL": 100_000.0})


@pytest.fixture
def analysis() -> StaticAnalysisProvider:
    return StaticAnalysisProvider()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def controller(
    market: StaticMarketData,
    analysis: StaticAnalysisProvider,
    store: InMemoryKeyValueStore,
    settings: EngineSettings,
    manual_time: ManualTime,
) -> SessionController:
    return SessionController(
        market,
        analysis=analysis,
        store=store,
        settings=settings,
        timer_factory=manual_time.timer,
        clock=manual_time,
        monotonic=manual_time,
    )


@pytest.fixture
def recorder(controller: SessionController) -> EventRecorder:
    return EventRecorder(controller.bus)


@pytest.fixture
def strategy() -> StrategyConfig:
    """Balanced strategy with a 20% cash reserve."""
    return StrategyConfig().with_risk(reserve_cash_ratio=0.2)


@pytest.fixture
def session_config(strategy: StrategyConfig) -> SessionConfig:
    return SessionConfig(
        coins=("KRW-BTC", "KRW-ETH"), initial_amount=10_000_000.0, strategy=strategy
    )


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    """Write a sample papertrader_settings.json and return its path."""
    p = tmp_path / "papertrader_settings.json"
    p.write_text(
        json.dumps(
            {
                "tick_interval_seconds": 15,
                "refresh_cooldown_seconds": 2,
                "trade_history_cap": 20,
                "auto_execute": "false",
                "allocation_policy": "tiered",
            },
            indent=2,
        ),
        encoding="utf-8",
    )
    return p


@pytest.fixture
def make_inputs() -> Callable[..., IndicatorInputs]:
    """Factory for indicator inputs with an explicit volume sub-score."""
    return _make_inputs
