"""Periodic tick driver with an in-flight guard and a manual-refresh cooldown.

One :class:`TickScheduler` belongs to one session controller.  It arms a
timer, runs the controller's tick when it fires, and re-arms.  Three guards
keep ticks orderly:

- **Generation token.**  :meth:`TickScheduler.start` and
  :meth:`TickScheduler.stop` bump a counter.  A timer carrying an old
  generation does nothing, and the tick callback receives its generation so
  it can check :meth:`TickScheduler.is_current` before committing results.
- **In-flight guard.**  A non-blocking lock plus an ``is_running`` flag; a
  tick that finds another one running is skipped, never queued.
- **Cooldown.**  Manual refreshes within ``cooldown`` seconds of the last
  tick are dropped.

Exceptions raised by a tick are logged as a :class:`SchedulerFault` and the
next tick is still armed.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol

from papertrader.core.constants import (
    DEFAULT_REFRESH_COOLDOWN_SECONDS,
    DEFAULT_TICK_INTERVAL_SECONDS,
)
from papertrader.core.exceptions import PaperTraderError, SchedulerFault

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[..., Any], tuple], TimerHandle]


def thread_timer(interval: float, fn: Callable[..., Any], args: tuple) -> TimerHandle:
    """Default timer: a daemon :class:`threading.Timer`."""
    timer = threading.Timer(interval, fn, args=args)
    timer.daemon = True
    return timer


class TickScheduler:
    """Runs *tick* every *interval* seconds until stopped.

    Parameters
    ----------
    tick:
        Called with the generation it belongs to.
    interval:
        Seconds between ticks.
    cooldown:
        Minimum seconds between two manual refreshes.  Scheduled ticks do
        not start the cooldown.
    timer_factory:
        ``(interval, fn, args) -> handle`` with ``start``/``cancel``.
    clock:
        Monotonic clock used for the cooldown.
    """

    def __init__(
        self,
        tick: Callable[[int], None],
        interval: float = DEFAULT_TICK_INTERVAL_SECONDS,
        cooldown: float = DEFAULT_REFRESH_COOLDOWN_SECONDS,
        timer_factory: TimerFactory | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._tick = tick
        self._interval = interval
        self._cooldown = cooldown
        self._timer_factory = timer_factory or thread_timer
        self._clock = clock

        self._state_lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._generation = 0
        self._armed = False
        self._timer: TimerHandle | None = None
        self._is_running = False
        self._last_run_at: float | None = None
        self._last_refresh_at: float | None = None
        self.ticks_run = 0
        self.ticks_skipped = 0

    # -- state ----------------------------------------------------------------

    @property
    def generation(self) -> int:
        with self._state_lock:
            return self._generation

    @property
    def is_armed(self) -> bool:
        with self._state_lock:
            return self._armed

    @property
    def is_running(self) -> bool:
        """``True`` while a tick is executing."""
        return self._is_running

    @property
    def last_run_at(self) -> float | None:
        return self._last_run_at

    @property
    def interval(self) -> float:
        return self._interval

    def is_current(self, generation: int) -> bool:
        """``True`` if *generation* has not been superseded by start/stop."""
        with self._state_lock:
            return self._armed and generation == self._generation

    # -- lifecycle ------------------------------------------------------------

    def start(self) -> int:
        """Arm the timer under a fresh generation and return it."""
        with self._state_lock:
            self._cancel_timer()
            self._generation += 1
            self._armed = True
            self._arm(self._generation)
            logger.debug(
                "Scheduler started (generation %d, every %.1fs)", self._generation, self._interval
            )
            return self._generation

    def stop(self) -> None:
        """Cancel the timer and invalidate every outstanding generation.

        Takes effect immediately; a tick already running finishes but its
        generation is no longer current.
        """
        with self._state_lock:
            self._generation += 1
            self._armed = False
            self._cancel_timer()
            logger.debug("Scheduler stopped (generation %d)", self._generation)

    def request_refresh(self) -> bool:
        """Run one tick now, subject to the cooldown and in-flight guard.

        Returns ``True`` if a tick ran.
        """
        with self._state_lock:
            if not self._armed:
                logger.info("Refresh ignored: scheduler is not running")
                return False
            generation = self._generation
            now = self._clock()
            last = self._last_refresh_at
            if last is not None and now - last < self._cooldown:
                logger.info(
                    "Refresh ignored: %.1fs since last refresh (cooldown %.1fs)",
                    now - last,
                    self._cooldown,
                )
                return False
        ran = self.run_tick(generation)
        if ran:
            with self._state_lock:
                self._last_refresh_at = now
        return ran

    def run_tick(self, generation: int) -> bool:
        """Run the tick once unless another is in flight.  Never raises."""
        if not self._tick_lock.acquire(blocking=False):
            self.ticks_skipped += 1
            logger.info("Tick skipped: previous tick still running")
            return False
        try:
            self._is_running = True
            self._last_run_at = self._clock()
            try:
                self._tick(generation)
            except PaperTraderError as exc:
                logger.error("Tick failed: %s", exc)
            except Exception as exc:
                fault = SchedulerFault(f"unexpected {type(exc).__name__} in tick: {exc}")
                logger.error("%s", fault, exc_info=True)
            self.ticks_run += 1
            return True
        finally:
            self._is_running = False
            self._tick_lock.release()

    # -- internals ------------------------------------------------------------

    def _on_timer(self, generation: int) -> None:
        if not self.is_current(generation):
            logger.debug("Stale timer (generation %d) ignored", generation)
            return
        self.run_tick(generation)
        with self._state_lock:
            if self._armed and generation == self._generation:
                self._arm(generation)

    def _arm(self, generation: int) -> None:
        timer = self._timer_factory(self._interval, self._on_timer, (generation,))
        self._timer = timer
        timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
