"""Bounded retry with exponential backoff and simple rate limiting.

Used by the Upbit market client so a flaky endpoint costs a few bounded
attempts instead of stalling a scheduler tick forever.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from collections.abc import Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


# ---------------------------------------------------------------------------
# Bounded retry decorator
# ---------------------------------------------------------------------------


def retry(
    max_retries: int = 2,
    base_delay: float = 0.5,
    max_delay: float = 5.0,
    backoff_factor: float = 2.0,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[F], F]:
    """Decorator that retries a function on failure with exponential backoff.

    Parameters
    ----------
    max_retries:
        Retry attempts after the first call (0 = call once).
    base_delay:
        Delay in seconds before the first retry.
    max_delay:
        Upper bound on the delay between retries.
    backoff_factor:
        Multiplier applied to the delay after each failure.
    exceptions:
        Exception types that trigger a retry; anything else propagates
        immediately.
    sleep:
        Sleep function, replaceable in tests.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = base_delay
            attempts = max_retries + 1
            for attempt in range(1, attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as exc:
                    if attempt == attempts:
                        logger.error(
                            "%s failed after %d attempts: %s",
                            func.__qualname__,
                            attempts,
                            exc,
                        )
                        raise
                    logger.warning(
                        "%s attempt %d/%d failed: %s, retrying in %.1fs",
                        func.__qualname__,
                        attempt,
                        attempts,
                        exc,
                        delay,
                    )
                    sleep(delay)
                    delay = min(delay * backoff_factor, max_delay)
            raise AssertionError("unreachable")  # pragma: no cover

        return wrapper  # type: ignore[return-value]

    return decorator


# ---------------------------------------------------------------------------
# Simple rate limiter
# ---------------------------------------------------------------------------


class RateLimiter:
    """Thread-safe minimum-interval rate limiter.

    Ensures at most *calls_per_second* calls are made.  Callers that exceed
    the rate are blocked until the interval has elapsed.
    """

    def __init__(
        self,
        calls_per_second: float = 8.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if calls_per_second <= 0:
            raise ValueError("calls_per_second must be positive")
        self._min_interval = 1.0 / calls_per_second
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._lock = threading.Lock()

    @property
    def min_interval(self) -> float:
        return self._min_interval

    def acquire(self) -> None:
        """Block until a call is allowed."""
        with self._lock:
            now = self._clock()
            if self._last_call is not None:
                wait = self._min_interval - (now - self._last_call)
                if wait > 0:
                    self._sleep(wait)
            self._last_call = self._clock()
