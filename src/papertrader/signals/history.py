"""Capped, always-sorted signal history."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from papertrader.core.constants import DEFAULT_SIGNAL_HISTORY_CAP
from papertrader.models.signal import Signal
from papertrader.signals.generator import rank


class SignalHistory:
    """Signals seen this session, highest score first.

    When over capacity the lowest-scoring signals are evicted.  A signal
    with an id already present replaces the older copy.
    """

    def __init__(self, cap: int = DEFAULT_SIGNAL_HISTORY_CAP) -> None:
        if cap < 1:
            raise ValueError("cap must be >= 1")
        self._cap = cap
        self._signals: list[Signal] = []
        self._lock = threading.Lock()

    @property
    def cap(self) -> int:
        return self._cap

    def add(self, signals: Iterable[Signal]) -> None:
        with self._lock:
            merged = {s.id: s for s in self._signals}
            for signal in signals:
                merged[signal.id] = signal
            self._signals = rank(merged.values(), self._cap)

    def mark_executed(self, signal_ids: Iterable[str]) -> None:
        wanted = set(signal_ids)
        with self._lock:
            self._signals = [s.mark_executed() if s.id in wanted else s for s in self._signals]

    def items(self) -> list[Signal]:
        with self._lock:
            return list(self._signals)

    def restore(self, signals: Iterable[Signal]) -> None:
        with self._lock:
            self._signals = rank(signals, self._cap)

    def clear(self) -> None:
        with self._lock:
            self._signals.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._signals)
