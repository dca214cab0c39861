"""Tests for papertrader.portfolio.history."""

from __future__ import annotations

import pytest

from papertrader.models.trade import Trade
from papertrader.portfolio.history import TradeHistory

NOW = 1_700_050_800.0


def _trade(ts: float, seq: int = 0) -> Trade:
    return Trade.create("BTC", "BUY", 100.0, 1.0, ts, "test", seq=seq)


class TestTradeHistory:
    def test_newest_first(self) -> None:
        history = TradeHistory()
        for i in range(3):
            history.append(_trade(NOW + i, seq=i))
        assert [t.timestamp for t in history.items()] == [NOW + 2, NOW + 1, NOW]

    def test_cap_evicts_oldest(self) -> None:
        history = TradeHistory(cap=3)
        for i in range(5):
            history.append(_trade(NOW + i, seq=i))
        assert len(history) == 3
        assert [t.timestamp for t in history] == [NOW + 4, NOW + 3, NOW + 2]

    def test_restore_sorts_and_caps(self) -> None:
        history = TradeHistory(cap=2)
        history.restore([_trade(NOW), _trade(NOW + 20), _trade(NOW + 10)])
        assert [t.timestamp for t in history.items()] == [NOW + 20, NOW + 10]

    def test_items_is_a_copy(self) -> None:
        history = TradeHistory()
        history.append(_trade(NOW))
        history.items().clear()
        assert len(history) == 1

    def test_clear(self) -> None:
        history = TradeHistory()
        history.append(_trade(NOW))
        history.clear()
        assert history.items() == []

    def test_count_on_day(self) -> None:
        history = TradeHistory()
        history.append(_trade(NOW - 2 * 86_400))
        history.append(_trade(NOW, seq=1))
        history.append(_trade(NOW + 1, seq=2))
        assert history.count_on_day(NOW) == 2

    def test_invalid_cap(self) -> None:
        with pytest.raises(ValueError):
            TradeHistory(cap=0)
