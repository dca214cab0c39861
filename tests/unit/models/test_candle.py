"""Tests for papertrader.models.candle."""

from __future__ import annotations

import pytest

from papertrader.models.candle import Candle


def test_change_pct_and_notional() -> None:
    c = Candle(timestamp=0.0, open=100.0, high=120.0, low=90.0, close=110.0, volume=2.0)
    assert c.change_pct == pytest.approx(10.0)
    assert c.notional == pytest.approx(220.0)


def test_notional_prefers_traded_value() -> None:
    c = Candle(0.0, 100.0, 100.0, 100.0, 100.0, 2.0, traded_value=999.0)
    assert c.notional == 999.0


def test_zero_open() -> None:
    assert Candle(0.0, 0.0, 1.0, 0.0, 1.0, 1.0).change_pct == 0.0


def test_from_upbit() -> None:
    c = Candle.from_upbit(
        {
            "candle_date_time_utc": "2024-01-01T00:00:00",
            "opening_price": 100,
            "high_price": 110,
            "low_price": 95,
            "trade_price": 105,
            "candle_acc_trade_volume": 3,
            "candle_acc_trade_price": 315,
        }
    )
    assert c.timestamp == 1_704_067_200.0
    assert c.close == 105.0
    assert c.traded_value == 315.0
    assert c.validate() == []


def test_from_upbit_missing_field() -> None:
    with pytest.raises(KeyError):
        Candle.from_upbit({"candle_date_time_utc": "2024-01-01T00:00:00"})


def test_validate_bounds() -> None:
    errors = Candle(0.0, 100.0, 90.0, 95.0, 100.0, 1.0).validate()
    assert any("high" in e for e in errors)


def test_frozen() -> None:
    c = Candle(0.0, 1.0, 1.0, 1.0, 1.0, 1.0)
    with pytest.raises(AttributeError):
        c.close = 2.0  # type: ignore[misc]
