"""Tests for papertrader.models.session."""

from __future__ import annotations

import pytest

from papertrader.core.config import SessionConfig
from papertrader.models.session import TradingSession, make_session_id


@pytest.fixture
def session() -> TradingSession:
    return TradingSession(
        id=make_session_id(1_700_000_000.0),
        started_at=1_700_000_000.0,
        config=SessionConfig(coins=("KRW-BTC",), initial_amount=1_000_000.0),
        initial_amount=1_000_000.0,
        cash_balance=300_000.0,
        status="RUNNING",
    )


def test_flags(session: TradingSession) -> None:
    assert session.is_running and session.is_active and not session.is_paused
    session.status = "PAUSED"
    assert session.is_paused and session.is_active
    session.status = "STOPPED"
    assert not session.is_active


def test_total_return(session: TradingSession) -> None:
    assert session.total_return_pct(1_100_000.0) == pytest.approx(10.0)


def test_round_trip(session: TradingSession) -> None:
    session.realized_pnl = 1234.5
    restored = TradingSession.from_dict(session.to_dict())
    assert restored == session
    assert restored.id == "session_1700000000000"


def test_unknown_status_rejected(session: TradingSession) -> None:
    data = session.to_dict()
    data["status"] = "EXPLODED"
    with pytest.raises(ValueError, match="unknown session status"):
        TradingSession.from_dict(data)


def test_validate(session: TradingSession) -> None:
    assert session.validate() == []
    session.cash_balance = -1.0
    assert any("cash_balance" in e for e in session.validate())
