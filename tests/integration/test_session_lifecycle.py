"""Integration tests for a full paper-trading session.

Runs the controller with candle-driven analysis and a file-backed store,
crashes it mid-session and restores from disk.  Timers are driven by the
manual clock so nothing sleeps.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from conftest import ManualTime

from papertrader import app
from papertrader.core.config import EngineSettings, SessionConfig, StrategyConfig
from papertrader.core.market_client import StaticMarketData
from papertrader.core.storage import FileKeyValueStore
from papertrader.models.candle import Candle
from papertrader.session.controller import SessionController
from papertrader.signals.analysis import CandleAnalysisProvider

TICK = 30.0
DAY = 86_400.0


def _flat_candles(close: float, volume: float, count: int = 21) -> list[Candle]:
    return [Candle(i * DAY, close, close, close, close, volume) for i in range(count)]


@pytest.fixture
def live_market() -> StaticMarketData:
    market = StaticMarketData({"BTC": 50_000_000.0, "ETH": 3_000_000.0, "SOL": 96_000.0})
    # 2e9 KRW daily turnover puts SOL in the top volume bucket
    market.set_candles("SOL", _flat_candles(100_000.0, 20_000.0))
    return market


def _controller(
    market: StaticMarketData, root: Path, manual_time: ManualTime
) -> SessionController:
    analysis = CandleAnalysisProvider(
        market, sentiment=lambda symbol: 9.0, fundamental=lambda symbol: 9.0
    )
    return SessionController(
        market,
        analysis=analysis,
        store=FileKeyValueStore(root),
        timer_factory=manual_time.timer,
        clock=manual_time,
        monotonic=manual_time,
    )


def _config() -> SessionConfig:
    return SessionConfig(
        coins=("KRW-BTC", "KRW-ETH"),
        initial_amount=10_000_000.0,
        strategy=StrategyConfig().with_risk(reserve_cash_ratio=0.2),
    )


class TestSessionLifecycle:
    def test_crash_and_restore(
        self, live_market: StaticMarketData, tmp_path: Path, manual_time: ManualTime
    ) -> None:
        root = tmp_path / "store"
        first = _controller(live_market, root, manual_time)
        first.add_coin("SOL")
        assert first.start(_config()).success

        # BTC falls 8%: stop loss frees cash, SOL dip becomes a strong buy
        live_market.set_price("BTC", 46_000_000.0)
        manual_time.advance(TICK)
        assert [(t.symbol, t.reason) for t in first.trades] == [
            ("SOL", "strong_buy"),
            ("BTC", "stop_loss"),
        ]
        assert (root / "papertrader.session.json").exists()

        # Simulated crash: the timer dies without a clean stop
        first.scheduler.stop()

        second = _controller(live_market, root, manual_time)
        restored = second.restore()
        assert restored.success and restored.message == "Restored session"
        assert second.status == "PAUSED"
        assert {p.symbol for p in second.positions} == {"ETH", "SOL"}
        assert second.catalog == ("KRW-SOL",)
        assert len(second.trades) == 2

        assert second.resume().success
        live_market.set_price("SOL", 106_000.0)
        manual_time.advance(TICK)
        latest = second.trades[0]
        assert (latest.symbol, latest.action, latest.reason) == ("SOL", "SELL", "profit_target_3")
        assert latest.profit is not None and latest.profit > 0
        summary = second.performance().data
        assert summary.win_rate == pytest.approx(50.0)

        stopped = second.stop()
        assert stopped.success

        third = _controller(live_market, root, manual_time)
        assert third.restore().message == "Restored history"
        assert third.session is None
        assert len(third.trades) == 3

    def test_corrupt_file_is_reset(
        self, live_market: StaticMarketData, tmp_path: Path, manual_time: ManualTime
    ) -> None:
        root = tmp_path / "store"
        first = _controller(live_market, root, manual_time)
        first.start(_config())
        first.scheduler.stop()
        (root / "papertrader.positions.json").write_text("[[[", encoding="utf-8")

        second = _controller(live_market, root, manual_time)
        result = second.restore()
        assert result.success
        assert result.data == ["positions"]
        assert second.status == "PAUSED"
        assert second.positions == []


# ---------------------------------------------------------------------------
# Command-line runner
# ---------------------------------------------------------------------------


class _FakeTime:
    """Monotonic clock that jumps a second per read; sleep is a no-op."""

    def __init__(self) -> None:
        self.now = 0.0

    def monotonic(self) -> float:
        self.now += 1.0
        return self.now

    def sleep(self, seconds: float) -> None:
        pass


class TestRunner:
    def test_parser_defaults(self) -> None:
        args = app.build_parser().parse_args(["--coins", "KRW-SOL", "--policy", "tiered"])
        assert args.coins == ["KRW-SOL"]
        assert args.policy == "tiered"
        assert args.duration == 0.0
        assert not args.restore

    def test_main_runs_and_stops(
        self,
        monkeypatch: pytest.MonkeyPatch,
        live_market: StaticMarketData,
        tmp_path: Path,
        manual_time: ManualTime,
    ) -> None:
        controller = _controller(live_market, tmp_path / "store", manual_time)
        monkeypatch.setattr(app, "build_controller", lambda args: controller)
        monkeypatch.setattr(app, "setup_logger", lambda *a, **kw: None)
        monkeypatch.setattr(app, "time", _FakeTime())

        code = app.main(
            ["--coins", "KRW-BTC", "KRW-ETH", "--preset", "conservative", "--duration", "3"]
        )
        assert code == 0
        assert controller.session is None
        assert controller.restore().message == "Restored history"

    def test_unknown_preset_rejected(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            app.build_parser().parse_args(["--preset", "reckless"])
        assert exc_info.value.code == 2
        assert "invalid choice" in capsys.readouterr().err

    def test_restore_after_clean_exit_has_no_session(
        self,
        monkeypatch: pytest.MonkeyPatch,
        live_market: StaticMarketData,
        tmp_path: Path,
        manual_time: ManualTime,
    ) -> None:
        root = tmp_path / "store"
        monkeypatch.setattr(
            app, "build_controller", lambda args: _controller(live_market, root, manual_time)
        )
        monkeypatch.setattr(app, "setup_logger", lambda *a, **kw: None)
        monkeypatch.setattr(app, "time", _FakeTime())

        assert app.main(["--coins", "KRW-BTC", "--duration", "2"]) == 0
        assert app.main(["--restore"]) == 1
        assert "crash" in app.build_parser().format_help()

    def test_main_reports_failed_start(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, manual_time: ManualTime
    ) -> None:
        controller = _controller(StaticMarketData(), tmp_path / "store", manual_time)
        monkeypatch.setattr(app, "build_controller", lambda args: controller)
        monkeypatch.setattr(app, "setup_logger", lambda *a, **kw: None)
        assert app.main(["--coins", "KRW-BTC"]) == 1

    def test_build_controller_reads_settings(
        self, settings_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        created: dict[str, Any] = {}

        class _Client(StaticMarketData):
            def __init__(self, *args: Any, **kwargs: Any) -> None:
                super().__init__()
                created["client"] = self

        monkeypatch.setattr(app, "UpbitMarketClient", _Client)
        args = app.build_parser().parse_args(
            ["--settings", str(settings_file), "--store-dir", str(tmp_path / "s")]
        )
        controller = app.build_controller(args)
        assert controller.settings == EngineSettings.from_file(settings_file)
        assert controller.settings.tick_interval_seconds == 15.0
        assert "client" in created
        assert controller.gateway is not None
