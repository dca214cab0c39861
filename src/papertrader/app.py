"""Command-line runner: start a paper-trading session against live Upbit data.

Usage::

    papertrader --coins KRW-BTC KRW-ETH --amount 10000000
    papertrader --preset aggressive --policy tiered --duration 600
    papertrader --restore

The session keeps ticking in the background until ``--duration`` elapses
or the process receives Ctrl+C; the final state is snapshotted to the
store directory either way.
"""

from __future__ import annotations

import argparse
import logging
import time
from collections.abc import Sequence
from pathlib import Path

from papertrader.core.config import PRESETS, EngineSettings, SessionConfig, StrategyConfig
from papertrader.core.constants import (
    DEFAULT_INITIAL_AMOUNT,
    SETTINGS_FILENAME,
    STRATEGY_FILENAME,
    VALID_POLICIES,
)
from papertrader.core.events import NotificationRaised, SessionStopped, TradeExecuted
from papertrader.core.logging_setup import setup_logger
from papertrader.core.market_client import UpbitMarketClient
from papertrader.core.storage import FileKeyValueStore
from papertrader.session.controller import SessionController
from papertrader.signals.analysis import CandleAnalysisProvider

logger = logging.getLogger(__name__)

_DEFAULT_COINS = ("KRW-BTC", "KRW-ETH", "KRW-XRP")
_STATUS_EVERY_SECONDS = 60.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="papertrader",
        description="Simulated crypto trading session on Upbit KRW markets",
    )
    parser.add_argument("--coins", nargs="+", help="Markets to trade, e.g. KRW-BTC KRW-ETH")
    parser.add_argument(
        "--amount", type=float, default=DEFAULT_INITIAL_AMOUNT, help="Starting capital in KRW"
    )
    parser.add_argument(
        "--preset", choices=sorted(PRESETS), help="Strategy preset (overrides the strategy file)"
    )
    parser.add_argument("--policy", choices=sorted(VALID_POLICIES), help="Initial allocation")
    parser.add_argument(
        "--settings", type=Path, default=Path(SETTINGS_FILENAME), help="Engine settings JSON"
    )
    parser.add_argument(
        "--strategy", type=Path, default=Path(STRATEGY_FILENAME), help="Strategy JSON"
    )
    parser.add_argument("--store-dir", type=Path, help="Snapshot directory")
    parser.add_argument("--log-dir", type=Path, default=Path("logs"))
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument(
        "--duration", type=float, default=0.0, help="Seconds to run; 0 runs until Ctrl+C"
    )
    parser.add_argument(
        "--restore",
        action="store_true",
        help=(
            "Resume a session left running by a crash or kill; a clean exit stops the "
            "session, so only its history is restored"
        ),
    )
    return parser


def build_controller(args: argparse.Namespace) -> SessionController:
    settings = EngineSettings.from_file(args.settings)
    market = UpbitMarketClient()
    analysis = CandleAnalysisProvider(market, candle_count=settings.candle_count)
    store = FileKeyValueStore(args.store_dir or Path(settings.store_dir))
    return SessionController(market, analysis=analysis, store=store, settings=settings)


def _log_event(event: object) -> None:
    if isinstance(event, TradeExecuted):
        t = event.trade
        logger.info(
            "%s %s %.8f @ %.0f KRW (%s)", t.action, t.symbol, t.quantity, t.price, t.reason
        )
    elif isinstance(event, NotificationRaised):
        logger.info("[%s] %s", event.notification.level, event.notification.message)
    elif isinstance(event, SessionStopped):
        logger.info("Final value: %.0f KRW", event.total_value)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger("papertrader", args.log_dir, level=args.log_level)

    controller = build_controller(args)
    controller.bus.subscribe_many((TradeExecuted, NotificationRaised, SessionStopped), _log_event)

    if args.restore:
        result = controller.restore()
        logger.info(result.message)
        if result.session is not None:
            result = controller.resume()
    else:
        strategy = (
            StrategyConfig.preset(args.preset)
            if args.preset
            else StrategyConfig.from_file(args.strategy)
        )
        config = SessionConfig(
            coins=tuple(args.coins or _DEFAULT_COINS),
            initial_amount=args.amount,
            strategy=strategy,
            allocation_policy=args.policy or controller.settings.allocation_policy,
        )
        result = controller.start(config)

    if not result.success or result.session is None:
        logger.error("Could not start: %s", result.message)
        return 1
    logger.info(result.message)

    deadline = time.monotonic() + args.duration if args.duration > 0 else None
    next_status = time.monotonic() + _STATUS_EVERY_SECONDS
    try:
        while deadline is None or time.monotonic() < deadline:
            time.sleep(1.0)
            if time.monotonic() >= next_status:
                next_status += _STATUS_EVERY_SECONDS
                summary = controller.performance().data
                logger.info(
                    "Value %.0f KRW (%+.2f%%), %d positions, %d trades",
                    summary.total_value,
                    summary.total_return_pct,
                    summary.position_count,
                    summary.trade_count,
                )
    except KeyboardInterrupt:
        logger.info("Interrupted")

    controller.stop()
    return 0
