"""Tests for papertrader.core.logging_setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from papertrader.core.logging_setup import LEVEL_ENV_VAR, _configured, resolve_level, setup_logger

_NAMES = ("test_logger", "test_console_only", "test_idempotent", "test_env_level")


class TestSetupLogger:
    def setup_method(self) -> None:
        """Reset state between tests."""
        for name in _NAMES:
            _configured.discard(name)
            logging.getLogger(name).handlers.clear()

    def test_creates_log_file(self, tmp_path: Path) -> None:
        lg = setup_logger("test_logger", log_dir=tmp_path)
        lg.info("hello from test")
        content = (tmp_path / "test_logger.log").read_text(encoding="utf-8")
        assert "hello from test" in content

    def test_console_handler_optional(self, tmp_path: Path) -> None:
        lg = setup_logger("test_console_only", log_dir=tmp_path, console=False)
        handler_types = [type(h).__name__ for h in lg.handlers]
        assert handler_types == ["RotatingFileHandler"]

    def test_idempotent(self, tmp_path: Path) -> None:
        lg1 = setup_logger("test_idempotent", log_dir=tmp_path)
        n = len(lg1.handlers)
        lg2 = setup_logger("test_idempotent", log_dir=tmp_path)
        assert lg1 is lg2
        assert len(lg2.handlers) == n

    def test_level_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(LEVEL_ENV_VAR, "debug")
        lg = setup_logger("test_env_level", log_dir=tmp_path)
        assert lg.level == logging.DEBUG


class TestResolveLevel:
    def test_names_and_numbers(self) -> None:
        assert resolve_level("warning") == logging.WARNING
        assert resolve_level("10") == logging.DEBUG
        assert resolve_level(logging.ERROR) == logging.ERROR

    def test_unknown_gives_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(LEVEL_ENV_VAR, raising=False)
        assert resolve_level("chatty") == logging.INFO
        assert resolve_level(None, default=logging.WARNING) == logging.WARNING
