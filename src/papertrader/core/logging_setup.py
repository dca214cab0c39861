"""Structured logging with rotating file handlers.

Call :func:`setup_logger` once per entry point to get a logger that writes
to both the console (``stderr``) and a rotating log file under ``logs/``.
Child loggers created with ``logging.getLogger(__name__)`` inside the
``papertrader`` package propagate to it.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# 10 MB max per file, keep 5 backups
_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5

LEVEL_ENV_VAR = "PAPERTRADER_LOG_LEVEL"

_configured: set[str] = set()


def resolve_level(level: int | str | None, default: int = logging.INFO) -> int:
    """Turn ``"debug"``, ``"20"`` or ``logging.DEBUG`` into a numeric level.

    ``None`` consults :data:`LEVEL_ENV_VAR`; anything unrecognised gives
    *default*.
    """
    if level is None:
        level = os.environ.get(LEVEL_ENV_VAR)
        if not level:
            return default
    if isinstance(level, int):
        return level
    text = str(level).strip()
    if text.isdigit():
        return int(text)
    resolved = logging.getLevelName(text.upper())
    return resolved if isinstance(resolved, int) else default


def setup_logger(
    name: str = "papertrader",
    log_dir: Path | None = None,
    level: int | str | None = None,
    console: bool = True,
) -> logging.Logger:
    """Create (or retrieve) a logger with console + rotating-file handlers.

    Parameters
    ----------
    name:
        Logger name, also used as the log filename (``<name>.log``).
        ``"papertrader"`` captures every module in the package.
    log_dir:
        Directory for log files.  Defaults to ``./logs``.
    level:
        Minimum log level.  ``None`` reads ``PAPERTRADER_LOG_LEVEL`` and
        falls back to ``INFO``.
    console:
        Attach a ``stderr`` handler as well as the file handler.
    """
    if log_dir is None:
        log_dir = Path("logs")

    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers when called more than once
    if name in _configured:
        return logger

    numeric_level = resolve_level(level)
    logger.setLevel(numeric_level)
    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)

    if console:
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(formatter)
        stream.setLevel(numeric_level)
        logger.addHandler(stream)

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / f"{name}.log",
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(numeric_level)
        logger.addHandler(file_handler)
    except OSError:
        # Console-only when the log directory is not writable
        logger.warning("Could not create log file in %s", log_dir)

    _configured.add(name)
    return logger
