"""papertrader exception hierarchy.

All application-specific exceptions inherit from :class:`PaperTraderError`.
The session controller converts the ones a caller can act on into
``CommandResult`` failures; nothing here is meant to escape a public
controller method or a scheduler tick.
"""

from __future__ import annotations


class PaperTraderError(Exception):
    """Base exception for all papertrader errors."""


# -- Configuration / input --------------------------------------------------


class ConfigError(PaperTraderError):
    """Invalid or missing configuration file."""


class ValidationError(PaperTraderError):
    """Rejected input: bad config, empty coin list, malformed trade."""


# -- Ledger -----------------------------------------------------------------


class InsufficientFundsError(PaperTraderError):
    """A buy would drive the simulated cash balance below zero."""


# -- Market data ------------------------------------------------------------


class DataFetchError(PaperTraderError):
    """Price or candle fetch failed (network, bad payload, unknown market)."""


class RateLimitError(DataFetchError):
    """Market data API rate limit exceeded."""


# -- Persistence ------------------------------------------------------------


class PersistenceError(PaperTraderError):
    """Snapshot could not be written, or a stored record is corrupt."""


# -- Scheduler --------------------------------------------------------------


class SchedulerFault(PaperTraderError):
    """Unexpected failure inside a scheduler tick."""
