"""User-facing alert raised during a session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from papertrader.core.constants import VALID_LEVELS


@dataclass(frozen=True, slots=True)
class Notification:
    """An alert for the view layer (daily target hit, stop loss, no data...).

    ``level`` is one of ``info``, ``success``, ``warning``, ``error``.
    """

    id: str
    message: str
    level: str
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "level": self.level,
            "timestamp": self.timestamp,
        }

    def validate(self) -> list[str]:
        errors: list[str] = []
        if not self.message:
            errors.append("message must not be empty.")
        if self.level not in VALID_LEVELS:
            errors.append(f"level={self.level!r} must be one of {sorted(VALID_LEVELS)}.")
        return errors
