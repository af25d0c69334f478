"""
Error taxonomy for the life-kline engine.

Only two things can go wrong in a computation: the caller hands us birth
data we cannot read, or the calendar backend cannot resolve the date.
Everything downstream of pillar assembly is a total function.
"""

from datetime import datetime
from typing import Optional


class LifeKlineError(Exception):
    """Base class for every error raised by the engine."""


class InvalidInput(LifeKlineError, ValueError):
    """Malformed or out-of-range birth data.

    Attributes:
        field: dotted path of the offending input field (e.g. "birth_date",
            "location.longitude")
        message: human-readable reason
    """

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> dict:
        return {"error": "invalid_input", "field": self.field, "message": self.message}


class CalendricalResolutionFailure(LifeKlineError):
    """The calendar backend could not resolve a solar date to pillars."""

    def __init__(self, moment: Optional[datetime], message: str):
        self.moment = moment
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": "calendrical_resolution_failure",
            "moment": self.moment.isoformat() if self.moment else None,
            "message": self.message,
        }

