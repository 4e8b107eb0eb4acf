"""
Time sources for the guard.

The guard never reads the wall clock directly; it asks a Clock, so that
tests can pin "today" without patching globals.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime


class Clock(ABC):
    """Abstract source of the current local time."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware local datetime."""
        pass

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now().astimezone()


class FixedClock(Clock):
    """Clock pinned to a single instant. Naive datetimes are read as local time."""

    def __init__(self, instant: datetime):
        self.instant = instant.astimezone()

    def now(self) -> datetime:
        return self.instant


def format_rfc3339(moment: datetime) -> str:
    """Format a datetime as RFC3339 with second precision ("Z" for UTC)."""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    text = moment.isoformat(timespec="seconds")
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text
