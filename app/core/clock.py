"""Pluggable "now" source for scheduling, cutoffs and published-today queries.

All timestamps are naive UTC, matching the ``DateTime`` columns.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current naive UTC instant."""

    def days_ago(self, days: int) -> datetime:
        return self.now() - timedelta(days=days)

    def start_of_day(self) -> datetime:
        return self.now().replace(hour=0, minute=0, second=0, microsecond=0)


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock(Clock):
    """Clock frozen at a given instant; ``advance`` moves it forward."""

    def __init__(self, instant: datetime):
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def advance(self, **kwargs) -> datetime:
        self._instant = self._instant + timedelta(**kwargs)
        return self._instant


system_clock = SystemClock()


def get_clock() -> Clock:
    return system_clock
