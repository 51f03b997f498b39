"""
Clock -- injectable source of "now".

Services stamp ledger ``occurred_at``, order ``placed_at`` and the
confirmed/completed/cancelled audit times from a Clock they were given,
never from ``datetime.now()``.  Production wiring uses SystemClock; tests and
the seed script use DeterministicClock so timestamps and newest-first
orderings are reproducible.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Returns timezone-aware UTC datetimes."""

    @abstractmethod
    def now(self) -> datetime: ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock that only moves when told to.

    Two events stamped without an ``advance()`` in between share a timestamp;
    tests that assert newest-first order advance the clock between events.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or EPOCH

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = moment

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move one second forward and return the new time."""
        self.advance(1)
        return self._current
