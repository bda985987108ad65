"""
Injectable time source.

Services never read the wall clock themselves.  Movement timestamps,
purchase order issue dates, receipt times and dispatch guide tickets all
come from the Clock handed to them by the composition root.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

DEFAULT_TEST_EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware UTC datetimes."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Repeated ``now()`` calls return the same instant, so every movement
    written between two ``advance()`` calls shares one timestamp and the
    log ``sequence`` alone orders them.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or DEFAULT_TEST_EPOCH

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move one second forward and return the new instant."""
        self.advance(1)
        return self._current
