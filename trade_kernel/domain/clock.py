"""
Injectable time source.

Services receive a ``Clock`` instead of calling ``datetime.now()``: rate
validity is judged against ``today()`` and override records are stamped
with ``now()``, so a session replayed with a ``DeterministicClock``
produces the same prices and audit timestamps.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone


class Clock(ABC):
    """Source of the current time.  ``now()`` is always timezone-aware."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Clock frozen at ``fixed_time`` until ``set_time`` moves it."""

    def __init__(self, fixed_time: datetime | None = None):
        self._time = fixed_time or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        if self._time.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware datetime")

    def now(self) -> datetime:
        return self._time

    def set_time(self, time: datetime) -> None:
        self._time = time
