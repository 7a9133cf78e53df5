"""
Clock - injectable time source.

Services receive a Clock instead of calling datetime.now() or date.today(),
so deadline status and invoice dates can be tested against a fixed "now".
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo


class Clock(ABC):
    """Abstract clock interface."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time as a timezone-aware UTC datetime."""
        ...

    def today(self, tz: tzinfo) -> date:
        """Calendar date in the given timezone."""
        return self.now().astimezone(tz).date()


class SystemClock(Clock):
    """Production clock that returns actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """
    Test clock with controlled time.

    Returns the same value until advance() or set_time() is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._fixed_time

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time

    def advance(self, **delta: float) -> None:
        """Advance the clock, e.g. advance(days=1)."""
        self._fixed_time = self._fixed_time + timedelta(**delta)
