"""
Time sources for services.

Requests, journal entries and audit events are stamped from an injected
``Clock`` rather than ``datetime.now()``; the distribution entry date is
``clock.today()`` clamped into the fiscal period.
"""

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, timedelta

_DEFAULT_START = datetime(2025, 1, 1, 9, 0, tzinfo=UTC)


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """Frozen clock for tests; moves only through ``advance`` or ``set_time``."""

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or _DEFAULT_START

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        if time.tzinfo is None:
            raise ValueError("DeterministicClock requires an aware datetime")
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)
