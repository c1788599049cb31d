"""
Clock -- where payplan gets "now" from.

Only services read the time, and only to stamp ``PaymentRecord.recorded_at``
and ``AuditEntry.occurred_at``. They receive a Clock through their
constructor. Engines never hold one: status derivation takes an explicit
``as_of`` date instead.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

_DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"Clock times must be timezone-aware, got {value!r}")
    return value


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        """Calendar date of ``now()``, e.g. the default ``as_of`` for a refresh."""
        return self.now().date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock frozen at a chosen instant, moved only by the test.

    Starts at 2024-01-01 12:00 UTC unless told otherwise. ``advance`` and
    ``tick`` move it forward; ``set_time`` jumps anywhere.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = _require_aware(fixed_time or _DEFAULT_TEST_TIME)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = _require_aware(time)

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move one second forward and return the new time."""
        self.advance()
        return self._current
