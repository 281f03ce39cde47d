"""
Time sources for billing services.

Payment times, void stamps and the date inside an invoice number all come
from an injected Clock, so a test can pin them to a known instant.  Every
clock returns timezone-aware UTC datetimes; conversion to clinic-local time
happens only where an invoice number is formatted.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

# Start of every DeterministicClock unless the test picks another instant
EPOCH_FOR_TESTS = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current instant in UTC."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Consecutive ``now()`` calls return the same instant; ``advance()`` steps
    it forward and ``set_time()`` jumps to an arbitrary one.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or EPOCH_FOR_TESTS

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = moment

    def advance(self, seconds: int = 1) -> None:
        self._current = self._current + timedelta(seconds=seconds)
