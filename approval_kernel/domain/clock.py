"""
Clock -- Injectable time source.

Responsibility:
    Every timestamp the kernel records (submission, decision, comment,
    hold creation, settlement) comes from an injected ``Clock`` so that
    workflows, audit trails and statistics windows are reproducible in
    tests.

Architecture position:
    Kernel > Domain -- pure core.  ``SystemClock`` is the one sanctioned
    read of wall-clock time.

Failure modes:
    - ``SequentialClock`` raises ValueError when built from an empty list.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        Services receive a Clock via constructor injection and never call
        ``datetime.now()`` themselves.

    Guarantees:
        ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...


class SystemClock(Clock):
    """Production clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value until ``advance()`` or ``set_time()``
    is called, so a whole submit/decide sequence can be pinned to known
    instants.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or datetime(
            2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc
        )

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._current = time

    def advance(self, seconds: float = 0, *, hours: float = 0, days: float = 0) -> datetime:
        """Move the clock forward and return the new time."""
        self._current = self._current + timedelta(
            seconds=seconds, hours=hours, days=days,
        )
        return self._current

    def tick(self) -> datetime:
        """Advance by 1 second and return new time."""
        return self.advance(1)


class SequentialClock(Clock):
    """
    Clock that returns times from a predefined list.

    After exhaustion the last value repeats.  Handy for feeding
    deliberately out-of-order timestamps into audit trail tests.
    """

    def __init__(self, times: list[datetime]):
        if not times:
            raise ValueError("SequentialClock requires at least one time")
        self._times = list(times)
        self._index = 0

    def now(self) -> datetime:
        value = self._times[min(self._index, len(self._times) - 1)]
        self._index += 1
        return value
