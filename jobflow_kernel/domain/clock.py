"""
Clock -- Injectable time source.

Responsibility:
    Services never call ``datetime.now()`` or ``date.today()`` directly.
    "Today" for SLA arithmetic and "now" for timeline entries and
    rejection-request deadlines both come from a Clock.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Invariants enforced:
    - ``now()`` is always timezone-aware.  Autoclose deadlines are
      compared against it, and naive/aware comparisons raise TypeError.
"""

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, timedelta


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        Services receive a Clock via constructor injection.  Engines take
        ``today``/``now`` as explicit parameters instead.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        """Calendar date of ``now()``; the SLA reference day."""
        return self.now().date()


class SystemClock(Clock):
    """UTC system time."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Test clock that only moves when told to.

    ``advance`` accepts seconds or a timedelta, so a test can step past a
    24-hour autoclose deadline in one call.
    """

    def __init__(self, start: datetime | None = None):
        start = start or datetime(2026, 1, 5, 9, 0, tzinfo=UTC)
        if start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start time")
        self._current = start

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        if time.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware time")
        self._current = time

    def advance(self, seconds: int | timedelta = 1) -> None:
        step = seconds if isinstance(seconds, timedelta) else timedelta(seconds=seconds)
        self._current += step

    def tick(self) -> datetime:
        """Advance one second and return the new time."""
        self.advance(1)
        return self._current
