"""
Clock -- injectable time source.

Every timestamp the kernel records (request creation, vendor arrival and
departure, task completion, allocation edits) comes from a ``Clock``
handed to the registries.  Service code never calls ``datetime.now()``.

All clocks return timezone-aware UTC datetimes, so arrival / departure
ordering and persisted timestamps compare safely.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


def _aware(moment: datetime) -> datetime:
    if moment.tzinfo is None or moment.utcoffset() is None:
        raise ValueError(f"clock times must be timezone-aware, got {moment.isoformat()}")
    return moment.astimezone(timezone.utc)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""


class SystemClock(Clock):
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Manually driven clock for tests and replays.

    ``now()`` is frozen until moved with ``advance``, ``advance_hours``,
    ``tick`` or ``set_time``.  Defaults to the morning of a wedding day.
    """

    DEFAULT_START = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None):
        self._now = _aware(start) if start is not None else self.DEFAULT_START

    def now(self) -> datetime:
        return self._now

    def set_time(self, moment: datetime) -> None:
        self._now = _aware(moment)

    def advance(self, seconds: int | float | timedelta = 1) -> datetime:
        """Move forward; returns the new time."""
        step = seconds if isinstance(seconds, timedelta) else timedelta(seconds=seconds)
        if step < timedelta(0):
            raise ValueError("a clock cannot move backwards; use set_time")
        self._now += step
        return self._now

    def advance_hours(self, hours: int | float) -> datetime:
        return self.advance(timedelta(hours=hours))

    def tick(self) -> datetime:
        return self.advance(1)
