"""Time sources for cache staleness decisions.

The cache never calls ``datetime.now`` directly; it asks a Clock. Tests swap in
a ManualClock to step time past the TTL without sleeping.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


def require_aware(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError("clock values must be timezone-aware")
    return value


class Clock(ABC):
    """Source of the current time."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current timezone-aware time."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self._now = require_aware(start) if start is not None else datetime(2025, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, *, milliseconds: float = 0, seconds: float = 0) -> datetime:
        self._now = self._now + timedelta(milliseconds=milliseconds, seconds=seconds)
        return self._now

    def set(self, value: datetime) -> None:
        self._now = require_aware(value)
