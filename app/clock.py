"""
Time helpers. All timestamps in the database are naive UTC.
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Converts an aware datetime to naive UTC; naive values are assumed to be UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class MonotonicClock:
    """
    Wall clock that never goes backwards.

    One instance per render cycle (or per long-lived view) keeps live durations
    from jittering when the system clock is adjusted.
    """

    def __init__(self, source=utcnow):
        self._source = source
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        current = as_naive_utc(self._source())
        if self._last is not None and current < self._last:
            return self._last
        self._last = current
        return current
