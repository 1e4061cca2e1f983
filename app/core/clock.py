from datetime import datetime, date, timedelta, timezone
from typing import Optional


class Clock:
    """Source of "now" for every time-dependent learning rule.

    All values are naive UTC, matching how timestamps are stored.
    """

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock(Clock):
    def __init__(self, current: Optional[datetime] = None):
        self._current = to_naive_utc(current) if current else SystemClock().now()

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime):
        self._current = to_naive_utc(current)

    def advance(self, **kwargs):
        self._current = self._current + timedelta(**kwargs)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


system_clock = SystemClock()
