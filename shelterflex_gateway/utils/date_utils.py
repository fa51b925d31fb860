"""Date manipulation utilities"""

import threading
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from dateutil.relativedelta import relativedelta


def add_months(from_date: date, months: int) -> date:
    """Add calendar months, clamping to the last day of shorter months"""
    return from_date + relativedelta(months=months)


def add_days(from_date: date, days: int) -> date:
    return from_date + timedelta(days=days)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite"""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class IncreasingClock:
    """Wraps a clock so successive readings never repeat or go backwards"""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._last: datetime | None = None
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            now = self._clock()
            if self._last is not None and now <= self._last:
                now = self._last + timedelta(microseconds=1)
            self._last = now
            return now
