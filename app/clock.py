# app/clock.py

"""Reference clocks.

Scheduling code never calls ``datetime.now()``; it asks a clock for the
current UTC instant and converts with the business timezone it was given.
"""

from datetime import date, datetime, time, timezone

import pytz


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock frozen at one instant. Used by tests."""

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            raise ValueError("FixedClock needs a timezone-aware instant")
        self.instant = instant.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self.instant


def local_now(clock, tz) -> datetime:
    """Current wall-clock time in the business timezone."""
    return clock.now().astimezone(tz)


def local_today(clock, tz) -> date:
    return local_now(clock, tz).date()


def to_utc(day: date, minutes: int, tz) -> datetime:
    """Localize a business-local date + minute-of-day and convert to UTC."""
    naive = datetime.combine(day, time(minutes // 60, minutes % 60))
    return tz.localize(naive).astimezone(pytz.utc)
