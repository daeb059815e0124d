# app/core.py

"""Time helpers shared by the scheduling code.

Times of day are integer minutes since local midnight.
"""

from datetime import date, datetime, time

from app.errors import InvalidDateError, InvalidTimeError

MINUTES_PER_DAY = 24 * 60


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    """Half-open interval intersection: [a_start, a_end) vs [b_start, b_end)."""
    return a_start < b_end and b_start < a_end


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise InvalidTimeError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_display(minutes: int) -> str:
    """12-hour label, e.g. 540 -> '9:00 AM'."""
    hours, mins = divmod(minutes, 60)
    period = "PM" if hours >= 12 else "AM"
    display_hours = 12 if hours % 12 == 0 else hours % 12
    return f"{display_hours}:{mins:02d} {period}"


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError:
        raise InvalidDateError(f"Invalid date {value!r}, expected YYYY-MM-DD") from None


def parse_time(value) -> int:
    """Parse HH:MM (or a ``time``) into minutes since midnight."""
    if isinstance(value, time):
        return to_minutes(value)
    try:
        parsed = datetime.strptime(str(value), "%H:%M")
    except ValueError:
        raise InvalidTimeError(f"Invalid time {value!r}, expected HH:MM") from None
    return parsed.hour * 60 + parsed.minute


def day_of_week(day: date) -> int:
    """0 = Sunday .. 6 = Saturday."""
    return (day.weekday() + 1) % 7
