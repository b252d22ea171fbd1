"""Calendar-day helpers.

Every date entering the engine goes through ``start_of_day`` so that
completions are keyed by calendar day in the local calendar, never by
timestamp.
"""
from datetime import date, datetime, timedelta


def start_of_day(value: date | datetime) -> date:
    """Normalize a date or datetime to its local calendar day."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def shift_day(day: date, offset: int) -> date | None:
    """Return ``day`` moved by ``offset`` days, or None past the calendar's range."""
    try:
        return day + timedelta(days=offset)
    except OverflowError:
        return None


def local_today() -> date:
    return date.today()
