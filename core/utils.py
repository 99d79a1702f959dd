"""
Clinic-local date/time helpers shared by the scheduling and billing engine.

All appointment dates and times are wall-clock values in the clinic's
timezone (settings.TIME_ZONE); nothing here converts between zones.
"""
import re
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.utils import timezone

TWO_PLACES = Decimal('0.01')

WALL_CLOCK_PATTERN = re.compile(r'^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$')


def get_clinic_now():
    """
    Get current datetime in the clinic timezone.

    Returns:
        datetime: Current datetime localized to settings.TIME_ZONE
    """
    return timezone.localtime(timezone.now())


def get_clinic_today():
    """
    Get today's date in the clinic timezone.

    Returns:
        date: Today's date in settings.TIME_ZONE
    """
    return get_clinic_now().date()


def parse_wall_clock(value):
    """
    Convert an "HH:MM" (or "HH:MM:SS") string or a time object to datetime.time.

    Args:
        value: time, or string such as "09:30"

    Returns:
        datetime.time object (seconds dropped)

    Raises:
        ValueError: If the value is missing or not a valid 24-hour time
    """
    if isinstance(value, datetime):
        value = value.time()
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str):
        raise ValueError(f"Cannot convert {type(value).__name__} to a wall-clock time")

    match = WALL_CLOCK_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid time '{value}'. Use HH:MM")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid time '{value}'. Use HH:MM")

    return time(hours, minutes)


def format_wall_clock(value):
    """Format a time (or parseable string) as "HH:MM"."""
    return parse_wall_clock(value).strftime('%H:%M')


def minutes_since_midnight(value):
    """Minutes elapsed since 00:00 for a wall-clock time."""
    parsed = parse_wall_clock(value)
    return parsed.hour * 60 + parsed.minute


def parse_calendar_date(value):
    """
    Convert a "YYYY-MM-DD" string, date or datetime to a date object.

    Raises:
        ValueError: If the value cannot be read as a calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.strptime(value.strip()[:10], '%Y-%m-%d').date()
    raise ValueError(f"Cannot convert {type(value).__name__} to a date")


def to_money(value):
    """
    Convert a number or numeric string to a Decimal rounded to 2 places.

    Raises:
        ValueError: If the value is not numeric
    """
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Invalid amount '{value}'")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount '{value}'")
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
