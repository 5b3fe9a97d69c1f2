"""
Time rules service.
Handles UTC normalization, timezone conversions, local calendar days and
calendar-month arithmetic used by shift reconstruction and totals windows.
"""
import calendar
from datetime import date, datetime, time, timedelta
from typing import List, Optional
import pytz
from ..config import settings


def get_timezone(timezone_str: Optional[str] = None):
    """
    Resolve a timezone name, falling back to the configured default.

    Raises:
        pytz.UnknownTimeZoneError: if the name is not a known zone
    """
    return pytz.timezone(timezone_str or settings.tz_default)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to timezone-aware UTC.
    Naive datetimes are assumed to already be in UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=pytz.UTC)
    return dt.astimezone(pytz.UTC)


def utc_now() -> datetime:
    return datetime.now(pytz.UTC)


def utc_to_local(utc_datetime: datetime, timezone_str: Optional[str] = None) -> datetime:
    """
    Convert UTC datetime to local timezone.

    Args:
        utc_datetime: UTC datetime (timezone-aware or naive)
        timezone_str: Timezone string (e.g., "America/Vancouver")

    Returns:
        Local datetime (timezone-aware)
    """
    tz = get_timezone(timezone_str)
    return ensure_utc(utc_datetime).astimezone(tz)


def local_to_utc(local_datetime: datetime, timezone_str: Optional[str] = None) -> datetime:
    """
    Convert local datetime to UTC.

    Args:
        local_datetime: Local datetime (naive wall-clock time, or aware)
        timezone_str: Timezone string

    Returns:
        UTC datetime (timezone-aware)
    """
    tz = get_timezone(timezone_str)
    if local_datetime.tzinfo is None:
        local_dt = tz.localize(local_datetime)
    else:
        local_dt = local_datetime.astimezone(tz)
    return local_dt.astimezone(pytz.UTC)


def local_date(dt: datetime, timezone_str: Optional[str] = None) -> date:
    """Calendar date of an instant in the given timezone."""
    return utc_to_local(dt, timezone_str).date()


def is_same_day(time1: datetime, time2: datetime, timezone_str: Optional[str] = None) -> bool:
    """
    Check if two times are on the same day in the given timezone.
    """
    return local_date(time1, timezone_str) == local_date(time2, timezone_str)


def local_midnight(day: date, timezone_str: Optional[str] = None) -> datetime:
    """UTC instant of local midnight at the start of `day`."""
    return local_to_utc(datetime.combine(day, time.min), timezone_str)


def start_of_local_day(instant: datetime, timezone_str: Optional[str] = None) -> datetime:
    return local_midnight(local_date(instant, timezone_str), timezone_str)


def subtract_months(instant: datetime, months: int, timezone_str: Optional[str] = None) -> datetime:
    """
    Move an instant back by whole calendar months in local wall-clock time.
    The day of month is clamped, so Mar 31 minus one month is Feb 28/29.
    """
    local = utc_to_local(instant, timezone_str).replace(tzinfo=None)
    month_index = local.year * 12 + (local.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(local.day, calendar.monthrange(year, month)[1])
    return local_to_utc(local.replace(year=year, month=month, day=day), timezone_str)


def days_in_range(start: date, end: date) -> List[date]:
    """Every calendar day from start to end inclusive; empty when start > end."""
    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days


def hours_between(start: datetime, end: datetime) -> float:
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / 3600.0
