"""
Timezone utility functions for Only Locks

Games are stored in naive UTC; calendar days ("today", a game date) are
interpreted in the application's configured timezone.
"""

from datetime import datetime, time, timedelta, timezone

import pytz
from flask import current_app


def get_app_timezone():
    """Get the application's configured timezone"""
    try:
        timezone_name = current_app.config.get("TIMEZONE", "UTC")
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        return pytz.UTC


def get_current_time():
    """Get current time in the application's timezone"""
    return datetime.now(get_app_timezone())


def get_local_date():
    return get_current_time().date()


def convert_to_app_timezone(dt):
    """Convert a datetime to the application's timezone"""
    if dt is None:
        return None

    # If datetime is naive, assume it's UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(get_app_timezone())


def to_naive_utc(dt):
    """Normalize an aware datetime to the naive UTC form used in the database"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_bounds_for_local_date(day):
    """[start, end) of a local calendar day as naive UTC datetimes"""
    app_tz = get_app_timezone()
    start = app_tz.localize(datetime.combine(day, time.min))
    end = app_tz.localize(datetime.combine(day + timedelta(days=1), time.min))
    return to_naive_utc(start), to_naive_utc(end)


def parse_api_datetime(value):
    """Parse provider ISO timestamps such as 2024-10-22T23:30:00.000Z"""
    if not value:
        return None
    value = value.replace("Z", "+00:00")
    return to_naive_utc(datetime.fromisoformat(value))
