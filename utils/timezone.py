from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

import pytz

from config import HOTEL_TIMEZONE

# Centralized Timezone Configuration
HOTEL_TZ = pytz.timezone(HOTEL_TIMEZONE)


def get_tz(tz_name: Optional[str] = None):
    """Returns the pytz timezone for a hotel (default group timezone)"""
    return pytz.timezone(tz_name) if tz_name else HOTEL_TZ


def get_hotel_now(tz_name: Optional[str] = None) -> datetime:
    """Returns current time in Hotel Timezone"""
    return datetime.now(get_tz(tz_name))


def utcnow() -> datetime:
    return datetime.now(pytz.utc)


def ensure_aware(dt: datetime) -> datetime:
    """Naive datetimes are treated as UTC (SQLite drops tzinfo on read)"""
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt


def to_utc(dt: datetime) -> datetime:
    """Todo lo que se persiste o compara en la base va en UTC"""
    return ensure_aware(dt).astimezone(pytz.utc)


def to_hotel_time(dt: datetime, tz_name: Optional[str] = None) -> datetime:
    """Converts a datetime to Hotel Timezone"""
    return ensure_aware(dt).astimezone(get_tz(tz_name))


def hotel_day(dt: datetime, tz_name: Optional[str] = None) -> date:
    """Calendar day of a timestamp, as seen from the hotel"""
    return to_hotel_time(dt, tz_name).date()


def day_bounds(day: date, tz_name: Optional[str] = None) -> Tuple[datetime, datetime]:
    """
    [start, end) of a hotel-local calendar day, expressed in UTC.
    pytz.localize handles DST transitions correctly.
    """
    tz = get_tz(tz_name)
    start = tz.localize(datetime.combine(day, time.min))
    end = tz.localize(datetime.combine(day + timedelta(days=1), time.min))
    return start.astimezone(pytz.utc), end.astimezone(pytz.utc)
