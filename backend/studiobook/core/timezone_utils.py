# backend/studiobook/core/timezone_utils.py
"""
Timezone utilities for studio booking.

Stored instants are UTC. Opening hours are expressed in the studio's local
time, so weekday/minute lookups go through the studio's pytz zone.
"""

from datetime import date, datetime, time, timedelta, timezone
import logging
from typing import Optional, Tuple

import pytz

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values (as read back from SQLite) are interpreted as UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def get_studio_timezone(tz_name: Optional[str]) -> pytz.BaseTzInfo:
    """
    Resolve a studio's IANA timezone name.

    Unknown names fall back to UTC with a warning so a bad config row does not
    block every booking for that studio.
    """
    if not tz_name:
        return pytz.utc
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        logger.warning("Unknown studio timezone %r, falling back to UTC", tz_name)
        return pytz.utc


def to_studio_local(dt: datetime, tz_name: Optional[str]) -> datetime:
    """Convert a stored instant to the studio's wall-clock time."""
    return ensure_utc(dt).astimezone(get_studio_timezone(tz_name))


def local_day_bounds(on_date: date, tz_name: Optional[str]) -> Tuple[datetime, datetime]:
    """UTC instants bounding a studio-local calendar day; DST days are 23 or 25 hours."""
    tz = get_studio_timezone(tz_name)
    start = tz.localize(datetime.combine(on_date, time.min))
    end = tz.localize(datetime.combine(on_date + timedelta(days=1), time.min))
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
