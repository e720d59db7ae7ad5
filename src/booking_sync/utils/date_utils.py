"""Date and time utilities for Booking Sync application."""

from datetime import date, datetime
from typing import Optional

import pytz


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure datetime is in UTC.

    Args:
        dt: Datetime to convert

    Returns:
        UTC datetime
    """
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)


def utcnow() -> datetime:
    return datetime.now(pytz.utc)


def parse_event_time(value: Optional[dict]) -> tuple[Optional[datetime], bool]:
    """
    Parse a Google Calendar start/end object.

    Google sends either ``{"dateTime": "...", "timeZone": "..."}`` for timed
    events or ``{"date": "YYYY-MM-DD"}`` for all-day events.

    Args:
        value: The raw start or end object (may be None)

    Returns:
        Tuple of (UTC datetime or None, is_all_day)

    Raises:
        ValueError: If the value is present but cannot be parsed
    """
    if not value:
        return None, False
    if not isinstance(value, dict):
        raise ValueError(f"expected an object, got {type(value).__name__}")

    if value.get("dateTime"):
        raw = str(value["dateTime"]).replace("Z", "+00:00")
        parsed = datetime.fromisoformat(raw)
        if parsed.tzinfo is None and value.get("timeZone"):
            try:
                zone = pytz.timezone(str(value["timeZone"]))
            except pytz.UnknownTimeZoneError as e:
                raise ValueError(f"unknown time zone {value['timeZone']!r}") from e
            parsed = zone.localize(parsed)
        return ensure_utc(parsed), False

    if value.get("date"):
        day = date.fromisoformat(str(value["date"]))
        return pytz.utc.localize(datetime(day.year, day.month, day.day)), True

    return None, False


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp, returning None for empty or bad input."""
    if not value:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None
