"""Date/time helpers shared by the API, the sources and the services."""

from datetime import datetime, date, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def from_unix_timestamp(value: Optional[int]) -> Optional[datetime]:
    """Convert a Unix timestamp from a platform API to an aware UTC datetime.

    Platforms report "never" as 0, which maps to None.
    """
    if not value or value <= 0:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (as read back from SQLite) as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_datetime(dt: Optional[Union[datetime, date]]) -> Optional[str]:
    """
    Format datetime or date to ISO string with a 'Z' suffix.

    Naive datetimes are assumed to be UTC. Date objects are returned as
    plain ISO dates. Returns None if input is None.
    """
    if dt is None:
        return None

    if isinstance(dt, date) and not isinstance(dt, datetime):
        return dt.isoformat()

    return as_utc(dt).isoformat().replace("+00:00", "Z")
