"""Datetime utilities for common operations."""

from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

DurationUnit = Literal["minutes", "hours", "days"]


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Make a datetime timezone aware.

    Some drivers (SQLite) hand back naive datetimes for timezone-aware columns;
    every value this service stores is UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def add_duration(dt: datetime, value: int, unit: DurationUnit) -> datetime:
    """
    Add a duration expressed as value + unit.

    Args:
        dt: Start datetime
        value: Positive amount
        unit: "minutes", "hours" or "days"

    Returns:
        New datetime
    """
    if value <= 0:
        raise ValueError("Duration value must be positive")
    if unit == "minutes":
        return dt + timedelta(minutes=value)
    if unit == "hours":
        return dt + timedelta(hours=value)
    if unit == "days":
        return dt + timedelta(days=value)
    raise ValueError(f"Unsupported duration unit: {unit}")
