"""Datetime conversion utilities."""

from datetime import UTC, datetime


def to_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are assumed UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def datetime_to_iso(value: datetime | None) -> str | None:
    """Convert a datetime to an ISO-8601 UTC string, or None."""
    if value is None:
        return None
    return to_utc(value).isoformat()


def datetime_from_iso(value: str | None) -> datetime | None:
    """Convert an ISO-8601 string to an aware UTC datetime, or None.

    Raises:
        ValueError: If *value* is not a valid ISO-8601 timestamp.
    """
    if not value:
        return None
    return to_utc(datetime.fromisoformat(value))
