"""
Timestamp helpers for persisted records.

All timestamps are stored as ISO-8601 UTC text with millisecond precision and
a trailing "Z" (e.g. "2024-05-01T12:30:00.250Z"). Text in this format sorts
chronologically, which the expiry queries rely on.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """
    Format a datetime for storage.

    Naive datetimes are assumed to already be in UTC.

    Args:
        value: The datetime to format

    Returns:
        ISO-8601 string with millisecond precision and "Z" suffix
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def from_iso(value: str) -> datetime:
    """
    Parse a stored timestamp back into an aware UTC datetime.

    Raises:
        ValueError: If the text is not a valid ISO-8601 timestamp
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def optional_iso(value: Optional[datetime]) -> Optional[str]:
    return to_iso(value) if value is not None else None


def optional_datetime(value: Optional[str]) -> Optional[datetime]:
    return from_iso(value) if value else None


def expiry_from_ttl(created_at: datetime, ttl: Optional[int]) -> Optional[datetime]:
    """
    Compute the expiry time for a relation.

    Args:
        created_at: When the relation was created
        ttl: Time-to-live in milliseconds (None or 0 = never expires)

    Returns:
        Expiry datetime, or None for permanent relations
    """
    if not ttl:
        return None
    return created_at + timedelta(milliseconds=ttl)
