"""Utility functions for ideaengage.

This module provides common helpers for timestamp handling and identifier
normalization.
"""

import uuid
from datetime import UTC, datetime

from dateutil import parser as dateutil_parser  # type: ignore[import-untyped]


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse an ISO8601 string or datetime into a timezone-aware UTC datetime.

    SQLite hands back naive datetimes for ``DateTime(timezone=True)`` columns;
    those are treated as UTC, which is how they were written.

    Args:
        value: ISO8601 timestamp string, datetime object, or None

    Returns:
        Parsed timezone-aware datetime in UTC, or None if input is None

    Raises:
        ValueError: If timestamp format is invalid

    Example:
        >>> dt = parse_datetime("2024-01-15T10:30:00Z")
        >>> dt.tzinfo
        datetime.timezone.utc
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    dt = dateutil_parser.isoparse(value)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def utc_now() -> datetime:
    """Get current UTC timestamp as timezone-aware datetime."""
    return datetime.now(UTC)


def format_iso(dt: datetime | None) -> str | None:
    """Format datetime as ISO8601 string with 'Z' suffix.

    Args:
        dt: Datetime object or None

    Returns:
        ISO8601 formatted string or None if input is None

    Example:
        >>> from datetime import UTC
        >>> dt = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        >>> format_iso(dt)
        '2024-01-15T10:30:00Z'
    """
    if dt is None:
        return None
    return parse_datetime(dt).isoformat().replace("+00:00", "Z")


def normalize_identifier(value: str | None) -> str | None:
    """Strip surrounding whitespace from an idea or user id.

    Returns:
        The stripped identifier, or None when nothing meaningful remains
    """
    if value is None:
        return None
    value = value.strip()
    return value or None


def new_request_id() -> str:
    """Generate a short random request id for log correlation."""
    return uuid.uuid4().hex[:16]


def require_identifier(value: str | None, field: str) -> str:
    """Normalize an identifier, rejecting empty values.

    Raises:
        ValidationError: If the value is missing or blank
    """
    from ideaengage.errors import ValidationError

    normalized = normalize_identifier(value) if isinstance(value, str) else None
    if normalized is None:
        raise ValidationError(f"{field} is required", field=field)
    return normalized
