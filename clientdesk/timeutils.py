"""
Timestamp helpers.

Records carry ISO-8601 UTC strings with millisecond precision and a ``Z``
suffix, e.g. ``2026-10-18T09:30:00.000Z``.
"""
from datetime import UTC, date, datetime
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(UTC)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as a UTC ``...Z`` string with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a record date field into an aware datetime.

    Accepts datetimes, dates and ISO-8601 strings (date-only, naive, offset
    or ``Z``-suffixed). Naive values are taken as UTC.

    Returns:
        The parsed datetime, or None for empty or unparseable input
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
