"""Timestamp helpers: lax input -> strict UTC output.

All timestamps handled by focussync are timezone-aware UTC datetimes.
Remote values come from user-editable spreadsheet cells, so parsing never
raises: callers get ``None`` and pick their own fallback.
"""

from __future__ import annotations

from datetime import UTC, date, datetime


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(UTC)


def now_ms() -> int:
    """Return the current time in epoch milliseconds."""
    return to_epoch_ms(now_utc())


def to_epoch_ms(dt: datetime) -> int:
    """Convert a datetime to epoch milliseconds."""
    return int(ensure_utc(dt).timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds to a UTC datetime."""
    return datetime.fromtimestamp(value / 1000, UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def format_iso(dt: datetime) -> str:
    """Format a datetime as ISO 8601 with millisecond precision.

    Output: ``2024-01-01T00:00:00.000Z``
    """
    text = ensure_utc(dt).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def format_date(value: date) -> str:
    """Format a date as ``YYYY-MM-DD``."""
    return value.isoformat()


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp.

    Accepts date-only values, ``Z`` suffixes and missing timezones
    (interpreted as UTC).

    Returns:
        UTC datetime, or None if the value is empty or unparsable.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    return ensure_utc(parsed)


def parse_date(value: str | None) -> date | None:
    """Parse a deadline, either ``YYYY-MM-DD`` or a full ISO timestamp."""
    if not value:
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    parsed = parse_iso(text)
    return parsed.date() if parsed else None
