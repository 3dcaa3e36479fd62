"""
Datetime utility functions.

All persisted timestamps are ISO-8601 strings in UTC so both backends compare
and sort them the same way.
"""

from datetime import datetime, timedelta
from typing import Optional, Union
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def utcnow_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return to_iso(utcnow())


def to_iso(value: Union[str, datetime, None]) -> Optional[str]:
    """
    Normalize a datetime (naive values are assumed UTC) or ISO string to an
    ISO-8601 UTC string.

    Args:
        value: datetime, ISO string, or None

    Returns:
        ISO string, or None when value is None
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = parse_iso(value)
    if value.tzinfo is None:
        value = pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC).isoformat()


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 string (a trailing 'Z' is accepted) into an aware datetime."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = pytz.UTC.localize(parsed)
    return parsed


def is_expired(expires_at: Union[str, datetime, None], now: Optional[datetime] = None) -> bool:
    """
    Check whether an expiry timestamp is in the past.

    A missing expiry counts as expired so token lookups fail closed.
    """
    if not expires_at:
        return True
    if isinstance(expires_at, str):
        try:
            expires_at = parse_iso(expires_at)
        except ValueError:
            return True
    elif expires_at.tzinfo is None:
        expires_at = pytz.UTC.localize(expires_at)
    return (now or utcnow()) >= expires_at


def iso_in(**delta) -> str:
    """ISO timestamp offset from now, e.g. iso_in(days=7)."""
    return to_iso(utcnow() + timedelta(**delta))
