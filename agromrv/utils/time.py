"""
Time utility functions.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def isoformat_z(dt: datetime) -> str:
    """ISO 8601 with millisecond precision and a trailing Z, e.g. 2025-08-23T05:31:58.123Z."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def compact_timestamp(dt: datetime) -> str:
    """Compact ISO basic form used in package folder names, e.g. 20250823T053158Z."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y%m%dT%H%M%SZ")
