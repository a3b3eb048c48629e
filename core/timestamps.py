"""
core/timestamps.py -- The one timestamp format every table stores.

Fixed microsecond precision in UTC keeps lexical order equal to
chronological order, which the range filters in the admin stats rely on.
"""

from __future__ import annotations

from datetime import datetime, timezone


def to_iso(dt: datetime) -> str:
    """Format a datetime for a timestamp column. Naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))
