"""UTC-everywhere time handling.

Every expiry comparison in the auth core goes through a ``Clock``: a
zero-argument callable returning an aware UTC datetime. Production code uses
``now_utc``; tests pass a controllable replacement.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def from_timestamp(seconds: int | float) -> datetime:
    """Convert a POSIX timestamp (e.g. a JWT ``exp`` claim) to UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
