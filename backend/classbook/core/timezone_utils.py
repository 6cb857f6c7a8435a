"""
Timezone utilities for the booking core.

All overlap arithmetic happens on UTC instants. Conversion to a studio's
local time is a display concern handled outside this package.
"""

from datetime import datetime

import pytz


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to naive UTC for storage and comparison.

    Aware values are converted to UTC; naive values are assumed to already
    be UTC. The tzinfo is dropped so values compare equal to what SQLite
    hands back.
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(pytz.UTC).replace(tzinfo=None)


def utc_now() -> datetime:
    """Current instant as naive UTC."""
    return datetime.now(pytz.UTC).replace(tzinfo=None)
