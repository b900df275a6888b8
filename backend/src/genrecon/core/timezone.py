"""UTC timezone enforcement and clock helpers.

Importing this module sets the TZ environment variable to UTC to ensure
consistent datetime behavior across all environments.

Timestamps are timezone-aware UTC in memory and stored in timestamptz columns.
"""

import os
from datetime import UTC, datetime

# Set UTC timezone for the entire application
os.environ["TZ"] = "UTC"


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC.

    SQLite drops the offset on round trip, so naive values are read as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
