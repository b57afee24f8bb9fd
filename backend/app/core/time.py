"""Time utilities for timezone-aware UTC datetimes and calendar dates."""

from datetime import UTC, date, datetime


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime for defaults and onupdate hooks."""
    return datetime.now(UTC)


def utc_today() -> date:
    """Return today's calendar date in UTC, the reference timezone for billing dates."""
    return utc_now().date()
