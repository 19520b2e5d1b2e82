"""Time utilities for consistent timestamp handling.

Timestamps are stored in UTC. Stay dates (check-in/check-out days) are
calendar dates in the portal's local timezone, ``APP_TIMEZONE``.
"""

import os
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Asia/Jakarta"
DEFAULT_REQUEST_TTL_HOURS = 72


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def app_timezone() -> ZoneInfo:
    return ZoneInfo(os.environ.get("APP_TIMEZONE", DEFAULT_TIMEZONE))


def local_today(now: datetime | None = None) -> date:
    """Current calendar date in the portal timezone."""
    now = now or utc_now()
    return now.astimezone(app_timezone()).date()


def request_ttl() -> timedelta:
    """How long a booking request waits for an admin before it expires."""
    hours = int(os.environ.get("BOOKING_REQUEST_TTL_HOURS", DEFAULT_REQUEST_TTL_HOURS))
    return timedelta(hours=hours)
