"""Helper functions for alert threshold calculations."""

import math
from datetime import date, datetime, time, timedelta
from typing import Optional

from .status import Status

SECONDS_PER_DAY = 24 * 60 * 60


def calc_due_miles(last_miles: Optional[int], interval: int) -> int:
    """
    Calculate next due odometer reading.

    A vehicle with no recorded service is treated as serviced at 0, which
    makes it maximally overdue rather than silently skipped.
    """
    return (last_miles or 0) + interval


def days_until(expiry: date, now: datetime) -> int:
    """
    Whole days from now until the expiry date, rounded up.

    The expiry is taken as midnight at the start of that day in now's zone,
    so an expiry of today is 0 (or less) for any time of day.
    """
    expires_at = datetime.combine(expiry, time.min, tzinfo=now.tzinfo)
    return math.ceil((expires_at - now).total_seconds() / SECONDS_PER_DAY)


def check_status(current: float, due: float, soon_threshold: float) -> Status:
    """Determine status by comparing current value to due threshold."""
    if current >= due:
        return Status.OVERDUE
    if current >= due - soon_threshold:
        return Status.DUE_SOON
    return Status.OK


def check_deadline(days_remaining: int, warning_window_days: int) -> Status:
    """Determine status of a date deadline from the days left before it."""
    if days_remaining <= 0:
        return Status.OVERDUE
    if days_remaining <= warning_window_days:
        return Status.DUE_SOON
    return Status.OK


def window_elapsed(since: Optional[datetime], now: datetime, window: timedelta) -> bool:
    """True if there is no timestamp or strictly more than window has passed."""
    if since is None:
        return True
    return now - since > window


def format_date(value: Optional[date]) -> str:
    """Format a date as M/D/YYYY for alert messages."""
    if value is None:
        return "N/A"
    return f"{value.month}/{value.day}/{value.year}"
