"""
Time utilities for the task workflow API.

This module provides a single source of truth for time operations,
ensuring consistency across all endpoints and preventing clock drift issues.
"""

import math
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC time.
    Single source of truth for "now" throughout the application.

    Returns:
        timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to timezone-aware UTC.

    SQLite drops tzinfo on round-trip, so naive values coming back from the
    database are interpreted as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_overdue(due_date: Optional[datetime], is_terminal: bool, now: Optional[datetime] = None) -> bool:
    """
    Check if a task is overdue.

    A task is overdue if it has a due date in the past and has not reached
    a terminal status (done or cancelled).

    Args:
        due_date: The task's due date
        is_terminal: Whether the task's status is terminal
        now: Reference time (defaults to utc_now())

    Returns:
        True if task is overdue, False otherwise
    """
    if not due_date or is_terminal:
        return False
    return as_utc(due_date) < (now or utc_now())


def days_until(due_date: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """
    Whole days until a due date, rounded up. Negative when the date has passed.

    Returns:
        Number of days, or None if there is no due date
    """
    if not due_date:
        return None
    delta = as_utc(due_date) - (now or utc_now())
    return math.ceil(delta.total_seconds() / 86400)
