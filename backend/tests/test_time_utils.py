"""
Tests for due-date helpers.
"""

from datetime import datetime, timedelta, timezone

from time_utils import as_utc, days_until, is_overdue

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def test_naive_datetimes_are_treated_as_utc():
    assert as_utc(datetime(2026, 3, 10, 12, 0)) == NOW
    assert as_utc(None) is None


def test_past_due_date_is_overdue_unless_terminal():
    past = NOW - timedelta(hours=1)

    assert is_overdue(past, is_terminal=False, now=NOW)
    assert not is_overdue(past, is_terminal=True, now=NOW)
    assert not is_overdue(NOW + timedelta(hours=1), is_terminal=False, now=NOW)
    assert not is_overdue(None, is_terminal=False, now=NOW)


def test_days_until_rounds_up():
    assert days_until(NOW + timedelta(hours=1), now=NOW) == 1
    assert days_until(NOW + timedelta(days=2), now=NOW) == 2
    assert days_until(NOW - timedelta(days=1), now=NOW) == -1
    assert days_until(None, now=NOW) is None
