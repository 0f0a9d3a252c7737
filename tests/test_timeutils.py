"""
Tests for relative reservation times.
"""

from datetime import datetime, timedelta, timezone

from serverbook.core.timeutils import format_relative_time, parse_relative_time

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_parse_hours_and_minutes():
    target = parse_relative_time("1h30m", now=NOW)
    assert target - NOW >= timedelta(hours=1, minutes=30)
    assert target - NOW < timedelta(hours=1, minutes=30, seconds=1)


def test_parse_minutes_only():
    assert parse_relative_time("45m", now=NOW).minute == 45


def test_format_relative_time():
    assert format_relative_time(NOW + timedelta(hours=1, minutes=30), now=NOW) == "1 hour 30 mins"
    assert format_relative_time(NOW + timedelta(hours=2, minutes=1), now=NOW) == "2 hours 1 min"
    assert format_relative_time(NOW + timedelta(seconds=20), now=NOW) == ""
