"""Tests for countdown and relative-time labels."""

from datetime import timedelta

from campusvote.date_utils import ensure_utc, relative_time, time_left

from tests.conftest import NOW


class TestTimeLeft:
    def test_ended(self):
        assert time_left(NOW, NOW) == "Ended"
        assert time_left(NOW - timedelta(minutes=5), NOW) == "Ended"

    def test_days_and_hours(self):
        assert time_left(NOW + timedelta(days=2, hours=3, minutes=10), NOW) == "2d 3h"

    def test_hours_and_minutes(self):
        assert time_left(NOW + timedelta(hours=4, minutes=5), NOW) == "4h 5m"

    def test_minutes_only(self):
        assert time_left(NOW + timedelta(minutes=12, seconds=30), NOW) == "12m"


class TestRelativeTime:
    def test_just_now(self):
        assert relative_time(NOW - timedelta(seconds=30), NOW) == "just now"

    def test_minutes(self):
        assert relative_time(NOW - timedelta(minutes=1), NOW) == "1 minute ago"
        assert relative_time(NOW - timedelta(minutes=45), NOW) == "45 minutes ago"

    def test_hours(self):
        assert relative_time(NOW - timedelta(hours=3), NOW) == "3 hours ago"

    def test_days(self):
        assert relative_time(NOW - timedelta(days=1, hours=2), NOW) == "1 day ago"


def test_ensure_utc_treats_naive_as_utc():
    assert ensure_utc(NOW.replace(tzinfo=None)) == NOW
