"""
Unit tests for schedule.clock.

The zone is pinned to America/Chicago; in 2026 DST starts on 8 March
(02:00 → 03:00) and ends on 1 November (02:00 → 01:00).
"""

import pytest
from datetime import date, datetime, time, timedelta, timezone
from unittest.mock import patch

from schedule.clock import InvalidLocalTime, at_local, now_local, to_local

_ZONE = "schedule.clock.LOCAL_TIMEZONE"


@pytest.fixture(autouse=True)
def chicago():
    with patch(_ZONE, "America/Chicago"):
        yield


class TestAtLocal:
    def test_winter_offset(self):
        dt = at_local(date(2026, 2, 9), time(8, 0))
        assert dt.utcoffset() == timedelta(hours=-6)
        assert (dt.hour, dt.minute) == (8, 0)

    def test_summer_offset(self):
        dt = at_local(date(2026, 7, 1), time(8, 0))
        assert dt.utcoffset() == timedelta(hours=-5)

    def test_fall_back_hour_is_ambiguous(self):
        with pytest.raises(InvalidLocalTime, match="ambiguous"):
            at_local(date(2026, 11, 1), time(1, 30))

    def test_spring_forward_gap_does_not_exist(self):
        with pytest.raises(InvalidLocalTime, match="does not exist"):
            at_local(date(2026, 3, 8), time(2, 30))

    def test_times_around_transitions_are_fine(self):
        at_local(date(2026, 11, 1), time(2, 30))
        at_local(date(2026, 3, 8), time(3, 30))

    def test_invalid_local_time_is_value_error(self):
        assert issubclass(InvalidLocalTime, ValueError)


class TestToLocal:
    def test_converts_aware(self):
        dt = to_local(datetime(2026, 2, 9, 14, 0, tzinfo=timezone.utc))
        assert (dt.date(), dt.hour) == (date(2026, 2, 9), 8)

    def test_naive_treated_as_local(self):
        dt = to_local(datetime(2026, 2, 9, 8, 0))
        assert dt.tzinfo is not None
        assert dt.hour == 8

    def test_naive_ambiguous_rejected(self):
        with pytest.raises(InvalidLocalTime):
            to_local(datetime(2026, 11, 1, 1, 30))


class TestNowLocal:
    def test_is_aware(self):
        assert now_local().tzinfo is not None
