from datetime import datetime, timezone

import pytest

from qup.errors import NoHours
from qup.models import WeeklyHours
from qup.schedule import is_open_now, parse_hhmm, weekday_index

NINE_TO_FIVE = WeeklyHours(start_time=["09:00"] * 7, end_time=["17:00"] * 7)


def test_weekday_index_starts_on_sunday():
    assert weekday_index(datetime(2026, 10, 18)) == 0  # Sunday
    assert weekday_index(datetime(2026, 10, 19)) == 1  # Monday


def test_window_is_half_open():
    tz = "UTC"
    assert is_open_now(NINE_TO_FIVE, tz, datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc))
    assert is_open_now(NINE_TO_FIVE, tz, datetime(2026, 10, 19, 16, 59, tzinfo=timezone.utc))
    assert not is_open_now(NINE_TO_FIVE, tz, datetime(2026, 10, 19, 17, 0, tzinfo=timezone.utc))
    assert not is_open_now(NINE_TO_FIVE, tz, datetime(2026, 10, 19, 8, 59, tzinfo=timezone.utc))


def test_uses_business_local_time():
    # 17:30 UTC is 10:30 in Los Angeles (PDT).
    now = datetime(2026, 10, 19, 17, 30, tzinfo=timezone.utc)
    assert is_open_now(NINE_TO_FIVE, "America/Los_Angeles", now)
    assert not is_open_now(NINE_TO_FIVE, "Asia/Tokyo", now)  # 02:30 next day


def test_local_weekday_not_utc_weekday():
    # Tuesday 01:30 UTC is still Monday 18:30 in Los Angeles.
    hours = WeeklyHours(
        start_time=[None, "18:00", None, None, None, None, None],
        end_time=[None, "20:00", None, None, None, None, None],
    )
    assert is_open_now(hours, "America/Los_Angeles", datetime(2026, 10, 20, 1, 30, tzinfo=timezone.utc))


def test_naive_now_is_utc():
    assert is_open_now(NINE_TO_FIVE, "UTC", datetime(2026, 10, 19, 12, 0))


def test_missing_or_malformed_hours_raise():
    now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)  # Sunday
    with pytest.raises(NoHours):
        is_open_now(None, "UTC", now)
    with pytest.raises(NoHours):
        is_open_now(WeeklyHours(start_time=[None] * 7, end_time=[None] * 7), "UTC", now)
    with pytest.raises(NoHours):
        is_open_now(WeeklyHours(start_time=["9am"] * 7, end_time=["5pm"] * 7), "UTC", now)
    with pytest.raises(NoHours):
        is_open_now(WeeklyHours(), "UTC", now)


def test_parse_hhmm():
    assert parse_hhmm("00:00") == 0
    assert parse_hhmm("9:05") == 545
    assert parse_hhmm("24:00") == 1440
    with pytest.raises(ValueError):
        parse_hhmm("25:00")
