from datetime import date, datetime, timezone

import pytest

from langfuse_analytics.models import TimeWindow, parse_day, parse_instant


def test_parse_instant_accepts_z_and_offsets():
    assert parse_instant("2024-01-01T00:00:00Z") == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert parse_instant("2024-01-01T02:00:00+02:00") == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_parse_instant_requires_timezone():
    with pytest.raises(ValueError, match="timezone"):
        parse_instant("2024-01-01T00:00:00")


def test_parse_day_treats_plain_dates_as_utc_midnight():
    assert parse_day("2024-03-05") == datetime(2024, 3, 5, tzinfo=timezone.utc)
    assert parse_day("garbage") is None
    assert parse_day(None) is None  # type: ignore[arg-type]


def test_window_rejects_reversed_bounds():
    with pytest.raises(ValueError):
        TimeWindow.parse("2024-02-01T00:00:00Z", "2024-01-01T00:00:00Z")


def test_window_keeps_caller_text():
    w = TimeWindow.parse("2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z")
    assert (w.from_text, w.to_text) == ("2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z")


def test_calendar_days():
    w = TimeWindow.parse("2024-01-30T06:00:00Z", "2024-02-02T00:00:00Z")
    assert w.calendar_days() == [date(2024, 1, 31), date(2024, 2, 1), date(2024, 2, 2)]


def test_calendar_days_single_instant():
    w = TimeWindow.parse("2024-01-01T00:00:00Z", "2024-01-01T00:00:00Z")
    assert w.calendar_days() == [date(2024, 1, 1)]


def test_calendar_days_at_last_representable_day():
    w = TimeWindow.parse("9999-12-30T12:00:00Z", "9999-12-31T23:59:59Z")
    assert w.calendar_days() == [date(9999, 12, 31)]


def test_calendar_days_empty_when_no_midnight_inside():
    w = TimeWindow.parse("9999-12-31T06:00:00Z", "9999-12-31T23:59:59Z")
    assert w.calendar_days() == []


def test_calendar_days_limit_keeps_earliest():
    w = TimeWindow.parse("2024-01-01T00:00:00Z", "2024-12-31T00:00:00Z")
    assert w.calendar_days(limit=2) == [date(2024, 1, 1), date(2024, 1, 2)]
