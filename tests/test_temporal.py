"""
Tests for the temporal helpers
==============================

Parsing, day-keys, durations and display formatting.

Run: python -m pytest tests/test_temporal.py -v
"""

from datetime import date, datetime
import pytest

from core.errors import ParseError
from core.temporal import (
    date_only_key, day_key, format_date, format_time, format_timestamp, hours_worked,
    key_to_date, parse_instant, parse_instant_strict, timestamp_token,
)


class TestParseInstant:

    def test_bare_date_is_local_midnight(self):
        assert parse_instant("2025-03-02") == datetime(2025, 3, 2)

    @pytest.mark.parametrize("tz", [None, "UTC", "America/Mexico_City", "Asia/Tokyo", "Pacific/Auckland"])
    def test_bare_date_day_key_is_zone_independent(self, tz):
        assert day_key(parse_instant("2025-03-02", tz)) == "2025-03-02"

    def test_naive_iso_timestamp_kept_as_is(self):
        assert parse_instant("2025-01-01T08:00") == datetime(2025, 1, 1, 8, 0)

    def test_utc_timestamp_converted_to_reference_zone(self):
        parsed = parse_instant("2025-01-01T02:00:00Z", "America/Mexico_City")
        assert parsed == datetime(2024, 12, 31, 20, 0)
        assert parsed.tzinfo is None

    def test_offset_timestamp_converted_to_reference_zone(self):
        assert parse_instant("2025-01-01T10:00:00+02:00", "UTC") == datetime(2025, 1, 1, 8, 0)

    def test_epoch_milliseconds(self):
        assert parse_instant(0, "UTC") == datetime(1970, 1, 1)
        assert parse_instant(1735725600000, "UTC") == datetime(2025, 1, 1, 10, 0)

    def test_date_and_datetime_objects(self):
        assert parse_instant(date(2025, 5, 4)) == datetime(2025, 5, 4)
        assert parse_instant(datetime(2025, 5, 4, 7, 30)) == datetime(2025, 5, 4, 7, 30)

    @pytest.mark.parametrize("raw", [None, "", "   ", "not a date", True, [2025, 1, 1]])
    def test_unusable_values_return_none(self, raw):
        assert parse_instant(raw) is None

    @pytest.mark.parametrize("raw", ["2025-02-30", "2025-13-01", "2024-00-10"])
    def test_impossible_calendar_date_returns_none(self, raw):
        assert parse_instant(raw) is None
        with pytest.raises(ParseError):
            parse_instant_strict(raw)

    @pytest.mark.parametrize("raw", ["08:15", "17:00:00", " 8:15 "])
    def test_time_without_date_returns_none(self, raw):
        assert parse_instant(raw) is None

    def test_free_form_date_with_time(self):
        assert parse_instant("2025/01/05 08:00") == datetime(2025, 1, 5, 8, 0)

    def test_strict_variant_raises(self):
        with pytest.raises(ParseError):
            parse_instant_strict("not a date")
        with pytest.raises(ParseError):
            parse_instant_strict(None)

    def test_parse_error_is_a_value_error(self):
        assert issubclass(ParseError, ValueError)


class TestDayKeys:

    def test_day_key_of_none(self):
        assert day_key(None) is None

    def test_day_key_zero_padded(self):
        assert day_key(datetime(2025, 1, 5, 23, 59)) == "2025-01-05"

    def test_date_only_key_takes_leading_date_text(self):
        # Midnight UTC must not drift to the previous day in western zones
        assert date_only_key("2025-01-01T00:00:00Z", "America/Mexico_City") == "2025-01-01"
        assert date_only_key("2025-01-01") == "2025-01-01"

    def test_date_only_key_invalid_calendar_date(self):
        assert date_only_key("2025-02-30") is None

    def test_date_only_key_without_value(self):
        assert date_only_key(None) is None
        assert date_only_key("") is None

    def test_key_to_date_round_trip(self):
        assert key_to_date("2025-02-28") == date(2025, 2, 28)


class TestHoursWorked:

    def test_positive_duration(self):
        assert hours_worked("2025-01-01T08:00", "2025-01-01T17:30") == pytest.approx(9.5)

    def test_overnight_shift(self):
        assert hours_worked("2025-01-01T22:00", "2025-01-02T06:00") == pytest.approx(8.0)

    def test_exit_equal_to_entry_is_invalid(self):
        assert hours_worked("2025-01-01T08:00", "2025-01-01T08:00") is None

    def test_exit_before_entry_is_invalid(self):
        assert hours_worked("2025-01-01T17:00", "2025-01-01T08:00") is None

    @pytest.mark.parametrize("entry,exit_", [
        (None, "2025-01-01T17:00"),
        ("2025-01-01T08:00", None),
        ("garbage", "2025-01-01T17:00"),
        ("2025-02-30", "2025-03-01T08:00"),
        ("08:00", "17:00"),
    ])
    def test_unparseable_operand(self, entry, exit_):
        assert hours_worked(entry, exit_) is None

    def test_mixed_offsets(self):
        assert hours_worked("2025-01-01T08:00:00Z", "2025-01-01T12:00:00+02:00", "UTC") == pytest.approx(2.0)


class TestFormatting:

    def test_format_date(self):
        assert format_date("2025-03-02") == "02/03/2025"

    def test_format_date_falls_back_to_raw_text(self):
        assert format_date("mañana") == "mañana"
        assert format_date(None) == ""

    def test_format_time(self):
        assert format_time("2025-01-01T08:15:00") == "08:15"
        assert format_time("08:15") == "08:15"
        assert format_time(None) == ""

    def test_format_timestamp(self):
        assert format_timestamp(datetime(2025, 1, 2, 8, 30, 5)) == "02/01/2025 08:30:05"

    def test_timestamp_token_is_filename_safe(self):
        assert timestamp_token(datetime(2025, 1, 2, 8, 30, 0, 123456)) == "20250102T083000"
