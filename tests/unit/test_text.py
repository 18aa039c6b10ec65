"""Tests for number, time and season formatting."""

from datetime import datetime, timezone

import pytest

from hnplus.formatters.text import (
    age_to_text,
    format_currency,
    format_ordinal,
    format_season,
    get_current_season,
    parse_currency,
    parse_int,
    seasons_between,
    seconds_to_time,
    shift_seasons,
)


class TestAgeToText:
    def test_small_ages_spelled_out(self):
        assert age_to_text(2) == "Two"
        assert age_to_text(21) == "Twenty-One"

    def test_large_age_stays_numeric(self):
        assert age_to_text(25) == "25"

    def test_none_rejected(self):
        with pytest.raises(TypeError):
            age_to_text(None)


class TestFormatOrdinal:
    @pytest.mark.parametrize("value,expected", [
        (1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"),
        (11, "11th"), (12, "12th"), (13, "13th"),
        (21, "21st"), (102, "102nd"), (111, "111th"),
    ])
    def test_suffixes(self, value, expected):
        assert format_ordinal(value) == expected


class TestCurrency:
    def test_parse_strips_symbols(self):
        assert parse_currency("$1,234.50") == 1234.5

    def test_parse_none(self):
        assert parse_currency(None) is None

    def test_parse_no_digits(self):
        assert parse_currency("n/a") == 0.0

    def test_parse_int_truncates(self):
        assert parse_int("1,234.9") == 1234

    def test_format_rounds_to_dollars(self):
        assert format_currency(104500.4) == "$104,500"
        assert format_currency(0) == "$0"


class TestSecondsToTime:
    def test_minutes_and_hundredths(self):
        assert seconds_to_time(114.25) == "1:54.25"

    def test_pads_seconds(self):
        assert seconds_to_time(65.5) == "1:05.50"


class TestSeasons:
    def test_current_season_start(self):
        now = datetime(2025, 5, 17, 12, 0, tzinfo=timezone.utc)
        assert get_current_season(now) == datetime(2025, 4, 1, tzinfo=timezone.utc)

    def test_seasons_between(self):
        assert seasons_between(datetime(2024, 4, 1), datetime(2025, 1, 15)) == 3

    def test_seasons_between_requires_dates(self):
        with pytest.raises(TypeError):
            seasons_between(None, datetime(2025, 1, 1))

    def test_shift_back_across_year(self):
        assert shift_seasons(datetime(2025, 1, 1), -2) == datetime(2024, 7, 1)

    def test_format_season(self):
        assert format_season(datetime(2025, 4, 1)) == "Apr 2025"
