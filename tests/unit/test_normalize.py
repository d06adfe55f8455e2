"""Unit tests for family_roster.normalize."""

import pytest
from datetime import date, datetime

from family_roster.normalize import (
    trim,
    normalize_space,
    normalize_email,
    clean_phone,
    format_phone,
    parse_name_parts,
    full_name,
    username_base,
    parse_date_only,
)


# ---------------------------------------------------------------------------
# trim
# ---------------------------------------------------------------------------

class TestTrim:
    def test_strips_whitespace(self):
        assert trim("  hello  ") == "hello"

    def test_empty_string_returns_none(self):
        assert trim("") is None

    def test_whitespace_only_returns_none(self):
        assert trim("   ") is None

    def test_none_returns_none(self):
        assert trim(None) is None


# ---------------------------------------------------------------------------
# normalize_space
# ---------------------------------------------------------------------------

class TestNormalizeSpace:
    def test_collapses_internal_spaces(self):
        assert normalize_space("hello   world") == "hello world"

    def test_collapses_tabs(self):
        assert normalize_space("hello\t\tworld") == "hello world"

    def test_none(self):
        assert normalize_space(None) is None


# ---------------------------------------------------------------------------
# normalize_email
# ---------------------------------------------------------------------------

class TestNormalizeEmail:
    def test_lowercases(self):
        assert normalize_email("User@Example.COM") == "user@example.com"

    def test_trims(self):
        assert normalize_email("  user@example.com  ") == "user@example.com"

    def test_empty(self):
        assert normalize_email("") is None


# ---------------------------------------------------------------------------
# phone helpers
# ---------------------------------------------------------------------------

class TestCleanPhone:
    def test_keeps_digits_only(self):
        assert clean_phone("(555) 123-4567") == "5551234567"

    def test_none_is_empty(self):
        assert clean_phone(None) == ""

    def test_no_digits(self):
        assert clean_phone("n/a") == ""


class TestFormatPhone:
    def test_full_number(self):
        assert format_phone("5551234567") == "555-123-4567"

    def test_progressive_three(self):
        assert format_phone("555") == "555"

    def test_progressive_six(self):
        assert format_phone("555123") == "555-123"

    def test_progressive_seven(self):
        assert format_phone("5551234") == "555-123-4"

    def test_reformats_punctuated_input(self):
        assert format_phone("(555) 123 4567") == "555-123-4567"

    def test_drops_digits_past_ten(self):
        assert format_phone("555123456789") == "555-123-4567"

    def test_empty(self):
        assert format_phone("") == ""


# ---------------------------------------------------------------------------
# names
# ---------------------------------------------------------------------------

class TestParseNameParts:
    def test_two_tokens(self):
        assert parse_name_parts("Ann Smith") == ("Ann", "Smith")

    def test_compound_last_name(self):
        assert parse_name_parts("Ann  van der Berg") == ("Ann", "van der Berg")

    def test_single_token(self):
        assert parse_name_parts("Cher") == ("Cher", "")

    def test_none(self):
        assert parse_name_parts(None) == ("", "")


class TestFullName:
    def test_joins(self):
        assert full_name(" Ann ", "Smith") == "Ann Smith"

    def test_drops_blank_last(self):
        assert full_name("Ann", "") == "Ann"


class TestUsernameBase:
    def test_first_plus_two_of_last(self):
        assert username_base("Ann", "Smith") == "annsm"

    def test_strips_accents_and_punctuation(self):
        assert username_base("José", "O'Neil") == "joseon"

    def test_short_last_name(self):
        assert username_base("Bo", "X") == "box"

    def test_no_usable_first_name(self):
        assert username_base("  ", "Smith") == ""


# ---------------------------------------------------------------------------
# parse_date_only
# ---------------------------------------------------------------------------

class TestParseDateOnly:
    def test_iso_date(self):
        assert parse_date_only("2010-04-01") == date(2010, 4, 1)

    def test_iso_timestamp_uses_date_part(self):
        assert parse_date_only("2010-04-01T23:30:00Z") == date(2010, 4, 1)

    def test_us_format(self):
        assert parse_date_only("04/01/2010") == date(2010, 4, 1)

    def test_datetime_object(self):
        assert parse_date_only(datetime(2010, 4, 1, 22, 0)) == date(2010, 4, 1)

    def test_blank_is_none(self):
        assert parse_date_only("  ") is None
        assert parse_date_only(None) is None

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_date_only("first of april")
