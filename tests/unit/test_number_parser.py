"""
Unit tests for human-formatted number parsing.
"""

import math

import pytest

from company_metrics.common.number_parser import (
    extract_first_numeric_token,
    format_range,
    parse_human_number,
)


class TestParseHumanNumber:
    """Tests for parse_human_number."""

    @pytest.mark.parametrize("text,expected", [
        ("1,234", 1234),
        ("2.5k", 2500),
        ("2.5K", 2500),
        ("10m", 10_000_000),
        ("500+", 500),
        ("10K+", 10_000),
        (" 1 234 ", 1234),
        ("1.5", 2),
        ("0.4", 0),
    ])
    def test_whole_string_forms(self, text, expected):
        """Test separators, suffixes, floor markers and half-up rounding."""
        assert parse_human_number(text) == expected

    @pytest.mark.parametrize("text", ["", "   ", "abc", "employees", "+", "∞"])
    def test_non_numeric_returns_none(self, text):
        """Test that text without digits yields None."""
        assert parse_human_number(text) is None

    def test_phrase_uses_first_numeric_token(self):
        """Test the first-token fallback on phrases."""
        assert parse_human_number("754,196 associated members") == 754196
        assert parse_human_number("See all 2.5K employees on LinkedIn") == 2500
        assert parse_human_number("Jobs (12)") == 12

    def test_suffix_letter_inside_word_is_not_a_multiplier(self):
        """Test that '5 members' is not read as 5 million."""
        assert parse_human_number("5 members") == 5
        assert parse_human_number("3 km away") == 3

    def test_dotted_thousands_grouping(self):
        """Test European-style grouping in free text."""
        assert parse_human_number("1.234.567 followers") == 1234567

    def test_non_string_inputs(self):
        """Test total behavior over non-string input."""
        assert parse_human_number(None) is None
        assert parse_human_number(True) is None
        assert parse_human_number(False) is None
        assert parse_human_number(42) == 42
        assert parse_human_number(41.5) == 42
        assert parse_human_number(math.nan) is None
        assert parse_human_number(math.inf) is None

    @pytest.mark.parametrize("text", [
        "1" * 400,
        "9" * 400 + " employees",
        "999999" * 60 + "k",
        ".".join(["123"] * 1500) + " followers",
    ])
    def test_oversized_tokens_return_none(self, text):
        """Test that digit runs beyond float/int range yield None instead of raising."""
        assert parse_human_number(text) is None


class TestExtractFirstNumericToken:
    """Tests for extract_first_numeric_token."""

    def test_token_with_suffix_and_plus(self):
        assert extract_first_numeric_token("See all 2.5 K+ employees") == "2.5K+"

    def test_token_without_suffix(self):
        assert extract_first_numeric_token("about 1,200 results") == "1,200"

    def test_no_token(self):
        assert extract_first_numeric_token("no numbers here") is None
        assert extract_first_numeric_token(None) is None


class TestFormatRange:
    """Tests for size band rendering."""

    def test_closed_band(self):
        assert format_range(201, 500) == "201-500"

    def test_open_band(self):
        assert format_range(10001) == "10001+"
        assert format_range(10001, None) == "10001+"

    def test_missing_start(self):
        assert format_range(None, 50) is None
