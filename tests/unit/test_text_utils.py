"""
Unit tests for text utilities.
"""

import pytest

from utils.text_utils import normalize_name, clean_text, title_case, parse_price


class TestNormalizeName:

    def test_case_and_whitespace(self):
        """Should lowercase, trim and collapse whitespace."""
        assert normalize_name("  Main   Course ") == "main course"

    def test_none(self):
        """Should return empty string for None."""
        assert normalize_name(None) == ""


class TestCleanText:

    def test_leading_numbering_removed(self):
        """Should drop list numbering."""
        assert clean_text("1. Tomato Soup") == "Tomato Soup"

    def test_trailing_leaders_removed(self):
        """Should drop dotted price leaders."""
        assert clean_text("Samosa .....") == "Samosa"

    def test_empty_becomes_none(self):
        """Should return None for whitespace-only text."""
        assert clean_text("   ") is None

    def test_truncates(self):
        """Should cut text at max_length."""
        assert clean_text("a" * 300, max_length=10) == "a" * 10


def test_title_case():
    """Should capitalize each word."""
    assert title_case("MAIN DISHES") == "Main Dishes"


class TestParsePrice:

    @pytest.mark.parametrize("value,expected", [
        (2500, 2500.0),
        (12.5, 12.5),
        ("5,000 RWF", 5000.0),
        ("RWF 5,000", 5000.0),
        ("$12.50", 12.5),
        ("5,000 - 7,000", 5000.0),
        ("free", 0.0),
        (None, 0.0),
    ])
    def test_values(self, value, expected):
        """Should turn provider prices into floats."""
        assert parse_price(value) == expected

    def test_negative_kept(self):
        """Should keep negative prices so validation can report them."""
        assert parse_price(-500) == -500.0
        assert parse_price("-500") == -500.0
