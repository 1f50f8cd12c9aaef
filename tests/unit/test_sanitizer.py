"""Unit tests for query sanitization."""

import pytest

from rage_sdk.enrichment.sanitizer import MAX_QUERY_LENGTH, is_valid_query, sanitize_query


class TestSanitizeQuery:

    def test_strips_markup_characters(self):
        assert sanitize_query('How do I <rotate> "API" `keys`?') == "How do I rotate API keys?"

    def test_collapses_whitespace(self):
        assert sanitize_query("  what\tis \n\n the   limit  ") == "what is the limit"

    def test_truncates_to_max_length(self):
        assert len(sanitize_query("a" * 600)) == MAX_QUERY_LENGTH

    def test_truncation_does_not_leave_trailing_space(self):
        text = "x" * (MAX_QUERY_LENGTH - 1) + " " + "y" * 10
        assert sanitize_query(text) == "x" * (MAX_QUERY_LENGTH - 1)

    @pytest.mark.parametrize("value", [None, 42, ["query"], {"q": 1}])
    def test_non_string_yields_empty(self, value):
        assert sanitize_query(value) == ""

    @pytest.mark.parametrize("text", [
        "plain question",
        "  <script>alert('x')</script>  ",
        "tabs\tand\nnewlines",
        "x" * (MAX_QUERY_LENGTH - 1) + " " + "y" * 10,
        "'\"`<>",
        "",
    ])
    def test_idempotent(self, text):
        once = sanitize_query(text)
        assert sanitize_query(once) == once


class TestIsValidQuery:

    @pytest.mark.parametrize("text,expected", [
        ("", False),
        ("ab", False),
        ("abc", True),
        ("How do I rotate credentials?", True),
    ])
    def test_minimum_length(self, text, expected):
        assert is_valid_query(text) is expected
