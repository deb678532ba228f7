"""
Unit tests for duration parsing.
"""

import pytest

from audioqueue.utils.duration import parse_duration


@pytest.mark.unit
class TestParseDuration:
    """Tests for iTunes-style duration strings."""

    def test_hours_minutes_seconds(self):
        assert parse_duration("1:23:45") == 5025

    def test_minutes_seconds(self):
        assert parse_duration("2:30") == 150

    def test_bare_seconds(self):
        assert parse_duration("42") == 42

    def test_numeric_passthrough(self):
        assert parse_duration(3600) == 3600
        assert parse_duration(12.5) == 12.5

    def test_fractional_seconds_kept(self):
        assert parse_duration("0:01.5") == 1.5

    def test_non_numeric_component(self):
        assert parse_duration("1:xx") is None

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc", "1:2:3:4", "nan"])
    def test_unparseable(self, raw):
        assert parse_duration(raw) is None

    def test_boolean_rejected(self):
        assert parse_duration(True) is None
