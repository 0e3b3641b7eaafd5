"""Tests for frequency utilities."""

import pandas as pd
import pytest

from forecast_pipeline.utils import Frequency, parse_frequency


class TestParseFrequency:
    """Test frequency parsing."""

    def test_simple_units(self):
        """Test parsing simple frequency units."""
        assert parse_frequency("H") == (1, "H", None)
        assert parse_frequency("D") == (1, "D", None)
        assert parse_frequency("M") == (1, "M", None)
        assert parse_frequency("Y") == (1, "Y", None)

    def test_with_multipliers(self):
        """Test parsing frequencies with multipliers."""
        assert parse_frequency("15T") == (15, "T", None)
        assert parse_frequency("5min") == (5, "T", None)
        assert parse_frequency("30T") == (30, "T", None)

    def test_aliases(self):
        """Test various pandas frequency aliases."""
        assert parse_frequency("min")[1] == "T"
        assert parse_frequency("h")[1] == "H"
        assert parse_frequency("YE")[1] == "Y"
        assert parse_frequency("ME")[1] == "M"
        assert parse_frequency("B")[1] == "B"

    def test_weekly_anchor(self):
        """Test weekly frequencies anchored on a weekday."""
        assert parse_frequency("W-MON") == (1, "W", "MON")
        assert parse_frequency("2W-SUN") == (2, "W", "SUN")

    def test_month_anchor_ignored(self):
        """Test that yearly/quarterly month anchors do not change the step."""
        assert parse_frequency("A-DEC") == (1, "Y", None)
        assert parse_frequency("Q-DEC") == (1, "Q", None)

    def test_invalid(self):
        """Test that unknown strings are rejected."""
        with pytest.raises(ValueError):
            parse_frequency("every tuesday")
        with pytest.raises(ValueError):
            parse_frequency("3X")


class TestFrequency:
    """Test calendar arithmetic of the frequency descriptor."""

    def test_parse_roundtrip(self):
        """Test string form of parsed frequencies."""
        assert str(Frequency.parse("15T")) == "15T"
        assert str(Frequency.parse("M")) == "M"
        assert str(Frequency.parse("W-MON")) == "W-MON"

    def test_parse_accepts_frequency(self):
        """Test that parsing a Frequency returns it unchanged."""
        freq = Frequency(multiple=2, unit="H")
        assert Frequency.parse(freq) is freq

    def test_monthly_range(self):
        """Test monthly timestamps keep the day of month."""
        index = Frequency.parse("M").date_range(pd.Timestamp("1949-01-01"), 3)
        assert list(index) == [
            pd.Timestamp("1949-01-01"),
            pd.Timestamp("1949-02-01"),
            pd.Timestamp("1949-03-01"),
        ]

    def test_month_end_range(self):
        """Test that a month-end start stays on month ends."""
        freq = Frequency.parse("M")
        start = pd.Timestamp("2020-01-31")
        index = freq.date_range(start, 4)
        assert list(index) == [
            pd.Timestamp("2020-01-31"),
            pd.Timestamp("2020-02-29"),
            pd.Timestamp("2020-03-31"),
            pd.Timestamp("2020-04-30"),
        ]
        assert all(index[k] == freq.shift(start, k) for k in range(4))

    def test_quarterly_range_matches_shift(self):
        """Test that every step of a range equals the shifted start."""
        freq = Frequency.parse("Q")
        start = pd.Timestamp("2019-08-31")
        index = freq.date_range(start, 6)
        assert [freq.shift(start, k) for k in range(6)] == list(index)

    def test_hourly_range(self):
        """Test multi-hour steps."""
        index = Frequency.parse("6H").date_range(pd.Timestamp("2020-01-01"), 5)
        assert index[-1] == pd.Timestamp("2020-01-02 00:00")

    def test_shift(self):
        """Test shifting by a number of steps."""
        freq = Frequency.parse("D")
        assert freq.shift(pd.Timestamp("2020-01-30"), 3) == pd.Timestamp("2020-02-02")
        assert Frequency.parse("Q").shift(pd.Timestamp("1958-12-01"), 1) == pd.Timestamp("1959-03-01")

    def test_invalid_multiple(self):
        """Test that a non-positive multiple is rejected."""
        with pytest.raises(ValueError):
            Frequency(multiple=0, unit="D")
