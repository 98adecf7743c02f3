"""Unit tests for the frequency interpreter."""

import pytest

from rxreminders.domain.services.frequency_interpreter import (
    TIME_SETS,
    dose_count,
    interpret,
    is_recognized,
)


class TestInterpret:
    """Test suite for interpret()."""

    def test_canonical_examples(self):
        """Test the documented once, twice and empty cases."""
        assert interpret("once daily") == ["08:00"]
        assert interpret("twice daily") == ["08:00", "20:00"]
        assert interpret("") == ["08:00", "20:00"]

    def test_none_defaults_to_twice_daily(self):
        """Test that missing frequency text uses the default schedule."""
        assert interpret(None) == ["08:00", "20:00"]

    @pytest.mark.parametrize("text,expected", [
        ("1 time per day", ["08:00"]),
        ("Take 2 times a day", ["08:00", "20:00"]),
        ("3 times daily after meals", ["08:00", "13:00", "20:00"]),
        ("four times a day", ["08:00", "12:00", "16:00", "20:00"]),
        ("THRICE DAILY", ["08:00", "13:00", "20:00"]),
    ])
    def test_english_phrasing(self, text, expected):
        """Test English frequency phrasing, case-insensitive."""
        assert interpret(text) == expected

    @pytest.mark.parametrize("text,count", [
        ("qd", 1),
        ("1 tab OD", 1),
        ("bid", 2),
        ("b.i.d.", 2),
        ("tid pc", 3),
        ("qid", 4),
    ])
    def test_latin_abbreviations(self, text, count):
        """Test Latin prescription abbreviations."""
        assert interpret(text) == list(TIME_SETS[count])

    @pytest.mark.parametrize("text,count", [
        ("Ngày uống 1 lần", 1),
        ("một lần mỗi ngày", 1),
        ("2 lần/ngày", 2),
        ("ngày hai lần", 2),
        ("3 lần/ngày sau ăn", 3),
        ("4 lần/ngày", 4),
    ])
    def test_vietnamese_phrasing(self, text, count):
        """Test Vietnamese 'N lần' phrasing."""
        assert interpret(text) == list(TIME_SETS[count])

    @pytest.mark.parametrize("text,count", [
        ("1-0-1", 2),
        ("1-1-1", 3),
        ("1-0-0", 1),
        ("1-1-1-1", 4),
    ])
    def test_slot_notation(self, text, count):
        """Test morning-noon-evening slot notation."""
        assert interpret(text) == list(TIME_SETS[count])

    def test_multi_digit_counts_do_not_match_single_digit(self):
        """Test that '12 times' is not read as twice daily."""
        assert dose_count("12 times") is None

    def test_first_match_wins_in_ascending_order(self):
        """Test that the lowest matching count wins when several match."""
        assert interpret("once or twice daily") == ["08:00"]

    def test_unrecognized_text_defaults(self):
        """Test that unrecognized text never fails."""
        assert interpret("as needed for pain") == ["08:00", "20:00"]

    def test_times_are_sorted_and_unique(self):
        """Test that every time set is ordered earliest first."""
        for times in TIME_SETS.values():
            assert list(times) == sorted(set(times))


class TestIsRecognized:
    """Test suite for is_recognized()."""

    def test_recognized(self):
        assert is_recognized("twice daily")
        assert is_recognized("2 lần/ngày")

    def test_unrecognized(self):
        """Test that defaulted text is reported as unrecognized."""
        assert not is_recognized("as needed")
        assert not is_recognized("")
        assert not is_recognized(None)
