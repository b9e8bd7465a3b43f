"""
Unit Tests for SectionNumber parsing and ordering.
"""

import random

import pytest

from sysdoc.source.section_number import (
    SectionNumber,
    split_filename,
    split_folder_name,
    title_from_slug,
)


class TestParse:
    """Test SectionNumber.parse."""

    def test_dotted_prefix(self):
        """Test zero-padded components become integers."""
        assert SectionNumber.parse("01.02").parts == (1, 2)
        assert SectionNumber.parse("3.1.4").parts == (3, 1, 4)

    def test_parent_marker_dropped(self):
        """Test a trailing .00 marks the parent itself."""
        assert SectionNumber.parse("03.00") == SectionNumber((3,))

    def test_single_zero_kept(self):
        """Test a lone 00 is section zero, not an empty number."""
        assert SectionNumber.parse("00").parts == (0,)

    @pytest.mark.parametrize("text", ["", "1a", "01..02", "1.x", "-1"])
    def test_invalid(self, text):
        """Test non-numeric prefixes are rejected."""
        assert SectionNumber.parse(text) is None


class TestOrdering:
    """Test numeric ordering and prefix relations."""

    def test_numeric_not_lexical(self):
        """Test 1.10 sorts after 1.9."""
        assert SectionNumber((1, 9)) < SectionNumber((1, 10))

    def test_parent_before_child(self):
        """Test a parent sorts before its children."""
        assert SectionNumber((1,)) < SectionNumber((1, 1)) < SectionNumber((2,))

    def test_sort_is_order_independent(self):
        """Test any input permutation sorts to the same sequence."""
        numbers = [SectionNumber(p) for p in [(1,), (1, 1), (1, 2), (1, 10), (2,), (2, 1, 1)]]
        shuffled = numbers[:]
        random.Random(7).shuffle(shuffled)
        assert sorted(shuffled) == numbers

    def test_is_prefix_of(self):
        """Test proper-prefix check."""
        parent = SectionNumber((1,))
        assert parent.is_prefix_of(SectionNumber((1, 2)))
        assert parent.is_prefix_of(SectionNumber((1, 2, 3)))
        assert not parent.is_prefix_of(parent)
        assert not parent.is_prefix_of(SectionNumber((10, 1)))

    def test_extend_and_str(self):
        """Test extend and dotted rendering."""
        number = SectionNumber((1, 2)).extend(3)
        assert number.parts == (1, 2, 3)
        assert str(number) == "1.2.3"
        assert str(number.top_level()) == "1"


class TestFilenames:
    """Test filename and folder helpers."""

    def test_split_filename(self):
        """Test prefix and title split on the first underscore."""
        number, title = split_filename("01.02_system-overview")
        assert number == SectionNumber((1, 2))
        assert title == "System Overview"

    def test_split_filename_without_prefix(self):
        """Test a stem without a numeric prefix."""
        number, _ = split_filename("README")
        assert number is None

    def test_title_from_slug(self):
        """Test slug words are capitalised."""
        assert title_from_slug("interface_control-document") == "Interface Control Document"

    def test_split_folder_name(self):
        """Test folder prefixes with dash or underscore separators."""
        assert split_folder_name("01-introduction") == (SectionNumber((1,)), "Introduction")
        assert split_folder_name("02_design") == (SectionNumber((2,)), "Design")
        assert split_folder_name("figures") == (None, "")
