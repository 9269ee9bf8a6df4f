"""
Tests for typed value comparison.
"""

from datetime import date, datetime
from decimal import Decimal

from backend.ruleflow.logic.comparison import (
    between,
    compare,
    is_empty,
    is_member,
    operand_holds,
    to_date,
    to_decimal,
    value_kind,
)
from backend.ruleflow.models import Operand, ValueKind


class TestValueKind:
    """Tests for value_kind."""

    def test_numbers(self):
        """Test ints and decimals are told apart."""
        assert value_kind(5) == ValueKind.INTEGER
        assert value_kind(5.5) == ValueKind.DECIMAL
        assert value_kind(Decimal("5.5")) == ValueKind.DECIMAL

    def test_bool_is_not_a_number(self):
        """Test booleans are not treated as integers."""
        assert value_kind(True) == ValueKind.OTHER

    def test_text_date_and_empty(self):
        """Test text, date and None."""
        assert value_kind("abc") == ValueKind.TEXT
        assert value_kind(date(2024, 1, 1)) == ValueKind.DATE
        assert value_kind(None) == ValueKind.EMPTY


class TestCoercion:
    """Tests for to_decimal and to_date."""

    def test_to_decimal_from_text(self):
        """Test numeric text converts."""
        assert to_decimal(" 10.5 ") == Decimal("10.5")

    def test_to_decimal_rejects_words(self):
        """Test non-numeric text gives None."""
        assert to_decimal("ten") is None
        assert to_decimal(True) is None

    def test_to_decimal_rejects_infinity(self):
        """Test non-finite numbers give None."""
        assert to_decimal(float("inf")) is None
        assert to_decimal("NaN") is None

    def test_to_date_from_iso_text(self):
        """Test ISO dates and datetimes parse."""
        assert to_date("2024-03-31") == date(2024, 3, 31)
        assert to_date("2024-03-31T10:00:00") == datetime(2024, 3, 31, 10, 0)
        assert to_date("not a date") is None


class TestCompare:
    """Tests for compare."""

    def test_numeric_target_text(self):
        """Test a number compares numerically against target text."""
        assert compare(10, "9") > 0
        assert compare(Decimal("2.50"), "2.5") == 0

    def test_numeric_text_on_both_sides(self):
        """Test numeric looking text compares by magnitude, not lexically."""
        assert compare("10", "9") > 0

    def test_text_compare(self):
        """Test plain text compares lexically."""
        assert compare("apple", "banana") < 0
        assert compare("ABC", "abc") != 0

    def test_case_insensitive_text(self):
        """Test case folding on request."""
        assert compare("ABC", "abc", case_insensitive=True) == 0

    def test_dates(self):
        """Test date values compare chronologically against ISO text."""
        assert compare(date(2024, 1, 2), "2024-01-01") > 0
        assert compare(datetime(2024, 1, 1, 12, 0), date(2024, 1, 1)) == 0

    def test_number_against_non_numeric_target_falls_back_to_text(self):
        """Test an uncoercible target compares as text."""
        assert compare(5, "five") != 0

    def test_non_finite_value_falls_back_to_text(self):
        """Test NaN and infinity compare as text instead of raising."""
        assert compare(float("nan"), "5") > 0
        assert compare(float("inf"), "inf") == 0


class TestOperandHolds:
    """Tests for operand_holds reading target OP value."""

    def test_each_operand(self):
        """Test every operand against the same pair."""
        assert operand_holds(Operand.GREATER_THAN, 4, "5")
        assert not operand_holds(Operand.LESS_THAN, 4, "5")
        assert operand_holds(Operand.LESS_THAN, 10, "5")
        assert operand_holds(Operand.GREATER_OR_EQUAL, 5, "5")
        assert operand_holds(Operand.LESS_OR_EQUAL, 5, "5")
        assert operand_holds(Operand.NOT_EQUAL, 5, "6")
        assert operand_holds(Operand.EQUALS, "5", "5")

    def test_none_operand_always_holds(self):
        """Test the NONE operand."""
        assert operand_holds(Operand.NONE, 1, 2)


class TestHelpers:
    """Tests for between, is_member and is_empty."""

    def test_between_is_inclusive(self):
        """Test both bounds are included."""
        assert between(5, "5", "10")
        assert between(10, "5", "10")
        assert not between(11, "5", "10")

    def test_membership_ignores_case(self):
        """Test membership is case-insensitive equality."""
        assert is_member("acme", ["ACME", "GLOBEX"])
        assert not is_member("initech", ["ACME", "GLOBEX"])
        assert is_member(2, ["1", "2"])

    def test_is_empty(self):
        """Test empty detection."""
        assert is_empty(None)
        assert is_empty("   ")
        assert is_empty([])
        assert not is_empty(0)
        assert not is_empty("x")
