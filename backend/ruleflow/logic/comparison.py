"""
Typed comparison helpers.

Values are compared according to the kind of the value under test: numbers
numerically, dates chronologically and everything else as text. Targets
written in rule text are coerced to that kind first.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from ..models import Operand, ValueKind


def value_kind(value: Any) -> ValueKind:
    """Categorize a runtime value."""
    if value is None:
        return ValueKind.EMPTY
    if isinstance(value, bool):
        return ValueKind.OTHER
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, (float, Decimal)):
        return ValueKind.DECIMAL
    if isinstance(value, (date, datetime)):
        return ValueKind.DATE
    if isinstance(value, str):
        return ValueKind.TEXT
    return ValueKind.OTHER


def is_numeric(value: Any) -> bool:
    return value_kind(value) in (ValueKind.INTEGER, ValueKind.DECIMAL)


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert a number or numeric text to Decimal, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        result = Decimal(str(value))
        return result if result.is_finite() else None
    if isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except (InvalidOperation, ValueError):
            return None
        return result if result.is_finite() else None
    return None


def to_date(value: Any) -> Optional[date]:
    """Convert a date, datetime or ISO text to a date/datetime, or None."""
    if isinstance(value, (date, datetime)):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if "T" in text or " " in text:
                return datetime.fromisoformat(text)
            return date.fromisoformat(text)
        except ValueError:
            return None
    return None


def _three_way(left: Any, right: Any) -> int:
    return (left > right) - (left < right)


def _compare_dates(left: date, right: date) -> int:
    # datetime is a date subclass, but the two do not order against each other
    if isinstance(left, datetime) and not isinstance(right, datetime):
        left = left.date()
    elif isinstance(right, datetime) and not isinstance(left, datetime):
        right = right.date()
    return _three_way(left, right)


def _compare_text(left: Any, right: Any, case_insensitive: bool) -> int:
    left_text = "" if left is None else str(left)
    right_text = "" if right is None else str(right)
    if case_insensitive:
        left_text = left_text.casefold()
        right_text = right_text.casefold()
    return _three_way(left_text, right_text)


def compare(value: Any, target: Any, case_insensitive: bool = False) -> int:
    """
    Three-way compare of the value under test against a target.

    Returns:
        A negative number if value < target, 0 if equal, positive if greater.
    """
    kind = value_kind(value)

    if kind in (ValueKind.INTEGER, ValueKind.DECIMAL):
        # NaN and infinities have no Decimal form and fall through to text
        left = to_decimal(value)
        right = to_decimal(target)
        if left is not None and right is not None:
            return _three_way(left, right)

    elif kind == ValueKind.DATE:
        right = to_date(target)
        if right is not None:
            try:
                return _compare_dates(value, right)
            except TypeError:
                # naive against aware datetimes
                pass

    elif kind == ValueKind.TEXT:
        # numeric looking text on both sides compares by magnitude
        left_number = to_decimal(value)
        right_number = to_decimal(target) if not isinstance(target, (date, datetime)) else None
        if left_number is not None and right_number is not None:
            return _three_way(left_number, right_number)
        if isinstance(target, (date, datetime)):
            left_date = to_date(value)
            if left_date is not None:
                try:
                    return _compare_dates(left_date, target)
                except TypeError:
                    pass

    return _compare_text(value, target, case_insensitive)


def operand_holds(operand: Operand, value: Any, target: Any, case_insensitive: bool = False) -> bool:
    """
    Read the operand as ``target OP value``.

    ``[>"5"]`` holds for 4 and not for 6. The target is still coerced to the
    kind of the value, so the comparison is made from the value's side and
    its sign is flipped.
    """
    if operand == Operand.NONE:
        return True
    result = -compare(value, target, case_insensitive=case_insensitive)
    if operand == Operand.EQUALS:
        return result == 0
    if operand == Operand.NOT_EQUAL:
        return result != 0
    if operand == Operand.GREATER_THAN:
        return result > 0
    if operand == Operand.LESS_THAN:
        return result < 0
    if operand == Operand.GREATER_OR_EQUAL:
        return result >= 0
    if operand == Operand.LESS_OR_EQUAL:
        return result <= 0
    return False


def between(value: Any, low: Any, high: Any) -> bool:
    """Inclusive range check."""
    return compare(value, low) >= 0 and compare(value, high) <= 0


def is_member(value: Any, candidates: Iterable[Any]) -> bool:
    """
    Case-insensitive membership test.

    Text must equal a whole candidate; a value that only contains a
    candidate as a substring is not a member.
    """
    return any(compare(value, candidate, case_insensitive=True) == 0 for candidate in candidates)


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False
