"""
Expression Evaluator for validation rules.

Tests compiled Expression trees against runtime values. Results, failures and
messages for one test are gathered in an Evaluation.
"""

from __future__ import annotations

import logging
import math
import re
import threading
from dataclasses import dataclass, field
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

from ..config import RuleFlowSettings
from ..errors import LookupNotConfiguredError, MissingArgumentError, ModifierValueError
from ..messages import MessageCatalog, MessageKey
from ..models import (
    ExpressionModifier,
    JoinType,
    Operand,
    ValidationResultType,
    ValueKind,
    modifier_order,
)
from .comparison import between, is_empty, is_member, operand_holds, to_decimal, value_kind
from .expression import (
    Expression,
    ExpressionGroup,
    LimitRule,
    LookupRule,
    MembershipRule,
    ModifierRule,
    RangeRule,
)
from .parser import MODIFIER_NAMES

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^\w+([-+.']\w+)*@\w+([-.]\w+)*\.\w+([-.]\w+)*$", re.IGNORECASE)

OPERAND_MESSAGES: Dict[Operand, MessageKey] = {
    Operand.EQUALS: MessageKey.EQUALS,
    Operand.NOT_EQUAL: MessageKey.NOT_EQUAL,
    Operand.GREATER_THAN: MessageKey.GREATER_THAN,
    Operand.GREATER_OR_EQUAL: MessageKey.GREATER_THAN_EQ_TO,
    Operand.LESS_THAN: MessageKey.LESS_THAN,
    Operand.LESS_OR_EQUAL: MessageKey.LESS_THAN_EQ_TO,
}


def _trim(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _require(rule: ModifierRule, rule_type: type, name: str) -> Any:
    if not isinstance(rule, rule_type):
        raise MissingArgumentError(name)
    return rule


class LookupProvider(Protocol):
    """Supplies the candidate values for the InDB modifier."""

    def lookup(self, table: str, column: str, filters: Mapping[str, str]) -> Iterable[Any]:
        ...


@dataclass
class ValidationResult:
    """Outcome of one operand or modifier check."""
    result: ValidationResultType
    expression: str = ""
    modifier: Optional[ExpressionModifier] = None
    operand: Optional[Operand] = None
    key: Optional[MessageKey] = None
    message: str = ""

    @property
    def failed(self) -> bool:
        return self.result != ValidationResultType.PASS

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"result": self.result.value, "expression": self.expression}
        if self.modifier is not None:
            data["modifier"] = self.modifier.name
        if self.operand is not None:
            data["operand"] = self.operand.value
        if self.key is not None:
            data["key"] = self.key.value
        if self.message:
            data["message"] = self.message
        return data


@dataclass(frozen=True)
class ExpressionFailure:
    """A leaf expression that did not pass, with the value it was given."""
    expression: str
    value: Any

    def __str__(self) -> str:
        return f"{self.expression} failed for {self.value!r}"


@dataclass
class Evaluation:
    """Per-test record: results, failures and the (possibly forced) value."""
    original_value: Any = None
    value: Any = None
    passed: Optional[bool] = None
    results: List[ValidationResult] = field(default_factory=list)
    failures: List[ExpressionFailure] = field(default_factory=list)

    def add_result(self, result: ValidationResult) -> None:
        self.results.append(result)

    def add_failure(self, expression: str, value: Any) -> None:
        self.failures.append(ExpressionFailure(expression, value))

    @property
    def messages(self) -> List[str]:
        return [
            r.message for r in self.results
            if r.result == ValidationResultType.FAIL_WITH_MESSAGE and r.message
        ]

    def get_validation_messages(self, html_formatted: bool = True) -> str:
        """
        Render the failure messages.

        HTML output wraps each message in a help-block element joined with
        ``<br />``; plain output joins messages with ``;``.
        """
        if html_formatted:
            return "<br />".join(f'<small class="help-block">{m}</small>' for m in self.messages)
        return ";".join(self.messages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "value": self.value if isinstance(self.value, (str, int, float, bool)) or self.value is None else str(self.value),
            "results": [r.to_dict() for r in self.results],
            "failures": [{"expression": f.expression, "value": str(f.value)} for f in self.failures],
            "messages": self.messages,
        }


class Evaluator:
    """
    Evaluator for compiled expressions.

    Modifiers run in ascending flag order after the operand comparison.
    A False outcome is data; applying a modifier to a value of the wrong kind
    raises ModifierValueError.
    """

    def __init__(
        self,
        settings: Optional[RuleFlowSettings] = None,
        messages: Optional[MessageCatalog] = None,
        lookup: Optional[LookupProvider] = None,
    ):
        self.settings = settings or RuleFlowSettings()
        self.messages = messages or self.settings.message_catalog()
        self.lookup = lookup

    def evaluate(self, expression: Expression, value: Any) -> Evaluation:
        """
        Test a value against an expression.

        Args:
            expression: The compiled expression.
            value: The value under test.

        Returns:
            The Evaluation with ``passed`` set.
        """
        evaluation = Evaluation(original_value=value, value=_trim(value))
        evaluation.passed = self.test(expression, value, evaluation)
        return evaluation

    def test(self, expression: Expression, value: Any, evaluation: Optional[Evaluation] = None) -> bool:
        value = _trim(value)
        if evaluation is None:
            evaluation = Evaluation(original_value=value, value=value)
        passed = self._test_expression(expression, value, evaluation)
        logger.debug("Tested %r against %r: %s", expression.source, value, passed)
        return passed

    def _test_expression(self, expression: Expression, value: Any, evaluation: Evaluation) -> bool:
        if not expression.has_groups:
            return self._test_leaf(expression, value, evaluation)
        # every group is tested so that all diagnostics are collected
        results = [self._test_group(group, value, evaluation) for group in expression.groups]
        return all(results)

    def _test_group(self, group: ExpressionGroup, value: Any, evaluation: Evaluation) -> bool:
        if not group.expressions:
            return True
        results = [self._test_expression(e, value, evaluation) for e in group.expressions]
        if group.join == JoinType.AND:
            return all(results)
        if self.settings.legacy_or_semantics:
            return any(not r for r in results)
        return any(results)

    def _test_leaf(self, expression: Expression, value: Any, evaluation: Evaluation) -> bool:
        target = value if expression.is_this else expression.target
        case_insensitive = expression.has_modifier(ExpressionModifier.CASE_INSENSITIVE)

        operand_ok = operand_holds(expression.operand, value, target, case_insensitive)
        if not operand_ok:
            key = OPERAND_MESSAGES.get(expression.operand)
            self._record(evaluation, expression, False, key, operand=expression.operand)

        modifiers_ok, _ = self._apply_modifiers(expression, value, evaluation)

        passed = operand_ok and modifiers_ok
        if not passed:
            evaluation.add_failure(expression.source, value)
        return passed

    def _record(
        self,
        evaluation: Evaluation,
        expression: Expression,
        passed: bool,
        key: Optional[MessageKey],
        modifier: Optional[ExpressionModifier] = None,
        operand: Optional[Operand] = None,
    ) -> None:
        if passed:
            result = ValidationResult(ValidationResultType.PASS, expression.source, modifier, operand)
        elif key is None:
            result = ValidationResult(ValidationResultType.FAIL, expression.source, modifier, operand)
        else:
            result = ValidationResult(
                ValidationResultType.FAIL_WITH_MESSAGE,
                expression.source,
                modifier,
                operand,
                key,
                self.messages.get(key),
            )
        evaluation.add_result(result)

    def _apply_modifiers(self, expression: Expression, value: Any, evaluation: Evaluation) -> Tuple[bool, Any]:
        passed = True
        for modifier in modifier_order():
            if not expression.has_modifier(modifier):
                continue
            rule = expression.rule_for(modifier) or ModifierRule(modifier)
            ok, key, value = self._apply_modifier(expression, rule, value)
            if expression.force and modifier in (ExpressionModifier.UPPERCASE, ExpressionModifier.LOWERCASE):
                evaluation.value = value
            if modifier in (ExpressionModifier.ROUND_UP, ExpressionModifier.ROUND_DOWN):
                evaluation.value = value
            self._record(evaluation, expression, ok, key, modifier=modifier)
            passed = passed and ok
        return passed, value

    def _apply_modifier(
        self, expression: Expression, rule: ModifierRule, value: Any
    ) -> Tuple[bool, Optional[MessageKey], Any]:
        """Apply a single modifier. Returns (passed, message key, value)."""
        modifier = rule.modifier
        name = MODIFIER_NAMES[modifier]
        kind = value_kind(value)

        if modifier == ExpressionModifier.REQUIRED:
            return (not is_empty(value)), MessageKey.REQUIRED, value

        if kind == ValueKind.EMPTY:
            # absent values are only rejected by Required
            return True, None, value

        if modifier in (ExpressionModifier.UPPERCASE, ExpressionModifier.LOWERCASE):
            if kind != ValueKind.TEXT:
                raise ModifierValueError(name, value, "text based")
            upper = modifier == ExpressionModifier.UPPERCASE
            expected = value.upper() if upper else value.lower()
            if expression.force:
                return True, None, expected
            return value == expected, (MessageKey.NOT_UPPER if upper else MessageKey.NOT_LOWER), value

        if modifier == ExpressionModifier.CASE_INSENSITIVE:
            return True, None, value

        if modifier in (ExpressionModifier.ROUND_UP, ExpressionModifier.ROUND_DOWN):
            return True, None, self._round(name, modifier, value, kind)

        if modifier in (ExpressionModifier.MAX, ExpressionModifier.MIN):
            rule = _require(rule, LimitRule, name)
            is_max = modifier == ExpressionModifier.MAX
            key = MessageKey.EXCEEDS_MAX if is_max else MessageKey.MINIMUM_NOT_REACHED
            if kind == ValueKind.TEXT:
                measured = Decimal(len(value))
            elif kind in (ValueKind.INTEGER, ValueKind.DECIMAL):
                measured = to_decimal(value)
                if measured is None:
                    # NaN and infinities cannot meet a limit
                    return False, key, value
            else:
                raise ModifierValueError(name, value, "text or numeric")
            if is_max:
                return measured <= rule.limit, key, value
            return measured >= rule.limit, key, value

        if modifier == ExpressionModifier.BETWEEN:
            rule = _require(rule, RangeRule, name)
            return between(value, rule.low, rule.high), MessageKey.NOT_BETWEEN, value

        if modifier == ExpressionModifier.EMAIL:
            if kind != ValueKind.TEXT:
                raise ModifierValueError(name, value, "text based")
            return EMAIL_PATTERN.match(value) is not None, MessageKey.INVALID_EMAIL, value

        if modifier == ExpressionModifier.IN:
            rule = _require(rule, MembershipRule, name)
            return is_member(value, rule.values), MessageKey.NOT_IN_LIST, value

        if modifier == ExpressionModifier.IN_DB:
            rule = _require(rule, LookupRule, name)
            if self.lookup is None:
                raise LookupNotConfiguredError(
                    f"The {name} modifier needs a lookup provider ({rule.table}.{rule.column})"
                )
            candidates = list(self.lookup.lookup(rule.table, rule.column, rule.filter_map()))
            return is_member(value, candidates), MessageKey.NOT_IN_LIST, value

        return True, None, value

    @staticmethod
    def _round(name: str, modifier: ExpressionModifier, value: Any, kind: ValueKind) -> Any:
        up = modifier == ExpressionModifier.ROUND_UP
        if kind == ValueKind.INTEGER:
            return value
        if isinstance(value, float):
            return float(math.ceil(value) if up else math.floor(value))
        if isinstance(value, Decimal):
            return value.to_integral_value(rounding=ROUND_CEILING if up else ROUND_FLOOR)
        if kind == ValueKind.TEXT:
            number = to_decimal(value)
            if number is not None:
                return number.to_integral_value(rounding=ROUND_CEILING if up else ROUND_FLOOR)
        raise ModifierValueError(name, value, "numeric")


_default_evaluator: Optional[Evaluator] = None
_default_evaluator_lock = threading.Lock()


def default_evaluator() -> Evaluator:
    """Shared evaluator built from environment settings on first use."""
    global _default_evaluator
    if _default_evaluator is None:
        with _default_evaluator_lock:
            if _default_evaluator is None:
                _default_evaluator = Evaluator()
    return _default_evaluator


def set_default_evaluator(evaluator: Optional[Evaluator]) -> None:
    """Replace the shared evaluator, e.g. to install a lookup provider."""
    global _default_evaluator
    with _default_evaluator_lock:
        _default_evaluator = evaluator
