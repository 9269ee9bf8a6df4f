"""
Record Validation.

Applies a set of field rules to a record (a mapping or an object):

    rules:
      email: "[|r|e]"
      quantity: '[<"0"|mx(100)]'
      customer.code: "[|u|in(ACME,GLOBEX)]"

Each field that does not pass produces one violation carrying the plain
text diagnostics of its expression.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .errors import ConfigurationError, ExpressionSyntaxError, ModifierValueError
from .logic.evaluator import Evaluator, default_evaluator
from .logic.expression import Expression
from .logic.parser import ExpressionParser, default_expression_parser

logger = logging.getLogger(__name__)


@dataclass
class RecordViolation:
    """Represents a field that failed its rule."""

    field_path: str
    expression: str
    message: str
    actual_value: Optional[str] = None
    violation_type: str = "rule"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "field_path": self.field_path,
            "expression": self.expression,
            "message": self.message,
            "actual_value": self.actual_value,
            "violation_type": self.violation_type,
        }


@dataclass
class RecordValidationResult:
    """Result of validating one record."""

    valid: bool = True
    violations: List[RecordViolation] = field(default_factory=list)
    rules_checked: int = 0

    def add_violation(
        self,
        field_path: str,
        expression: str,
        message: str,
        actual_value: Optional[str] = None,
        violation_type: str = "rule",
    ) -> None:
        """Add a violation and mark the record invalid."""
        self.violations.append(RecordViolation(
            field_path=field_path,
            expression=expression,
            message=message,
            actual_value=actual_value,
            violation_type=violation_type,
        ))
        self.valid = False

    def messages_for(self, field_path: str) -> List[str]:
        return [v.message for v in self.violations if v.field_path == field_path]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "valid": self.valid,
            "violations": [v.to_dict() for v in self.violations],
            "rules_checked": self.rules_checked,
        }


def get_field(record: Any, path: str) -> Any:
    """Read a dotted path from nested mappings or objects. Missing is None."""
    current = record
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else None
        else:
            current = getattr(current, part, None)
    return current


class RuleSet:
    """
    Field name to compiled expression mapping.

    Rules are compiled when added, so a bad rule is reported at load time.
    """

    def __init__(
        self,
        rules: Optional[Mapping[str, Union[str, Expression]]] = None,
        parser: Optional[ExpressionParser] = None,
        evaluator: Optional[Evaluator] = None,
    ):
        self.parser = parser or default_expression_parser()
        self.evaluator = evaluator
        self.rules: Dict[str, Expression] = {}
        for field_path, rule in (rules or {}).items():
            self.add_rule(field_path, rule)

    def add_rule(self, field_path: str, rule: Union[str, Expression]) -> Expression:
        expression = rule if isinstance(rule, Expression) else self.parser.compile_expression(rule)
        self.rules[field_path] = expression
        return expression

    def validate(self, record: Any) -> RecordValidationResult:
        """
        Validate a record against every rule.

        Args:
            record: Mapping or object holding the field values.

        Returns:
            RecordValidationResult with one violation per failing field.
        """
        evaluator = self.evaluator or default_evaluator()
        result = RecordValidationResult()
        for field_path, expression in self.rules.items():
            value = get_field(record, field_path)
            result.rules_checked += 1
            try:
                evaluation = evaluator.evaluate(expression, value)
            except ModifierValueError as e:
                result.add_violation(field_path, expression.source, str(e), _display(value), "type")
                continue
            if not evaluation.passed:
                message = evaluation.get_validation_messages(html_formatted=False)
                if not message:
                    message = f"Value does not satisfy {expression.source}"
                result.add_violation(field_path, expression.source, message, _display(value))
        logger.debug(
            "Validated record against %d rules: %s", result.rules_checked,
            "valid" if result.valid else f"{len(result.violations)} violation(s)",
        )
        return result

    def to_dict(self) -> Dict[str, str]:
        return {field_path: e.source for field_path, e in self.rules.items()}

    @classmethod
    def from_yaml(
        cls,
        yaml_content: str,
        parser: Optional[ExpressionParser] = None,
        evaluator: Optional[Evaluator] = None,
    ) -> "RuleSet":
        """Load rules from YAML with a top level ``rules`` map."""
        try:
            data = yaml.safe_load(yaml_content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid rules YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError("Rules YAML must be a mapping")
        rules = data.get("rules", data)
        if not isinstance(rules, dict):
            raise ConfigurationError("'rules' must map field names to expressions")
        try:
            return cls({str(k): str(v) for k, v in rules.items()}, parser, evaluator)
        except ExpressionSyntaxError as e:
            raise ConfigurationError(f"Invalid rule: {e}") from e

    @classmethod
    def from_file(
        cls,
        path: Path,
        parser: Optional[ExpressionParser] = None,
        evaluator: Optional[Evaluator] = None,
    ) -> "RuleSet":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_yaml(f.read(), parser, evaluator)


def _display(value: Any) -> Optional[str]:
    return None if value is None else str(value)
