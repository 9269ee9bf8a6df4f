"""
RuleFlow errors.

Parse problems are reported as ParseError records; the exception classes
below are raised for conditions a caller cannot treat as plain data.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .models import WorkflowResultType


@dataclass(frozen=True)
class ParseError:
    """Represents a parsing error."""
    message: str
    position: int
    expression: str

    @property
    def fragment(self) -> str:
        """The offending part of the source text."""
        return self.expression[self.position:self.position + 20]

    def __str__(self) -> str:
        return f"{self.message} at position {self.position} in {self.expression!r}"


class RuleFlowError(Exception):
    """Base class for all RuleFlow exceptions."""


class ConfigurationError(RuleFlowError):
    """Settings or message files could not be loaded."""


class ExpressionSyntaxError(RuleFlowError):
    """A bracket expression could not be compiled."""

    def __init__(self, error: ParseError):
        super().__init__(str(error))
        self.error = error


class WorkflowSyntaxError(RuleFlowError):
    """A workflow instruction could not be parsed."""

    def __init__(self, error: ParseError):
        super().__init__(str(error))
        self.error = error


class MissingArgumentError(RuleFlowError):
    """A modifier or action was used without its required arguments."""

    def __init__(self, name: str, message: Optional[str] = None):
        super().__init__(message or f"The {name} modifier requires an argument.")
        self.name = name


class ModifierValueError(RuleFlowError):
    """A modifier was applied to a value of the wrong kind."""

    def __init__(self, name: str, value: Any, expected: str):
        super().__init__(
            f"The {name} modifier must be applied to {expected} values only, got {type(value).__name__}."
        )
        self.name = name
        self.value = value


class LookupNotConfiguredError(RuleFlowError):
    """The InDB modifier was evaluated without a lookup provider."""


class WorkflowError(RuleFlowError):
    """A workflow action failed while executing."""

    result_type = WorkflowResultType.FAIL

    def __init__(self, message: str, expression: Optional[str] = None):
        super().__init__(message)
        self.expression = expression


class ActionNotBoundError(WorkflowError):
    """The action has no execution function registered."""


class NotFoundError(WorkflowError):
    """A referenced variable, object or step does not exist."""


class InvalidModelError(WorkflowError):
    """A reference resolved to an object of an unexpected type."""

    def __init__(self, message: str, incorrect_model: Optional[type] = None):
        super().__init__(message)
        self.incorrect_model = incorrect_model
