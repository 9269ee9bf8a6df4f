"""
Workflow action model.

A parsed instruction is either a single WorkflowAction or a TestAction that
pairs a condition with a then-branch and an optional else-branch. Action
parameters are a tagged union of literal values, object references and
nested sub-actions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Tuple, Union

from ..models import WorkflowModifier, WorkflowResultType
from .result import WorkflowResult

if TYPE_CHECKING:
    from .step import ExecutionContext

logger = logging.getLogger(__name__)

ExecuteFn = Callable[[Any, List[Any], "ExecutionContext"], WorkflowResult]
TranslateFn = Callable[[Any, List[str]], str]


@dataclass(frozen=True)
class LiteralParam:
    value: Any

    def display(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ReferenceParam:
    """``[target|object.property]``: a property read from the run's objects."""
    target: str
    object_name: str
    property_name: str = ""

    def display(self) -> str:
        if self.property_name:
            return f"{self.object_name}.{self.property_name}"
        return self.object_name


@dataclass(frozen=True)
class NestedParam:
    """A comparison or date sub-action used as a parameter."""
    action: "WorkflowAction"

    def display(self) -> str:
        return self.action.source


Param = Union[LiteralParam, ReferenceParam, NestedParam]


@dataclass(frozen=True)
class WorkflowAction:
    """
    One named operation with its parameters.

    The bound execute and translate functions are not part of equality, so
    parsing the same text twice gives equal actions.
    """
    source: str
    modifier: WorkflowModifier
    params: Tuple[Param, ...] = ()
    negative: bool = False
    is_test_action: bool = False
    execute: Optional[ExecuteFn] = field(default=None, compare=False, repr=False)
    translate: Optional[TranslateFn] = field(default=None, compare=False, repr=False)

    def apply_negation(self, result: WorkflowResult) -> WorkflowResult:
        """Swap Complete and Fail for a negated action. Pure: reading twice is stable."""
        return result.negated() if self.negative else result

    def bind(self, execute: Optional[ExecuteFn], translate: Optional[TranslateFn] = None) -> "WorkflowAction":
        return replace(self, execute=execute, translate=translate or self.translate)

    def as_test(self) -> "WorkflowAction":
        return replace(self, is_test_action=True)

    def resolve_params(self, target: Any, context: "ExecutionContext") -> List[Any]:
        """Turn parameters into runtime values. Nested actions run eagerly."""
        values: List[Any] = []
        for param in self.params:
            if isinstance(param, LiteralParam):
                values.append(param.value)
            elif isinstance(param, ReferenceParam):
                values.append(context.resolve_reference(param, target))
            else:
                nested = param.action.run(target, context)
                if nested.value is not None:
                    values.append(nested.value)
                else:
                    values.append(nested.result == WorkflowResultType.COMPLETE)
        return values

    def run(self, target: Any, context: "ExecutionContext") -> WorkflowResult:
        """
        Execute the action against a target.

        The raw result is stored on the context; the returned result has the
        negation applied.
        """
        params = self.resolve_params(target, context)
        execute = self.execute or context.registry.resolve(self.modifier, self.source)
        raw = execute(target, params, context)
        context.record_action(self, raw)
        result = self.apply_negation(raw)
        if result.value is not None:
            context.value = result.value
        logger.debug(
            "Action %s returned %s", self.source, result.result.value,
            extra={"modifier": self.modifier.value, "negative": self.negative},
        )
        return result

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "modifier": self.modifier.value,
            "negative": self.negative,
            "is_test_action": self.is_test_action,
            "params": [p.display() for p in self.params],
        }


@dataclass(frozen=True)
class TestAction:
    """``condition => then [=> else]``."""
    __test__ = False

    source: str
    condition: WorkflowAction
    then_branch: WorkflowAction
    else_branch: Optional[WorkflowAction] = None

    def actions(self) -> List[WorkflowAction]:
        flattened = [self.condition, self.then_branch]
        if self.else_branch is not None:
            flattened.append(self.else_branch)
        return flattened

    def run(self, target: Any, context: "ExecutionContext") -> WorkflowResult:
        outcome = self.condition.run(target, context)
        if outcome.result == WorkflowResultType.COMPLETE:
            return self.then_branch.run(target, context)
        if outcome.result == WorkflowResultType.FAIL:
            if self.else_branch is not None:
                return self.else_branch.run(target, context)
            return outcome
        return outcome

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "condition": self.condition.to_dict(),
            "then": self.then_branch.to_dict(),
            "else": self.else_branch.to_dict() if self.else_branch else None,
        }


Node = Union[WorkflowAction, TestAction]
