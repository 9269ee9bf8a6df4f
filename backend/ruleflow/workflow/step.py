"""
Workflow step engine.

A Step owns a parsed instruction and an ordered set of child steps. Running a
step records its state and result on an ExecutionContext, never on the step
itself, so the same step tree can be run many times.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from ..config import RuleFlowSettings
from ..errors import InvalidModelError, NotFoundError
from ..models import CascadeType, StepDefinition, StepState, WorkflowResultType
from .action import Node, ReferenceParam, TestAction, WorkflowAction
from .parser import WorkflowParser, default_workflow_parser, flatten
from .registry import ActionRegistry, default_registry
from .result import WorkflowResult

if TYPE_CHECKING:
    from .translator import StepTranslation, Translator

logger = logging.getLogger(__name__)

_SCALARS = (str, int, float, bool, date)


class ExecutionContext:
    """
    Mutable state of one workflow run.

    Holds step states and results, the raw result of every action run, the
    variables used by SET/GET/CHECK, named objects for references, the last
    produced value and the clock.
    """

    def __init__(
        self,
        settings: Optional[RuleFlowSettings] = None,
        registry: Optional[ActionRegistry] = None,
        variables: Optional[Dict[str, Any]] = None,
        objects: Optional[Dict[str, Any]] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.settings = settings or RuleFlowSettings()
        self.registry = registry if registry is not None else default_registry()
        self.variables: Dict[str, Any] = dict(variables or {})
        self.objects: Dict[str, Any] = dict(objects or {})
        self.value: Any = None
        self.stopped = False
        self._today = today or date.today
        self._states: Dict[int, StepState] = {}
        self._results: Dict[int, WorkflowResult] = {}
        self._action_results: Dict[int, WorkflowResult] = {}
        # keep keyed objects alive so ids are not reused during the run
        self._keep: Dict[int, Any] = {}

    def today(self) -> date:
        return self._today()

    def stop(self) -> None:
        self.stopped = True

    # Steps

    def state_of(self, step: "Step") -> StepState:
        return self._states.get(id(step), StepState.NOT_RUN)

    def result_of(self, step: "Step") -> Optional[WorkflowResult]:
        return self._results.get(id(step))

    def set_state(self, step: "Step", state: StepState) -> None:
        self._keep[id(step)] = step
        self._states[id(step)] = state

    def set_result(self, step: "Step", result: WorkflowResult) -> None:
        self._keep[id(step)] = step
        self._results[id(step)] = result

    # Actions

    def record_action(self, action: WorkflowAction, raw: WorkflowResult) -> None:
        self._keep[id(action)] = action
        self._action_results[id(action)] = raw

    def action_result(self, action: WorkflowAction) -> Optional[WorkflowResult]:
        """Last result of an action with its negation applied."""
        raw = self._action_results.get(id(action))
        if raw is None:
            return None
        return action.apply_negation(raw)

    # References

    def resolve_reference(self, param: ReferenceParam, target: Any) -> Any:
        """
        Read ``[target|object.property]``.

        ``this`` refers to the step target, any other name to a named object
        or variable. The object part selects a member of that value, or the
        value itself when it names the value's type.
        """
        name = param.target.strip()
        if name.lower() == "this":
            base = target
        elif name in self.objects:
            base = self.objects[name]
        elif name in self.variables:
            base = self.variables[name]
        else:
            raise NotFoundError(f"Reference target '{name}' was not found")

        base = self._member(base, param.object_name, allow_type_name=True)
        if not param.property_name:
            return base
        return self._member(base, param.property_name, allow_type_name=False)

    @staticmethod
    def _member(base: Any, name: str, allow_type_name: bool) -> Any:
        if isinstance(base, Mapping):
            if name in base:
                return base[name]
            raise NotFoundError(f"'{name}' was not found")
        if base is None or isinstance(base, _SCALARS):
            raise InvalidModelError(
                f"Cannot read '{name}' from a {type(base).__name__} value",
                incorrect_model=type(base),
            )
        if allow_type_name and type(base).__name__.lower() == name.lower():
            return base
        if hasattr(base, name):
            return getattr(base, name)
        raise NotFoundError(f"'{name}' was not found on {type(base).__name__}")


class Step:
    """
    One workflow step: an instruction plus child steps.

    Children run only when the step's own instruction completes; the parent
    result is then derived from the children through the cascade policy.
    """

    def __init__(
        self,
        expression: str = "",
        execution_order: int = 0,
        cascade: CascadeType = CascadeType.ALL_MUST_COMPLETE_PARENT,
        description: Optional[str] = None,
        steps: Optional[List["Step"]] = None,
        nodes: Optional[List[Node]] = None,
        parser: Optional[WorkflowParser] = None,
    ):
        self.expression = expression
        self.execution_order = execution_order
        self.cascade = CascadeType(cascade)
        self.description = description
        if nodes is not None:
            self.nodes: List[Node] = list(nodes)
        elif expression.strip():
            self.nodes = (parser or default_workflow_parser()).parse_nodes(expression)
        else:
            self.nodes = []
        self.steps: List[Step] = []
        self.parent: Optional[Step] = None
        for child in steps or []:
            self.add_step(child)

    @classmethod
    def from_definition(cls, definition: StepDefinition, parser: Optional[WorkflowParser] = None) -> "Step":
        return cls(
            expression=definition.expression,
            execution_order=definition.execution_order,
            cascade=definition.cascade,
            description=definition.description,
            steps=[cls.from_definition(child, parser) for child in definition.steps],
            parser=parser,
        )

    @property
    def actions(self) -> List[WorkflowAction]:
        return flatten(self.nodes)

    def add_step(self, step: "Step") -> "Step":
        """Attach a child step. A step belongs to at most one parent."""
        if step is self or step.parent is not None:
            raise ValueError("Step already belongs to a parent")
        ancestor = self.parent
        while ancestor is not None:
            if ancestor is step:
                raise ValueError("Step cannot be added beneath itself")
            ancestor = ancestor.parent
        step.parent = self
        self.steps.append(step)
        return step

    def ordered_steps(self) -> List["Step"]:
        return sorted(self.steps, key=lambda s: s.execution_order)

    def execute(self, target: Any = None, context: Optional[ExecutionContext] = None) -> WorkflowResult:
        """
        Run this step and, when it completes, its children.

        Returns:
            The step's overall result, also stored on the context.
        """
        if context is None:
            context = ExecutionContext()
        context.set_state(self, StepState.RUNNING)

        overall = self._run_nodes(target, context)

        if overall.result == WorkflowResultType.COMPLETE and self.steps:
            for child in self.ordered_steps():
                if context.stopped:
                    break
                child.execute(target, context)
            overall = WorkflowResult(
                self.determine_overall_result(context, default=overall.result),
                value=overall.value,
            )

        context.set_result(self, overall)
        context.set_state(
            self,
            StepState.COMPLETE if overall.result == WorkflowResultType.COMPLETE else StepState.FAIL,
        )
        logger.info(
            "Step %r finished: %s", self.expression, overall.result.value,
            extra={"execution_order": self.execution_order, "cascade": self.cascade.value},
        )
        return overall

    def _run_nodes(self, target: Any, context: ExecutionContext) -> WorkflowResult:
        if not self.nodes:
            return WorkflowResult.complete()
        overall = WorkflowResult.fail()
        for node in self.nodes:
            if context.stopped:
                break
            if isinstance(node, TestAction):
                # a test ends the instruction
                return node.run(target, context)
            overall = node.run(target, context)
            if overall.result == WorkflowResultType.FAIL:
                return overall
        return overall

    def determine_overall_result(
        self,
        context: ExecutionContext,
        cascade: Optional[CascadeType] = None,
        default: WorkflowResultType = WorkflowResultType.NO_ACTION,
    ) -> WorkflowResultType:
        """
        Combine the results of the children that ran.

        With no child results the step's own result, or ``default``, is
        returned.
        """
        cascade = cascade or self.cascade
        results = [
            r.result for r in (context.result_of(c) for c in self.steps) if r is not None
        ]
        if not results:
            own = context.result_of(self)
            return own.result if own is not None else default

        complete = WorkflowResultType.COMPLETE
        fail = WorkflowResultType.FAIL
        if cascade == CascadeType.ANY_ONE_FAILS_PARENT:
            return fail if any(r == fail for r in results) else complete
        if cascade == CascadeType.ANY_ONE_COMPLETES_PARENT:
            return complete if any(r == complete for r in results) else fail
        if cascade == CascadeType.ALL_MUST_FAIL_PARENT:
            return complete if all(r == fail for r in results) else fail
        return complete if all(r == complete for r in results) else fail

    def wordify(
        self,
        translator: Optional["Translator"] = None,
        context: Optional[ExecutionContext] = None,
    ) -> "StepTranslation":
        """Describe this step and its children in plain language."""
        from .translator import Translator
        return (translator or Translator()).translate_step(self, context)

    def walk(self):
        """Yield this step and all descendants in execution order."""
        yield self
        for child in self.ordered_steps():
            yield from child.walk()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "expression": self.expression,
            "execution_order": self.execution_order,
            "cascade": self.cascade.value,
        }
        if self.description:
            data["description"] = self.description
        if self.steps:
            data["steps"] = [s.to_dict() for s in self.ordered_steps()]
        return data

    def __repr__(self) -> str:
        return f"Step({self.expression!r}, order={self.execution_order}, children={len(self.steps)})"
