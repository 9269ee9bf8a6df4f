"""
Workflow container and YAML loading.

A workflow file looks like:

    name: invoice-approval
    description: Approve small invoices automatically
    steps:
      - expression: "gt(0)"
        cascade: all_must_complete_parent
        steps:
          - expression: "lte(1000) => SET(approved, true)"
            execution_order: 1
          - expression: "END()"
            execution_order: 2
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from ..config import RuleFlowSettings
from ..errors import ConfigurationError, WorkflowError
from ..models import WorkflowDefinition, WorkflowResultType
from .parser import WorkflowParser
from .registry import ActionRegistry
from .result import WorkflowResult
from .step import ExecutionContext, Step
from .translator import StepTranslation, Translator

logger = logging.getLogger(__name__)


@dataclass
class WorkflowRun:
    """Result of running every top level step of a workflow."""
    result: WorkflowResult
    step_results: List[WorkflowResult] = field(default_factory=list)
    context: Optional[ExecutionContext] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.result.to_dict()
        data["steps"] = [r.to_dict() for r in self.step_results]
        if self.context is not None and self.context.variables:
            data["variables"] = {k: str(v) for k, v in self.context.variables.items()}
        return data


class Workflow:
    """A named, ordered list of top level steps."""

    def __init__(
        self,
        name: str,
        steps: Optional[List[Step]] = None,
        description: Optional[str] = None,
        settings: Optional[RuleFlowSettings] = None,
        registry: Optional[ActionRegistry] = None,
    ):
        self.name = name
        self.description = description
        self.settings = settings or RuleFlowSettings()
        self.registry = registry
        self.steps: List[Step] = []
        for step in steps or []:
            self.add_step(step)

    def add_step(self, step: Step) -> Step:
        self.steps.append(step)
        return step

    def add_steps(self, steps: List[Step]) -> None:
        for step in steps:
            self.add_step(step)

    def new_context(self, **kwargs) -> ExecutionContext:
        return ExecutionContext(settings=self.settings, registry=self.registry, **kwargs)

    def run(
        self,
        target: Any = None,
        context: Optional[ExecutionContext] = None,
        wrap_errors: bool = False,
    ) -> WorkflowRun:
        """
        Run the top level steps in order.

        The workflow completes when no top level step fails. With
        ``wrap_errors`` an exception raised by an action is logged and turned
        into a failed result carrying a WorkflowError.
        """
        context = context or self.new_context()
        results: List[WorkflowResult] = []
        for step in sorted(self.steps, key=lambda s: s.execution_order):
            if context.stopped:
                break
            if wrap_errors:
                try:
                    result = step.execute(target, context)
                except WorkflowError as e:
                    logger.warning("Workflow %s step %r failed: %s", self.name, step.expression, e)
                    result = WorkflowResult.fail(e)
                except Exception as e:
                    logger.exception("Workflow %s step %r raised", self.name, step.expression)
                    error = WorkflowError(str(e), step.expression)
                    error.__cause__ = e
                    result = WorkflowResult.fail(error)
                context.set_result(step, result)
            else:
                result = step.execute(target, context)
            results.append(result)

        if not results:
            overall = WorkflowResult(WorkflowResultType.NO_ACTION)
        elif any(r.result == WorkflowResultType.FAIL for r in results):
            failed = next(r for r in results if r.result == WorkflowResultType.FAIL)
            overall = WorkflowResult.fail(failed.exception, value=context.value)
        else:
            overall = WorkflowResult.complete(context.value)
        logger.info("Workflow %s finished: %s", self.name, overall.result.value)
        return WorkflowRun(overall, results, context)

    def wordify(
        self,
        translator: Optional[Translator] = None,
        context: Optional[ExecutionContext] = None,
    ) -> List[StepTranslation]:
        translator = translator or Translator()
        return [
            translator.translate_step(step, context)
            for step in sorted(self.steps, key=lambda s: s.execution_order)
        ]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        if self.description:
            data["description"] = self.description
        data["steps"] = [s.to_dict() for s in self.steps]
        return data

    @classmethod
    def from_definition(
        cls,
        definition: WorkflowDefinition,
        settings: Optional[RuleFlowSettings] = None,
        registry: Optional[ActionRegistry] = None,
    ) -> "Workflow":
        settings = settings or RuleFlowSettings()
        parser = WorkflowParser(registry=registry, settings=settings)
        return cls(
            name=definition.name,
            description=definition.description,
            steps=[Step.from_definition(s, parser) for s in definition.steps],
            settings=settings,
            registry=parser.registry,
        )

    @classmethod
    def from_yaml(
        cls,
        yaml_content: str,
        settings: Optional[RuleFlowSettings] = None,
        registry: Optional[ActionRegistry] = None,
    ) -> "Workflow":
        """Load a workflow from YAML content."""
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid workflow YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError("Workflow YAML must be a mapping")
        try:
            definition = WorkflowDefinition(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid workflow definition: {e}") from e
        return cls.from_definition(definition, settings, registry)

    @classmethod
    def from_file(
        cls,
        path: Path,
        settings: Optional[RuleFlowSettings] = None,
        registry: Optional[ActionRegistry] = None,
    ) -> "Workflow":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_yaml(f.read(), settings, registry)
