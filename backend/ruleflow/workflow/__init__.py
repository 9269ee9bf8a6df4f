"""
Workflow engine for RuleFlow.

Parses chained workflow instructions, runs step trees against a target and
renders them in plain language.
"""

from .result import WorkflowResult
from .action import (
    LiteralParam,
    NestedParam,
    ReferenceParam,
    TestAction,
    WorkflowAction,
)
from .registry import ActionBinding, ActionRegistry, default_registry
from .parser import (
    WorkflowParser,
    WorkflowParseResult,
    default_workflow_parser,
    parse_nodes,
    parse_workflow,
)
from .step import ExecutionContext, Step
from .translator import StepTranslation, Translator
from .definition import Workflow, WorkflowRun

__all__ = [
    "WorkflowResult",
    "LiteralParam",
    "NestedParam",
    "ReferenceParam",
    "TestAction",
    "WorkflowAction",
    "ActionBinding",
    "ActionRegistry",
    "default_registry",
    "WorkflowParser",
    "WorkflowParseResult",
    "default_workflow_parser",
    "parse_nodes",
    "parse_workflow",
    "ExecutionContext",
    "Step",
    "StepTranslation",
    "Translator",
    "Workflow",
    "WorkflowRun",
]
