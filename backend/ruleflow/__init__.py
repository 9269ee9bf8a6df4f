"""
RuleFlow: validation expressions and workflow instructions.

This package compiles bracket validation expressions such as
``[>"5"|mx(10)]`` and chained workflow instructions such as
``gt(5) => SET(1)``, tests values against them and runs workflow step
trees with cascading results.
"""

from .config import RuleFlowSettings
from .errors import (
    ConfigurationError,
    ExpressionSyntaxError,
    LookupNotConfiguredError,
    MissingArgumentError,
    ModifierValueError,
    ParseError,
    RuleFlowError,
    WorkflowError,
    WorkflowSyntaxError,
)
from .log import configure_logging
from .logic import (
    Evaluation,
    Evaluator,
    Expression,
    ExpressionParser,
    compile_expression,
)
from .validator import RecordValidationResult, RuleSet
from .workflow import (
    ActionRegistry,
    Step,
    Workflow,
    WorkflowResult,
    parse_workflow,
)

__version__ = "1.0.0"
__all__ = [
    "RuleFlowSettings",
    "ConfigurationError",
    "ExpressionSyntaxError",
    "LookupNotConfiguredError",
    "MissingArgumentError",
    "ModifierValueError",
    "ParseError",
    "RuleFlowError",
    "WorkflowError",
    "WorkflowSyntaxError",
    "configure_logging",
    "Evaluation",
    "Evaluator",
    "Expression",
    "ExpressionParser",
    "compile_expression",
    "RecordValidationResult",
    "RuleSet",
    "ActionRegistry",
    "Step",
    "Workflow",
    "WorkflowResult",
    "parse_workflow",
]
