"""
Expression engine for RuleFlow.

Provides compiling and testing of bracket validation expressions.
"""

from .expression import Expression, ExpressionGroup
from .parser import ExpressionParser, ParseResult, compile_expression, default_expression_parser
from .evaluator import (
    Evaluation,
    Evaluator,
    ExpressionFailure,
    LookupProvider,
    ValidationResult,
    default_evaluator,
    set_default_evaluator,
)

__all__ = [
    "Expression",
    "ExpressionGroup",
    "ExpressionParser",
    "ParseResult",
    "compile_expression",
    "default_expression_parser",
    "Evaluation",
    "Evaluator",
    "ExpressionFailure",
    "LookupProvider",
    "ValidationResult",
    "default_evaluator",
    "set_default_evaluator",
]
