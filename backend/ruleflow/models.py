"""
RuleFlow model types.

Enumerations shared by the expression and workflow subsystems, plus the
Pydantic models used to describe workflow step trees in YAML files.
"""

from __future__ import annotations

from enum import Enum, IntFlag
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class Operand(str, Enum):
    """Base comparison applied by an expression."""

    NONE = "none"
    EQUALS = "="
    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_OR_EQUAL = ">="
    LESS_OR_EQUAL = "<="
    NOT_EQUAL = "!="


OPERAND_SYMBOLS = {
    "=": Operand.EQUALS,
    ">": Operand.GREATER_THAN,
    "<": Operand.LESS_THAN,
    ">=": Operand.GREATER_OR_EQUAL,
    "<=": Operand.LESS_OR_EQUAL,
    "!=": Operand.NOT_EQUAL,
    "<>": Operand.NOT_EQUAL,
}


class ExpressionModifier(IntFlag):
    """
    Additional constraints applied after the operand comparison.

    Members are evaluated in ascending value order.
    """

    NONE = 0
    UPPERCASE = 1
    LOWERCASE = 2
    CASE_INSENSITIVE = 4
    ROUND_UP = 8
    ROUND_DOWN = 16
    MAX = 32
    MIN = 64
    BETWEEN = 128
    EMAIL = 256
    REQUIRED = 512
    IN = 2048
    IN_DB = 4096


MODIFIER_CODES = {
    "u": ExpressionModifier.UPPERCASE,
    "l": ExpressionModifier.LOWERCASE,
    "i": ExpressionModifier.CASE_INSENSITIVE,
    "r": ExpressionModifier.REQUIRED,
    "e": ExpressionModifier.EMAIL,
    "b": ExpressionModifier.BETWEEN,
    "mx": ExpressionModifier.MAX,
    "mn": ExpressionModifier.MIN,
    "ru": ExpressionModifier.ROUND_UP,
    "rd": ExpressionModifier.ROUND_DOWN,
    "in": ExpressionModifier.IN,
    "indb": ExpressionModifier.IN_DB,
}


def modifier_order() -> List[ExpressionModifier]:
    """Single modifier flags in evaluation order."""
    return sorted(
        (m for m in ExpressionModifier if m is not ExpressionModifier.NONE),
        key=lambda m: m.value,
    )


class ExpressionFlag(IntFlag):
    """Trailing flags of a bracket expression."""

    NONE = 0
    FORCE = 1


FLAG_CODES = {
    "f": ExpressionFlag.FORCE,
}


class JoinType(str, Enum):
    AND = "&&"
    OR = "||"


class ValidationResultType(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    FAIL_WITH_MESSAGE = "fail_with_message"


class ValueKind(str, Enum):
    """Category of a runtime value, used to pick comparison semantics."""

    TEXT = "text"
    INTEGER = "integer"
    DECIMAL = "decimal"
    DATE = "date"
    EMPTY = "empty"
    OTHER = "other"


class WorkflowModifier(str, Enum):
    """Named operations available in workflow instructions."""

    IFTTT = "IFTTT"
    ATTACH = "ATTACH"
    SET = "SET"
    CHECK = "CHECK"
    GET = "GET"
    EMAIL = "EMAIL"
    WAIT = "WAIT"
    WF = "WF"
    ZIP = "ZIP"
    EACH = "EACH"
    LIST = "LIST"
    CONVERTTO = "CONVERTTO"
    GOTO = "GOTO"
    END = "END"
    SWITCH = "SWITCH"
    GT = "GT"
    LT = "LT"
    EQ = "EQ"
    GTE = "GTE"
    LTE = "LTE"
    BW = "BW"
    LEN = "LEN"
    IN = "IN"
    TODAY = "TODAY"
    EOM = "EOM"
    EOQ = "EOQ"
    EOFY = "EOFY"
    LWDOM = "LWDOM"
    LWDOQ = "LWDOQ"
    LWDOFY = "LWDOFY"
    FWDOM = "FWDOM"
    FWDOQ = "FWDOQ"
    FWDOFY = "FWDOFY"
    NONE = "NONE"

    @classmethod
    def from_name(cls, name: str) -> Optional["WorkflowModifier"]:
        """Resolve an action name case-insensitively, or None if unknown."""
        try:
            return cls(name.strip().upper())
        except ValueError:
            return None


# Actions that may appear as nested parameters of another action.
SUB_MODIFIERS = frozenset({
    WorkflowModifier.GT,
    WorkflowModifier.LT,
    WorkflowModifier.EQ,
    WorkflowModifier.GTE,
    WorkflowModifier.LTE,
    WorkflowModifier.BW,
    WorkflowModifier.LEN,
    WorkflowModifier.IN,
    WorkflowModifier.TODAY,
    WorkflowModifier.EOM,
    WorkflowModifier.EOQ,
    WorkflowModifier.EOFY,
    WorkflowModifier.LWDOM,
    WorkflowModifier.LWDOQ,
    WorkflowModifier.LWDOFY,
    WorkflowModifier.FWDOM,
    WorkflowModifier.FWDOQ,
    WorkflowModifier.FWDOFY,
})


class WorkflowResultType(str, Enum):
    NO_ACTION = "No Action Needed"
    NEW = "New"
    PENDING = "Pending"
    ACTIVE = "Active"
    COMPLETE = "Complete"
    FAIL = "Failed"

    @property
    def code(self) -> int:
        return list(WorkflowResultType).index(self)


class CascadeType(str, Enum):
    """How a parent step derives its result from its children."""

    ANY_ONE_FAILS_PARENT = "any_one_fails_parent"
    ANY_ONE_COMPLETES_PARENT = "any_one_completes_parent"
    ALL_MUST_COMPLETE_PARENT = "all_must_complete_parent"
    ALL_MUST_FAIL_PARENT = "all_must_fail_parent"


class StepState(str, Enum):
    NOT_RUN = "not_run"
    RUNNING = "running"
    COMPLETE = "complete"
    FAIL = "fail"


class StepDefinition(BaseModel):
    """A step as written in a workflow YAML file."""

    expression: str = Field(default="", description="Workflow instruction text")
    execution_order: int = Field(default=0, ge=0)
    cascade: CascadeType = CascadeType.ALL_MUST_COMPLETE_PARENT
    description: Optional[str] = None
    steps: List["StepDefinition"] = Field(default_factory=list)

    @field_validator("cascade", mode="before")
    @classmethod
    def _normalize_cascade(cls, value):
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value


class WorkflowDefinition(BaseModel):
    """A named workflow: an ordered list of top level step trees."""

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    steps: List[StepDefinition] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name_is_kebab_case(cls, value: str) -> str:
        if not value.replace("-", "").replace("_", "").isalnum():
            raise ValueError("workflow name must be kebab-case or snake_case")
        return value


StepDefinition.model_rebuild()
