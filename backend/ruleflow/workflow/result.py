"""Outcome of running a workflow action or step."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from ..errors import WorkflowError
from ..models import WorkflowResultType


@dataclass(frozen=True)
class WorkflowResult:
    result: WorkflowResultType = WorkflowResultType.NEW
    exception: Optional[WorkflowError] = None
    value: Any = None

    @classmethod
    def complete(cls, value: Any = None) -> "WorkflowResult":
        return cls(WorkflowResultType.COMPLETE, value=value)

    @classmethod
    def fail(cls, exception: Optional[WorkflowError] = None, value: Any = None) -> "WorkflowResult":
        return cls(WorkflowResultType.FAIL, exception=exception, value=value)

    @classmethod
    def of(cls, passed: bool, value: Any = None) -> "WorkflowResult":
        return cls.complete(value) if passed else cls.fail(value=value)

    @property
    def is_complete(self) -> bool:
        return self.result == WorkflowResultType.COMPLETE

    @property
    def is_fail(self) -> bool:
        return self.result == WorkflowResultType.FAIL

    def negated(self) -> "WorkflowResult":
        """Swap Complete and Fail; other kinds are returned unchanged."""
        if self.result == WorkflowResultType.COMPLETE:
            return replace(self, result=WorkflowResultType.FAIL)
        if self.result == WorkflowResultType.FAIL:
            return replace(self, result=WorkflowResultType.COMPLETE)
        return self

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"result": self.result.value, "code": self.result.code}
        if self.value is not None:
            data["value"] = self.value if isinstance(self.value, (str, int, float, bool, list)) else str(self.value)
        if self.exception is not None:
            data["exception"] = str(self.exception)
        return data
