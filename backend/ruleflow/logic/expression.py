"""
Compiled expression trees.

An Expression is produced by the ExpressionParser and never changes after
construction. All per-test state lives in an Evaluation, so a single tree can
be tested from several threads at once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Tuple

from ..models import ExpressionFlag, ExpressionModifier, JoinType, Operand, modifier_order

if TYPE_CHECKING:
    from .evaluator import Evaluation

THIS = "this"


@dataclass(frozen=True)
class ModifierRule:
    """A modifier that takes no parameters."""
    modifier: ExpressionModifier

    @property
    def parameters(self) -> Tuple[Any, ...]:
        return ()


@dataclass(frozen=True)
class LimitRule(ModifierRule):
    """Max / Min: text length or numeric magnitude limit."""
    limit: Decimal

    @property
    def parameters(self) -> Tuple[Any, ...]:
        return (self.limit,)


@dataclass(frozen=True)
class RangeRule(ModifierRule):
    """Between: inclusive bounds, coerced to the value's kind when tested."""
    low: str
    high: str

    @property
    def parameters(self) -> Tuple[Any, ...]:
        return (self.low, self.high)


@dataclass(frozen=True)
class MembershipRule(ModifierRule):
    values: Tuple[str, ...]

    @property
    def parameters(self) -> Tuple[Any, ...]:
        return self.values


@dataclass(frozen=True)
class LookupRule(ModifierRule):
    """InDB: membership in a column of an external table."""
    table: str
    column: str
    filters: Tuple[Tuple[str, str], ...] = ()

    @property
    def parameters(self) -> Tuple[Any, ...]:
        return (f"{self.table}.{self.column}",) + tuple(f"{k}={v}" for k, v in self.filters)

    def filter_map(self) -> Dict[str, str]:
        return dict(self.filters)


@dataclass(frozen=True)
class Expression:
    """
    A compiled validation expression.

    Leaves carry an operand, target and modifiers. Interior nodes carry child
    groups; their own operand and modifiers are not used.
    """
    source: str
    target: Any = THIS
    operand: Operand = Operand.EQUALS
    modifiers: ExpressionModifier = ExpressionModifier.NONE
    rules: Tuple[ModifierRule, ...] = ()
    flags: ExpressionFlag = ExpressionFlag.NONE
    groups: Tuple["ExpressionGroup", ...] = ()
    position: int = 0

    @property
    def is_this(self) -> bool:
        return isinstance(self.target, str) and self.target.strip().lower() == THIS

    @property
    def has_groups(self) -> bool:
        return len(self.groups) > 0

    @property
    def force(self) -> bool:
        return bool(self.flags & ExpressionFlag.FORCE)

    @property
    def modifier_parameters(self) -> List[Any]:
        params: List[Any] = []
        for rule in self.rules:
            params.extend(rule.parameters)
        return params

    def has_modifier(self, modifier: ExpressionModifier) -> bool:
        return bool(self.modifiers & modifier)

    def rule_for(self, modifier: ExpressionModifier) -> Optional[ModifierRule]:
        for rule in self.rules:
            if rule.modifier == modifier:
                return rule
        return None

    def leaves(self) -> Iterator["Expression"]:
        """Yield every leaf expression, depth first."""
        if not self.has_groups:
            yield self
            return
        for group in self.groups:
            for member in group.expressions:
                yield from member.leaves()

    def test(self, value: Any, evaluation: Optional["Evaluation"] = None) -> bool:
        """Test a value using the default evaluator."""
        from .evaluator import default_evaluator
        return default_evaluator().test(self, value, evaluation)

    def evaluate(self, value: Any) -> "Evaluation":
        """Test a value and return the full evaluation record."""
        from .evaluator import default_evaluator
        return default_evaluator().evaluate(self, value)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"source": self.source}
        if self.has_groups:
            data["groups"] = [g.to_dict() for g in self.groups]
            return data
        data["operand"] = self.operand.value
        data["target"] = self.target if isinstance(self.target, (str, int)) else str(self.target)
        data["modifiers"] = [m.name for m in modifier_order() if self.has_modifier(m)]
        data["parameters"] = [str(p) for p in self.modifier_parameters]
        if self.force:
            data["force"] = True
        return data


@dataclass(frozen=True)
class ExpressionGroup:
    """Expressions combined with a single join kind."""
    join: JoinType = JoinType.AND
    expressions: Tuple[Expression, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "join": self.join.name,
            "expressions": [e.to_dict() for e in self.expressions],
        }
