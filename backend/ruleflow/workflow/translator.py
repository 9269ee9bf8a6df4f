"""
Plain language rendering of workflow steps.

Each action name has a sentence template with ``{}`` slots. When a template
has one more slot than the action has parameters, the first slot names the
step target.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..models import WorkflowModifier, WorkflowResultType
from .action import NestedParam, TestAction, WorkflowAction

if TYPE_CHECKING:
    from .step import ExecutionContext, Step

TEMPLATES: Dict[WorkflowModifier, str] = {
    WorkflowModifier.IFTTT: "If {} Then {}",
    WorkflowModifier.ATTACH: "Attach",
    WorkflowModifier.SET: "Set {} to {}",
    WorkflowModifier.CHECK: "Check {} is {}",
    WorkflowModifier.GET: "Get {}",
    WorkflowModifier.EMAIL: "Send Email",
    WorkflowModifier.WAIT: "Wait for",
    WorkflowModifier.WF: "Execute Workflow",
    WorkflowModifier.ZIP: "Zip Files",
    WorkflowModifier.EACH: "For Each",
    WorkflowModifier.LIST: "List",
    WorkflowModifier.CONVERTTO: "Convert {} to {}",
    WorkflowModifier.GOTO: "Go to step",
    WorkflowModifier.END: "End the workflow",
    WorkflowModifier.SWITCH: "Apply the right case depending on {} as the value",
    WorkflowModifier.GT: "If {} is greater than {}",
    WorkflowModifier.LT: "If {} is less than {}",
    WorkflowModifier.EQ: "If {} is equal to {}",
    WorkflowModifier.GTE: "If {} is greater than or equal to {}",
    WorkflowModifier.LTE: "If {} is less than or equal to {}",
    WorkflowModifier.BW: "If {} is between {} and {}",
    WorkflowModifier.LEN: "If {} has a length at least {}",
    WorkflowModifier.IN: "If {} is one of these {}",
    WorkflowModifier.TODAY: "Today",
    WorkflowModifier.EOM: "End of the Month",
    WorkflowModifier.EOQ: "End of the Quarter",
    WorkflowModifier.EOFY: "End of the Fiscal Year",
    WorkflowModifier.LWDOM: "Last Working Day of the Month",
    WorkflowModifier.LWDOQ: "Last Working Day of the Quarter",
    WorkflowModifier.LWDOFY: "Last Working Day of the Fiscal Year",
    WorkflowModifier.FWDOM: "First Working Day of the Month",
    WorkflowModifier.FWDOQ: "First Working Day of the Quarter",
    WorkflowModifier.FWDOFY: "First Working Day of the Fiscal Year",
}

# Templates that read better with a list of every parameter in one slot.
_LIST_SLOT = {WorkflowModifier.IN, WorkflowModifier.LIST}


def _state_name(state: WorkflowResultType) -> str:
    return "".join(part.capitalize() for part in state.name.split("_"))


@dataclass
class StepTranslation:
    """Translation of one step, with its children nested beneath it."""
    expression: str = ""
    text: str = ""
    state: WorkflowResultType = WorkflowResultType.NEW
    translations: List["StepTranslation"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expression": self.expression,
            "translationText": self.text,
            "translationState": _state_name(self.state),
            "translationStateValue": self.state.code,
            "translations": [t.to_dict() for t in self.translations],
        }


class Translator:
    """Renders actions and steps using the sentence templates."""

    def __init__(self, templates: Optional[Dict[WorkflowModifier, str]] = None, subject: str = "the value"):
        self.templates = dict(TEMPLATES)
        if templates:
            self.templates.update(templates)
        self.subject = subject

    def render(self, modifier: WorkflowModifier, params: List[str], subject: Optional[str] = None) -> str:
        template = self.templates.get(modifier, modifier.value)
        slots = template.count("{}")
        if slots == 0:
            return f"{template} {', '.join(params)}".strip() if params else template

        values = list(params)
        if modifier in _LIST_SLOT:
            values = [", ".join(values)] if values else []
        if len(values) < slots:
            values = [subject or self.subject] + values
        if len(values) > slots:
            values = values[:slots - 1] + [", ".join(values[slots - 1:])]
        while len(values) < slots:
            values.append("?")
        return template.format(*values)

    def translate_action(self, action: WorkflowAction, target: Any = None) -> str:
        params = [
            self.translate_action(p.action) if isinstance(p, NestedParam) else p.display()
            for p in action.params
        ]
        if action.translate is not None:
            text = action.translate(target, params)
        else:
            subject = None if target is None else str(target)
            text = self.render(action.modifier, params, subject)
        return f"NOT {text}" if action.negative else text

    def translate_step(self, step: "Step", context: Optional["ExecutionContext"] = None) -> StepTranslation:
        translation = StepTranslation(expression=step.expression)
        if context is not None:
            result = context.result_of(step)
            if result is not None:
                translation.state = result.result

        if step.description:
            translation.text = step.description
        else:
            texts: List[str] = []
            for node in step.nodes:
                if isinstance(node, TestAction):
                    texts.append(self.translate_action(node.condition))
                    translation.translations.append(
                        StepTranslation(node.then_branch.source, self.translate_action(node.then_branch))
                    )
                    if node.else_branch is not None:
                        translation.translations.append(
                            StepTranslation(
                                node.else_branch.source,
                                f"Otherwise {self.translate_action(node.else_branch)}",
                            )
                        )
                else:
                    texts.append(self.translate_action(node))
            translation.text = "; ".join(texts)

        for child in step.ordered_steps():
            translation.translations.append(self.translate_step(child, context))
        return translation
