"""
Tests for plain language rendering of workflow steps.
"""

from backend.ruleflow.models import WorkflowModifier
from backend.ruleflow.workflow import (
    ExecutionContext,
    Step,
    Translator,
    WorkflowParser,
    default_registry,
)


def translate(text, target=None, parser=None):
    action = (parser or WorkflowParser()).parse_workflow(text)[0]
    return Translator().translate_action(action, target)


class TestTranslateAction:
    """Tests for single action sentences."""

    def test_comparison(self):
        """Test the subject fills the first slot."""
        assert translate("gt(5)") == "If the value is greater than 5"
        assert translate("lte(5)") == "If the value is less than or equal to 5"

    def test_target_as_subject(self):
        """Test a known target replaces the default subject."""
        assert translate("eq(5)", target=10) == "If 10 is equal to 5"

    def test_two_param_comparison(self):
        """Test comparisons that name both sides."""
        assert translate("eq(1, 2)") == "If 1 is equal to 2"
        assert translate("bw(1, 10)") == "If the value is between 1 and 10"

    def test_negated(self):
        """Test negated actions are prefixed with NOT."""
        assert translate("!gt(5)") == "NOT If the value is greater than 5"

    def test_list_slot(self):
        """Test in() lists every parameter in one slot."""
        assert translate("in(a, b, c)") == "If the value is one of these a, b, c"

    def test_action_templates(self):
        """Test templates without a subject."""
        assert translate("SET(total, 10)") == "Set total to 10"
        assert translate("END()") == "End the workflow"
        assert translate("EMAIL(ops)") == "Send Email ops"

    def test_nested_param(self):
        """Test nested actions are rendered in place."""
        assert translate("gt(EOM())") == "If the value is greater than End of the Month"

    def test_reference_param(self):
        """Test a reference renders as object.property."""
        assert translate("EQ([this|order.total], 5)") == "If order.total is equal to 5"

    def test_custom_subject_and_template(self):
        """Test overriding the subject and a template."""
        translator = Translator({WorkflowModifier.GT: "{} exceeds {}"}, subject="the amount")
        action = WorkflowParser().parse_workflow("gt(5)")[0]
        assert translator.translate_action(action) == "the amount exceeds 5"

    def test_registered_translate_function(self):
        """Test a translate function bound in the registry wins."""
        registry = default_registry().copy()
        registry.register("EMAIL", translate=lambda target, params: f"Email {params[0]}")
        assert translate("EMAIL(ops)", parser=WorkflowParser(registry=registry)) == "Email ops"


class TestTranslateStep:
    """Tests for step translations."""

    def test_test_action_branches(self):
        """Test a test action renders its branches as nested translations."""
        translation = Step("gt(5) => SET(flag, 1) => SET(flag, 0)").wordify()
        assert translation.text == "If the value is greater than 5"
        assert [t.text for t in translation.translations] == ["Set flag to 1", "Otherwise Set flag to 0"]

    def test_description_replaces_text(self):
        """Test a step description."""
        translation = Step("gt(5)", description="Large orders").wordify()
        assert translation.text == "Large orders"

    def test_children(self):
        """Test child steps are translated in execution order."""
        parent = Step("gt(0)", steps=[Step("END()", execution_order=2), Step("lt(9)", execution_order=1)])
        texts = [t.text for t in parent.wordify().translations]
        assert texts == ["If the value is less than 9", "End the workflow"]

    def test_state_from_context(self):
        """Test the run state is included when a context is given."""
        step = Step("gt(5)")
        context = ExecutionContext()
        assert step.wordify().to_dict()["translationState"] == "New"
        step.execute(10, context)
        data = step.wordify(context=context).to_dict()
        assert data["translationState"] == "Complete"
        assert data["translationStateValue"] == 4

    def test_to_dict_keys(self):
        """Test the serialized keys."""
        data = Step("END()").wordify().to_dict()
        assert set(data) == {
            "expression",
            "translationText",
            "translationState",
            "translationStateValue",
            "translations",
        }
        assert data["expression"] == "END()"
