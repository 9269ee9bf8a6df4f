"""
Tests for the workflow step engine.
"""

from datetime import date

import pytest

from backend.ruleflow.errors import ActionNotBoundError, InvalidModelError, NotFoundError
from backend.ruleflow.models import CascadeType, StepDefinition, StepState, WorkflowResultType
from backend.ruleflow.workflow import (
    ExecutionContext,
    Step,
    WorkflowParser,
    WorkflowResult,
    default_registry,
)

COMPLETE = WorkflowResultType.COMPLETE
FAIL = WorkflowResultType.FAIL
NO_ACTION = WorkflowResultType.NO_ACTION


class Invoice:
    """Plain object used as a reference target."""

    def __init__(self, amount):
        self.amount = amount


def cascade_result(cascade, *child_results):
    """Aggregate stored child results under a cascade policy."""
    parent = Step(cascade=cascade)
    context = ExecutionContext()
    for result in child_results:
        child = parent.add_step(Step())
        context.set_result(child, WorkflowResult(result))
    return parent.determine_overall_result(context)


def no_action_parser():
    registry = default_registry().copy()
    registry.register("WAIT", lambda target, params, context: WorkflowResult(NO_ACTION))
    return WorkflowParser(registry=registry)


class TestStepExecution:
    """Tests for running a single step."""

    def test_test_then_action(self):
        """Test gt(5)=>SET(1) against 10 completes with the SET result."""
        step = Step("gt(5)=>SET(1)")
        context = ExecutionContext()
        result = step.execute(10, context)
        assert result.result == COMPLETE
        assert result.value == 10
        assert context.variables["1"] == 10
        assert context.value == 10

    def test_test_fails_without_else(self):
        """Test a failed test without an else branch."""
        context = ExecutionContext()
        result = Step("gt(5)=>SET(1)").execute(3, context)
        assert result.result == FAIL
        assert "1" not in context.variables

    def test_else_branch(self):
        """Test the else branch runs when the test fails."""
        context = ExecutionContext()
        result = Step("gt(5) => SET(size, big) => SET(size, small)").execute(3, context)
        assert result.result == COMPLETE
        assert context.variables["size"] == "small"

    def test_empty_step_completes(self):
        """Test a step without an instruction."""
        assert Step().execute().result == COMPLETE

    def test_step_state(self):
        """Test the context records the step state."""
        step = Step("gt(5)")
        context = ExecutionContext()
        assert context.state_of(step) == StepState.NOT_RUN
        step.execute(10, context)
        assert context.state_of(step) == StepState.COMPLETE
        step.execute(1, context)
        assert context.state_of(step) == StepState.FAIL

    def test_rerun_with_new_context(self):
        """Test one step tree evaluated against several targets."""
        step = Step("gt(5)")
        first, second = ExecutionContext(), ExecutionContext()
        assert step.execute(10, first).result == COMPLETE
        assert step.execute(3, second).result == FAIL
        assert first.result_of(step).result == COMPLETE

    def test_unbound_action_raises(self):
        """Test an action without an execute function."""
        with pytest.raises(ActionNotBoundError):
            Step("EMAIL(ops@example.com)").execute()

    def test_nested_date_param(self):
        """Test a nested action runs first and passes its value."""
        context = ExecutionContext(today=lambda: date(2024, 5, 1))
        assert Step("EQ(TODAY(), 2024-05-01)").execute(None, context).result == COMPLETE

    def test_from_definition(self):
        """Test building a step tree from a definition model."""
        definition = StepDefinition(
            expression="gt(0)",
            cascade="any-one-fails-parent",
            steps=[StepDefinition(expression="lt(10)", execution_order=1)],
        )
        step = Step.from_definition(definition)
        assert step.cascade == CascadeType.ANY_ONE_FAILS_PARENT
        assert step.steps[0].parent is step
        assert step.execute(5).result == COMPLETE


class TestNegation:
    """Tests for negated actions."""

    def test_negated_action(self):
        """Test ! swaps Fail to Complete."""
        step = Step("!gt(5)")
        context = ExecutionContext()
        assert step.execute(3, context).result == COMPLETE

    def test_negation_read_twice_is_stable(self):
        """Test reading a negated result twice gives the same answer."""
        step = Step("!gt(5)")
        context = ExecutionContext()
        step.execute(3, context)
        action = step.actions[0]
        assert context.action_result(action).result == COMPLETE
        assert context.action_result(action).result == COMPLETE

    def test_negated_test(self):
        """Test a negated test selects the then branch."""
        context = ExecutionContext()
        Step("!gt(5) => SET(size, small) => SET(size, big)").execute(3, context)
        assert context.variables["size"] == "small"


class TestCascade:
    """Tests for deriving a parent result from its children."""

    def test_any_one_completes(self):
        """Test AnyOneCompletesParent with {Fail, Complete}."""
        assert cascade_result(CascadeType.ANY_ONE_COMPLETES_PARENT, FAIL, COMPLETE) == COMPLETE
        assert cascade_result(CascadeType.ANY_ONE_COMPLETES_PARENT, FAIL, FAIL) == FAIL

    def test_all_must_fail(self):
        """Test AllMustFailParent with {Fail, Complete}."""
        assert cascade_result(CascadeType.ALL_MUST_FAIL_PARENT, FAIL, COMPLETE) == FAIL
        assert cascade_result(CascadeType.ALL_MUST_FAIL_PARENT, FAIL, FAIL) == COMPLETE

    def test_all_must_complete(self):
        """Test AllMustCompleteParent."""
        assert cascade_result(CascadeType.ALL_MUST_COMPLETE_PARENT, FAIL, COMPLETE) == FAIL
        assert cascade_result(CascadeType.ALL_MUST_COMPLETE_PARENT, COMPLETE, COMPLETE) == COMPLETE

    def test_any_one_fails(self):
        """Test AnyOneFailsParent."""
        assert cascade_result(CascadeType.ANY_ONE_FAILS_PARENT, FAIL, COMPLETE) == FAIL
        assert cascade_result(CascadeType.ANY_ONE_FAILS_PARENT, COMPLETE, COMPLETE) == COMPLETE

    def test_all_complete_and_any_fails_differ(self):
        """Test {Complete, No Action} separates AllMustComplete from AnyOneFails."""
        assert cascade_result(CascadeType.ALL_MUST_COMPLETE_PARENT, COMPLETE, NO_ACTION) == FAIL
        assert cascade_result(CascadeType.ANY_ONE_FAILS_PARENT, COMPLETE, NO_ACTION) == COMPLETE

    def test_no_child_results_uses_default(self):
        """Test a parent whose children never ran."""
        parent = Step()
        parent.add_step(Step())
        assert parent.determine_overall_result(ExecutionContext()) == NO_ACTION

    def test_executed_children(self):
        """Test a parent cascading over children it ran."""
        parent = Step(
            "EQ(1, 1)",
            cascade=CascadeType.ANY_ONE_COMPLETES_PARENT,
            steps=[Step("EQ(1, 2)", execution_order=1), Step("EQ(1, 1)", execution_order=2)],
        )
        assert parent.execute().result == COMPLETE

    def test_executed_children_with_no_action(self):
        """Test a child returning No Action under two policies."""
        parser = no_action_parser()
        results = {}
        for cascade in (CascadeType.ALL_MUST_COMPLETE_PARENT, CascadeType.ANY_ONE_FAILS_PARENT):
            parent = Step(
                "EQ(1, 1)",
                cascade=cascade,
                parser=parser,
                steps=[
                    Step("EQ(1, 1)", execution_order=1, parser=parser),
                    Step("WAIT(1)", execution_order=2, parser=parser),
                ],
            )
            results[cascade] = parent.execute(None, ExecutionContext(registry=parser.registry)).result
        assert results[CascadeType.ALL_MUST_COMPLETE_PARENT] == FAIL
        assert results[CascadeType.ANY_ONE_FAILS_PARENT] == COMPLETE

    def test_children_skipped_when_parent_fails(self):
        """Test children only run after the parent's instruction completes."""
        child = Step("SET(ran, 1)")
        parent = Step("EQ(1, 2)", steps=[child])
        context = ExecutionContext()
        assert parent.execute(None, context).result == FAIL
        assert context.state_of(child) == StepState.NOT_RUN

    def test_children_run_in_execution_order(self):
        """Test children are ordered by execution_order, not insertion."""
        parent = Step(
            "EQ(1, 1)",
            steps=[Step("SET(last, a)", execution_order=2), Step("SET(last, b)", execution_order=1)],
        )
        context = ExecutionContext()
        parent.execute(None, context)
        assert context.variables["last"] == "a"


class TestEnd:
    """Tests for the END action."""

    def test_end_stops_later_steps(self):
        """Test END skips the remaining siblings."""
        later = Step("SET(after, 1)", execution_order=2)
        parent = Step("EQ(1, 1)", steps=[Step("END()", execution_order=1), later])
        context = ExecutionContext()
        assert parent.execute(None, context).result == COMPLETE
        assert context.stopped
        assert "after" not in context.variables
        assert context.state_of(later) == StepState.NOT_RUN

    def test_stopped_before_children_uses_own_result(self):
        """Test a parent that ends before any child runs."""
        parent = Step("END()", steps=[Step("SET(after, 1)")])
        assert parent.execute().result == COMPLETE


class TestReferences:
    """Tests for reference parameters."""

    def test_mapping_reference(self):
        """Test [this|order.total] reads from the target."""
        step = Step("EQ([this|order.total], 5)")
        assert step.execute({"order": {"total": 5}}).result == COMPLETE

    def test_object_reference(self):
        """Test a named object referenced by its type name."""
        context = ExecutionContext(objects={"invoice": Invoice(250)})
        step = Step("GT([invoice|invoice.amount], 100)")
        assert step.execute(None, context).result == COMPLETE

    def test_missing_member(self):
        """Test a missing property."""
        with pytest.raises(NotFoundError):
            Step("EQ([this|order.total], 5)").execute({"order": {}})

    def test_missing_target(self):
        """Test an unknown reference target."""
        with pytest.raises(NotFoundError):
            Step("EQ([customer|customer.name], x)").execute()

    def test_scalar_target(self):
        """Test reading a member of a plain value."""
        with pytest.raises(InvalidModelError):
            Step("EQ([this|order.total], 5)").execute(5)


class TestStepTree:
    """Tests for step tree structure."""

    def test_single_parent(self):
        """Test a step cannot belong to two parents."""
        child = Step()
        Step().add_step(child)
        with pytest.raises(ValueError):
            Step().add_step(child)

    def test_no_cycles(self):
        """Test a step cannot be added beneath its own descendant."""
        root = Step()
        child = root.add_step(Step())
        with pytest.raises(ValueError):
            child.add_step(root)
        with pytest.raises(ValueError):
            root.add_step(root)

    def test_walk_and_to_dict(self):
        """Test walk order and serialization."""
        parent = Step("gt(0)", steps=[Step("lt(5)", execution_order=2), Step("lt(9)", execution_order=1)])
        assert [s.expression for s in parent.walk()] == ["gt(0)", "lt(9)", "lt(5)"]
        data = parent.to_dict()
        assert data["cascade"] == "all_must_complete_parent"
        assert [s["expression"] for s in data["steps"]] == ["lt(9)", "lt(5)"]

    def test_determinism(self):
        """Test parsing the same instruction twice gives equal nodes."""
        assert Step("gt(5)=>SET(1)").nodes == Step("gt(5)=>SET(1)").nodes
