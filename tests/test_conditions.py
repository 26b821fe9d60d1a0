"""Tests for condition evaluation."""

from datetime import UTC, datetime, timedelta

import pytest

from csbot.errors import InvalidConditionError
from csbot.workflow import ActionResult, Condition, ExecutionContext, LogKey
from csbot.workflow.conditions import (
    canonical_operator,
    evaluate_condition,
    evaluate_conditions,
    resolve_source,
    split_source,
)


def make_result(name, output="", success=True, error=None, seconds=1.5):
    start = datetime(2026, 1, 1, tzinfo=UTC)
    return ActionResult(
        name=name,
        type="shell",
        start_time=start,
        end_time=start + timedelta(seconds=seconds),
        success=success,
        output=output,
        error=error,
    )


@pytest.fixture
def context():
    ctx = ExecutionContext(client=None, beacon_id="1234", timeout=30)
    ctx.record(LogKey(0, 0), make_result("whoami", output="  CORP\\admin \n"))
    ctx.record(LogKey(0, 1), make_result("count", output="42"))
    ctx.record(LogKey(0, 2), make_result("broken", success=False, error="access denied"))
    return ctx


class TestSources:
    def test_split_source(self):
        assert split_source("recon.output") == ("recon", "output")
        assert split_source("recon") == ("recon", "output")
        assert split_source("get.host.success") == ("get.host", "success")
        # Unknown suffix belongs to the action name
        assert split_source("get.host") == ("get.host", "output")

    def test_resolve_fields(self, context):
        assert resolve_source("count.output", context) == "42"
        assert resolve_source("broken.success", context) is False
        assert resolve_source("broken.error", context) == "access denied"
        assert resolve_source("count.duration", context) == 1.5

    def test_unrecorded_source(self, context):
        assert resolve_source("never_ran.output", context) is None

    def test_previous(self, context):
        previous = make_result("last", output="hello")
        assert resolve_source("previous.output", context, previous) == "hello"
        assert resolve_source("previous.output", context) is None


class TestOperators:
    @pytest.mark.parametrize(
        "operator,value,expected",
        [
            ("equals", "CORP\\admin", True),
            ("==", "CORP\\admin", True),
            ("not_equals", "CORP\\guest", True),
            ("!=", "CORP\\admin", False),
            ("contains", "admin", True),
            ("contains", "ADMIN", False),
            ("not_contains", "guest", True),
            ("matches", r"^CORP\\\w+$", True),
            ("matches", "guest", False),
            ("not_empty", None, True),
        ],
    )
    def test_text_operators(self, context, operator, value, expected):
        condition = Condition("whoami.output", operator, value)
        assert evaluate_condition(condition, context) is expected

    @pytest.mark.parametrize(
        "operator,value,expected",
        [
            ("greater_than", 41, True),
            (">", "42", False),
            ("less_than", 100, True),
            ("<", 42.0, False),
            ("greater_or_equal", 42, True),
            (">=", "43", False),
            ("less_or_equal", 42, True),
            ("<=", 41.9, False),
        ],
    )
    def test_numeric_operators(self, context, operator, value, expected):
        condition = Condition("count.output", operator, value)
        assert evaluate_condition(condition, context) is expected

    def test_success_compares_as_text(self, context):
        assert evaluate_condition(Condition("broken.success", "equals", "false"), context)
        assert evaluate_condition(Condition("count.success", "equals", True), context)

    def test_unrecorded_source_is_false(self, context):
        assert evaluate_condition(Condition("ghost.output", "not_equals", "x"), context) is False
        assert evaluate_condition(Condition("ghost.output", "not_empty"), context) is False

    def test_canonical_operator(self):
        assert canonical_operator(">=") == "greater_or_equal"
        assert canonical_operator("contains") == "contains"
        assert canonical_operator("approximately") is None


class TestInvalidConditions:
    def test_unknown_operator(self, context):
        with pytest.raises(InvalidConditionError) as exc_info:
            evaluate_condition(Condition("count.output", "approximately", 1), context)
        assert exc_info.value.operator == "approximately"

    def test_non_numeric_operand(self, context):
        with pytest.raises(InvalidConditionError):
            evaluate_condition(Condition("whoami.output", "greater_than", 1), context)

    def test_bad_regex(self, context):
        with pytest.raises(InvalidConditionError):
            evaluate_condition(Condition("whoami.output", "matches", "("), context)


class TestCombination:
    def test_empty_is_eligible(self, context):
        assert evaluate_conditions([], context) is True

    def test_all_must_hold(self, context):
        conditions = [
            Condition("count.output", ">", 10),
            Condition("whoami.output", "contains", "admin"),
        ]
        assert evaluate_conditions(conditions, context) is True
        conditions.append(Condition("broken.success", "equals", "true"))
        assert evaluate_conditions(conditions, context) is False

    def test_unknown_operator_reported_after_false_condition(self, context):
        conditions = [
            Condition("count.output", "equals", "0"),
            Condition("count.output", "bogus", "0"),
        ]
        with pytest.raises(InvalidConditionError):
            evaluate_conditions(conditions, context)
