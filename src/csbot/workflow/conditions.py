"""Condition evaluation against prior action results.

A condition reads a value from the execution context, compares it with the
expected value and yields a boolean. Sources name a recorded action and a
field of its result:

    recon.output         output text of the action named "recon"
    recon.success        "true" / "false"
    recon                shorthand for recon.output
    previous.success     result of the action whose branch is running
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from typing import Any, Protocol

from csbot.errors import InvalidConditionError

from .models import Condition
from .results import ActionResult

logger = logging.getLogger(__name__)

PREVIOUS_SOURCE = "previous"
RESULT_FIELDS = frozenset({"output", "success", "error", "duration"})

OPERATOR_ALIASES = {
    "==": "equals",
    "!=": "not_equals",
    ">": "greater_than",
    "<": "less_than",
    ">=": "greater_or_equal",
    "<=": "less_or_equal",
}


class ResultLookup(Protocol):
    """Anything that can find a recorded result by action name."""

    def lookup(self, name: str) -> ActionResult | None: ...


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value).strip()


def _as_number(value: Any, condition: Condition) -> float:
    if isinstance(value, (bool, int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        raise InvalidConditionError(
            f"Operand {value!r} is not numeric for '{condition.operator}'",
            source=condition.source,
            operator=condition.operator,
        )


def _numeric(compare: Callable[[float, float], bool]):
    def evaluate(actual: Any, condition: Condition) -> bool:
        return compare(_as_number(actual, condition), _as_number(condition.value, condition))

    return evaluate


def _matches(actual: Any, condition: Condition) -> bool:
    try:
        pattern = re.compile(_as_text(condition.value))
    except re.error as e:
        raise InvalidConditionError(
            f"Invalid pattern {condition.value!r}: {e}",
            source=condition.source,
            operator=condition.operator,
        )
    return pattern.search(_as_text(actual)) is not None


OPERATORS: dict[str, Callable[[Any, Condition], bool]] = {
    "equals": lambda actual, c: _as_text(actual) == _as_text(c.value),
    "not_equals": lambda actual, c: _as_text(actual) != _as_text(c.value),
    "contains": lambda actual, c: _as_text(c.value) in _as_text(actual),
    "not_contains": lambda actual, c: _as_text(c.value) not in _as_text(actual),
    "greater_than": _numeric(lambda a, b: a > b),
    "less_than": _numeric(lambda a, b: a < b),
    "greater_or_equal": _numeric(lambda a, b: a >= b),
    "less_or_equal": _numeric(lambda a, b: a <= b),
    "matches": _matches,
    "not_empty": lambda actual, c: bool(_as_text(actual)),
}


def canonical_operator(operator: str) -> str | None:
    """Resolve an operator or its symbolic alias; None if unknown."""
    name = OPERATOR_ALIASES.get(operator, operator)
    return name if name in OPERATORS else None


def split_source(source: str) -> tuple[str, str]:
    """Split a source into ``(action name, result field)``."""
    name, sep, fieldname = source.rpartition(".")
    if sep and fieldname in RESULT_FIELDS:
        return name, fieldname
    return source, "output"


def resolve_source(
    source: str, context: ResultLookup, previous: ActionResult | None = None
) -> Any:
    """Read the value a condition source points to, or None if not recorded."""
    name, fieldname = split_source(source)
    result = previous if name == PREVIOUS_SOURCE else context.lookup(name)
    if result is None:
        return None
    if fieldname == "duration":
        return result.duration.total_seconds()
    return getattr(result, fieldname)


def evaluate_condition(
    condition: Condition, context: ResultLookup, previous: ActionResult | None = None
) -> bool:
    """Evaluate one condition.

    Raises:
        InvalidConditionError: Unknown operator or operands it cannot compare
    """
    operator = canonical_operator(condition.operator)
    if operator is None:
        raise InvalidConditionError(
            f"Unknown condition operator: {condition.operator}",
            source=condition.source,
            operator=condition.operator,
        )

    actual = resolve_source(condition.source, context, previous)
    if actual is None:
        logger.debug(f"Condition source '{condition.source}' not recorded; condition is false")
        return False

    return OPERATORS[operator](actual, condition)


def evaluate_conditions(
    conditions: Iterable[Condition],
    context: ResultLookup,
    previous: ActionResult | None = None,
) -> bool:
    """AND all conditions together; no conditions means eligible.

    Every operator is checked before any condition is evaluated, so an invalid
    condition is reported even when an earlier one is already false.
    """
    conditions = list(conditions)
    for condition in conditions:
        if canonical_operator(condition.operator) is None:
            raise InvalidConditionError(
                f"Unknown condition operator: {condition.operator}",
                source=condition.source,
                operator=condition.operator,
            )
    for condition in conditions:
        if not evaluate_condition(condition, context, previous):
            return False
    return True
