"""Semantic workflow checks run before execution.

Structural problems are caught by the loader; this module looks at what a
well-formed workflow means: names that collide, conditions pointing at
actions that never run, parallel roots reading each other, BOF arguments that
will not pack, and whether the target beacon exists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from csbot.bof.packer import pack_bof_arguments
from csbot.errors import PackError, WorkflowStructureError

from .conditions import PREVIOUS_SOURCE, canonical_operator, split_source
from .models import Workflow
from .tree import DEFAULT_MAX_DEPTH, ActionTree, build_action_tree

logger = logging.getLogger(__name__)

KNOWN_ACTION_TYPES = frozenset(
    {
        "shell",
        "run",
        "powershell",
        "powerpick",
        "execute_assembly",
        "bof",
        "inline_execute",
        "execute_bof",
        "upload",
        "download",
        "ls",
        "ps",
        "pwd",
        "cd",
        "getuid",
        "sleep",
        "screenshot",
        "spawn",
    }
)

Severity = Literal["error", "warning"]


@dataclass(frozen=True)
class ValidationIssue:
    """One finding from the validator."""

    type: str
    message: str
    severity: Severity = "error"

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def __str__(self) -> str:
        return f"[{self.type}] {self.message}"


def has_errors(issues: list[ValidationIssue]) -> bool:
    return any(issue.is_error for issue in issues)


class WorkflowValidator:
    """Checks a loaded workflow, optionally against a live client.

    When a client is given and the workflow names a beacon, the beacon's
    existence is confirmed through ``client.get_beacon``.
    """

    def __init__(self, client=None, max_depth: int = DEFAULT_MAX_DEPTH):
        self.client = client
        self.max_depth = max_depth

    async def validate(self, workflow: Workflow) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []

        if not workflow.name.strip():
            issues.append(ValidationIssue("workflow", "Workflow name is empty"))
        if not workflow.actions:
            issues.append(ValidationIssue("workflow", "Workflow has no actions"))

        try:
            tree = build_action_tree(workflow.actions, self.max_depth)
        except WorkflowStructureError as e:
            issues.append(ValidationIssue("structure", e.message))
            # walk() below assumes an acyclic tree
            return issues

        issues.extend(self._check_actions(workflow))
        if workflow.parallel:
            issues.extend(self._check_parallel_sources(tree))
        issues.extend(await self._check_beacon(workflow))

        for issue in issues:
            logger.debug(f"Validation {issue.severity}: {issue}")
        return issues

    def _check_actions(self, workflow: Workflow) -> list[ValidationIssue]:
        issues = []
        seen: set[str] = set()
        names = {action.name for _, action in workflow.walk()}

        for _, action in workflow.walk():
            if action.name in seen:
                issues.append(
                    ValidationIssue(
                        "action",
                        f"Duplicate action name '{action.name}': conditions see only "
                        "the most recent result",
                    )
                )
            seen.add(action.name)

            if action.type not in KNOWN_ACTION_TYPES:
                issues.append(
                    ValidationIssue(
                        "action",
                        f"Action '{action.name}' has unknown type '{action.type}'",
                        "warning",
                    )
                )

            for condition in action.conditions:
                if canonical_operator(condition.operator) is None:
                    issues.append(
                        ValidationIssue(
                            "condition",
                            f"Action '{action.name}' uses unknown operator "
                            f"'{condition.operator}'",
                        )
                    )
                source, _ = split_source(condition.source)
                if source != PREVIOUS_SOURCE and source not in names:
                    issues.append(
                        ValidationIssue(
                            "condition",
                            f"Action '{action.name}' condition reads unknown action "
                            f"'{source}'",
                            "warning",
                        )
                    )

            for key, value in action.parameters.items():
                if not isinstance(value, tuple):
                    continue
                try:
                    pack_bof_arguments(value)
                except PackError as e:
                    issues.append(
                        ValidationIssue(
                            "bof",
                            f"Action '{action.name}' parameter '{key}': {e.message}",
                        )
                    )

        return issues

    def _check_parallel_sources(self, tree: ActionTree) -> list[ValidationIssue]:
        """Conditions in a parallel run may only read their own top-level subtree.

        Top-level actions race each other, so a lookup into a sibling subtree
        would depend on completion timing.
        """
        issues = []
        owner: dict[str, set[int]] = {}
        for position, root in enumerate(tree.roots):
            for index in tree.subtree(root):
                owner.setdefault(tree[index].action.name, set()).add(position)

        for position, root in enumerate(tree.roots):
            for index in tree.subtree(root):
                action = tree[index].action
                for condition in action.conditions:
                    source, _ = split_source(condition.source)
                    roots = owner.get(source)
                    if source == PREVIOUS_SOURCE or not roots or position in roots:
                        continue
                    issues.append(
                        ValidationIssue(
                            "condition",
                            f"Action '{action.name}' reads '{source}' from another "
                            "top-level action; parallel runs give no ordering between them",
                        )
                    )
        return issues

    async def _check_beacon(self, workflow: Workflow) -> list[ValidationIssue]:
        if not workflow.beacon_id:
            return [
                ValidationIssue(
                    "beacon", "No beacon ID set; one will be selected at run time", "warning"
                )
            ]
        get_beacon = getattr(self.client, "get_beacon", None)
        if get_beacon is None:
            return []
        try:
            await get_beacon(workflow.beacon_id)
        except Exception as e:
            return [
                ValidationIssue(
                    "beacon", f"Beacon '{workflow.beacon_id}' not reachable: {e}"
                )
            ]
        return []
