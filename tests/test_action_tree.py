"""Tests for action tree flattening."""

import pytest

from csbot.errors import WorkflowStructureError
from csbot.workflow import Action, Workflow, build_action_tree
from csbot.workflow.tree import Branch


def chain(depth: int) -> Action:
    action = Action(f"a{depth}", "shell")
    for level in range(depth - 1, -1, -1):
        action = Action(f"a{level}", "shell", on_success=(action,))
    return action


class TestBuildActionTree:
    def test_pre_order_indices(self):
        tree = build_action_tree(
            [
                Action(
                    "root",
                    "shell",
                    on_success=(Action("ok1", "shell"), Action("ok2", "shell")),
                    on_failure=(Action("fail", "shell"),),
                ),
                Action("second", "shell"),
            ]
        )

        assert [node.action.name for node in tree.nodes] == [
            "root",
            "ok1",
            "ok2",
            "fail",
            "second",
        ]
        assert tree.roots == (0, 4)
        assert tree[0].on_success == (1, 2)
        assert tree[0].on_failure == (3,)
        assert tree[3].branch is Branch.ON_FAILURE
        assert tree[3].parent == 0
        assert tree[3].depth == 1
        assert tree.subtree(0) == [0, 1, 2, 3]

    def test_empty_workflow(self):
        tree = build_action_tree([])
        assert len(tree) == 0
        assert tree.max_depth == 0

    def test_depth_limit(self):
        assert build_action_tree([chain(3)], max_depth=3).max_depth == 3
        with pytest.raises(WorkflowStructureError):
            build_action_tree([chain(4)], max_depth=3)

    def test_cycle_detected(self):
        loop = Action("loop", "shell")
        # Frozen dataclasses can still be forced into a cycle
        object.__setattr__(loop, "on_success", (loop,))
        with pytest.raises(WorkflowStructureError, match="own branch"):
            build_action_tree([loop])

    def test_shared_subtree_is_not_a_cycle(self):
        shared = Action("shared", "shell")
        tree = build_action_tree(
            [Action("a", "shell", on_success=(shared,), on_failure=(shared,))]
        )
        assert len(tree) == 3

    def test_matches_workflow_walk(self):
        workflow = Workflow(
            "w",
            actions=(
                Action("x", "shell", on_failure=(Action("y", "shell"),)),
                Action("z", "shell"),
            ),
        )
        tree = build_action_tree(workflow.actions)
        assert [(n.depth, n.action.name) for n in tree.nodes] == [
            (depth, action.name) for depth, action in workflow.walk()
        ]
