"""Arena representation of a workflow's action forest.

Actions are flattened into a list of nodes addressed by index. Branches hold
child indices, so traversal never follows object references and depth and
cycle limits are enforced once, up front.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from csbot.errors import WorkflowStructureError

from .models import Action

DEFAULT_MAX_DEPTH = 32


class Branch(Enum):
    """Which branch list of the parent a node belongs to."""

    ROOT = "root"
    ON_SUCCESS = "on_success"
    ON_FAILURE = "on_failure"


@dataclass(frozen=True)
class ActionNode:
    """One action in the arena."""

    index: int
    action: Action
    depth: int
    parent: int | None
    branch: Branch
    on_success: tuple[int, ...] = ()
    on_failure: tuple[int, ...] = ()


@dataclass(frozen=True)
class ActionTree:
    """Flattened action forest with root indices in declaration order."""

    nodes: tuple[ActionNode, ...]
    roots: tuple[int, ...]

    def __getitem__(self, index: int) -> ActionNode:
        return self.nodes[index]

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def max_depth(self) -> int:
        return max((node.depth for node in self.nodes), default=0)

    def subtree(self, index: int) -> list[int]:
        """Indices of a node and all its descendants in pre-order."""
        order = []
        stack = [index]
        while stack:
            current = stack.pop()
            order.append(current)
            node = self.nodes[current]
            stack.extend(reversed((*node.on_success, *node.on_failure)))
        return order


def build_action_tree(
    actions: Sequence[Action], max_depth: int = DEFAULT_MAX_DEPTH
) -> ActionTree:
    """Flatten actions into an ActionTree.

    Args:
        actions: Top-level actions in declaration order
        max_depth: Deepest allowed nesting (roots are depth 0)

    Raises:
        WorkflowStructureError: If nesting exceeds max_depth or an action is
            its own ancestor
    """
    nodes: list[dict] = []

    def add(action: Action, depth: int, parent: int | None, branch: Branch, ancestry: frozenset):
        if depth > max_depth:
            raise WorkflowStructureError(
                f"Action '{action.name}' is nested deeper than {max_depth} levels",
                {"action": action.name, "max_depth": max_depth},
            )
        if id(action) in ancestry:
            raise WorkflowStructureError(
                f"Action '{action.name}' appears inside its own branch",
                {"action": action.name},
            )
        index = len(nodes)
        nodes.append(
            {
                "index": index,
                "action": action,
                "depth": depth,
                "parent": parent,
                "branch": branch,
                "on_success": [],
                "on_failure": [],
            }
        )
        ancestry = ancestry | {id(action)}
        for child in action.on_success:
            nodes[index]["on_success"].append(
                add(child, depth + 1, index, Branch.ON_SUCCESS, ancestry)
            )
        for child in action.on_failure:
            nodes[index]["on_failure"].append(
                add(child, depth + 1, index, Branch.ON_FAILURE, ancestry)
            )
        return index

    roots = [add(action, 0, None, Branch.ROOT, frozenset()) for action in actions]

    frozen = tuple(
        ActionNode(
            index=n["index"],
            action=n["action"],
            depth=n["depth"],
            parent=n["parent"],
            branch=n["branch"],
            on_success=tuple(n["on_success"]),
            on_failure=tuple(n["on_failure"]),
        )
        for n in nodes
    )
    return ActionTree(nodes=frozen, roots=tuple(roots))
