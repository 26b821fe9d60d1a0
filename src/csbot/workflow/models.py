"""Workflow, action and condition definitions.

Loaded workflows are immutable: sequences are tuples and parameter mappings
are read-only views.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

from csbot.bof.packer import BOFArgument, parse_bof_arguments
from csbot.errors import ValidationError

# Closed set of values an action parameter may hold
ParamValue = Union[int, float, str, bool, bytes, tuple[BOFArgument, ...]]

# Action types whose "arguments" parameter is a BOF argument list
BOF_ACTION_TYPES = frozenset({"bof", "inline_execute", "execute_bof"})
BOF_ARGUMENTS_KEY = "arguments"


def _is_bof_argument_list(value: Any) -> bool:
    return all(
        isinstance(item, BOFArgument) or (isinstance(item, Mapping) and "type" in item)
        for item in value
    )


def normalize_param(key: str, value: Any, bof_arguments: bool = False) -> ParamValue:
    """Narrow a loaded parameter value into the ParamValue union.

    Args:
        key: Parameter name, for error messages
        value: Loaded value
        bof_arguments: Whether this parameter carries a BOF argument list;
            lists are rejected everywhere else

    Raises:
        ValidationError: If the value is not one of the supported kinds
    """
    if isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, (list, tuple)):
        if not bof_arguments:
            raise ValidationError(
                f"Parameter '{key}': lists are only accepted as '{BOF_ARGUMENTS_KEY}' "
                f"of {'/'.join(sorted(BOF_ACTION_TYPES))} actions",
                {"parameter": key},
            )
        if _is_bof_argument_list(value):
            return parse_bof_arguments(value)
    raise ValidationError(
        f"Parameter '{key}' has unsupported value of type {type(value).__name__}",
        {"parameter": key},
    )


@dataclass(frozen=True)
class Condition:
    """Condition gating an action's execution."""

    source: str
    operator: str
    value: Any = None

    @classmethod
    def from_dict(cls, data: Mapping) -> Condition:
        return cls(
            source=str(data["source"]),
            operator=str(data["operator"]),
            value=data.get("value"),
        )

    def to_dict(self) -> dict:
        return {"source": self.source, "operator": self.operator, "value": self.value}


@dataclass(frozen=True, eq=False)
class Action:
    """One remote operation plus its success and failure branches."""

    name: str
    type: str
    parameters: Mapping[str, ParamValue] = field(default_factory=dict)
    conditions: tuple[Condition, ...] = ()
    on_success: tuple[Action, ...] = ()
    on_failure: tuple[Action, ...] = ()
    timeout_seconds: float | None = None

    def __post_init__(self):
        bof = self.type in BOF_ACTION_TYPES
        params = {
            key: normalize_param(key, val, bof and key == BOF_ARGUMENTS_KEY)
            for key, val in dict(self.parameters).items()
        }
        object.__setattr__(self, "parameters", MappingProxyType(params))
        object.__setattr__(self, "conditions", tuple(self.conditions))
        object.__setattr__(self, "on_success", tuple(self.on_success))
        object.__setattr__(self, "on_failure", tuple(self.on_failure))

    @property
    def is_bof(self) -> bool:
        return self.type in BOF_ACTION_TYPES

    @classmethod
    def from_dict(cls, data: Mapping) -> Action:
        """Create Action (and its branches) from a dictionary."""
        timeout = data.get("timeout_seconds")
        return cls(
            name=data["name"],
            type=data["type"],
            parameters=data.get("parameters") or {},
            conditions=tuple(Condition.from_dict(c) for c in data.get("conditions") or []),
            on_success=tuple(cls.from_dict(a) for a in data.get("on_success") or []),
            on_failure=tuple(cls.from_dict(a) for a in data.get("on_failure") or []),
            timeout_seconds=float(timeout) if timeout is not None else None,
        )

    def to_dict(self) -> dict:
        params = {}
        for key, value in self.parameters.items():
            if isinstance(value, tuple):
                params[key] = [arg.to_dict() for arg in value]
            elif isinstance(value, bytes):
                params[key] = value.hex()
            else:
                params[key] = value
        data = {"name": self.name, "type": self.type, "parameters": params}
        if self.conditions:
            data["conditions"] = [c.to_dict() for c in self.conditions]
        if self.on_success:
            data["on_success"] = [a.to_dict() for a in self.on_success]
        if self.on_failure:
            data["on_failure"] = [a.to_dict() for a in self.on_failure]
        if self.timeout_seconds is not None:
            data["timeout_seconds"] = self.timeout_seconds
        return data


@dataclass(frozen=True)
class Credentials:
    """Operator identity the remote client was authenticated with."""

    username: str
    password: str = field(default="", repr=False)


@dataclass(frozen=True, eq=False)
class Workflow:
    """A declarative action script targeting one beacon."""

    name: str
    actions: tuple[Action, ...] = ()
    beacon_id: str = ""
    parallel: bool = False
    description: str = ""

    def __post_init__(self):
        object.__setattr__(self, "actions", tuple(self.actions))

    @classmethod
    def from_dict(cls, data: Mapping) -> Workflow:
        """Create Workflow from dictionary."""
        return cls(
            name=data["name"],
            actions=tuple(Action.from_dict(a) for a in data.get("actions") or []),
            beacon_id=str(data.get("beacon_id") or ""),
            parallel=bool(data.get("parallel", False)),
            description=data.get("description", ""),
        )

    def with_beacon(self, beacon_id: str) -> Workflow:
        """Return a copy targeting another beacon."""
        return dataclasses.replace(self, beacon_id=beacon_id)

    def walk(self) -> Iterator[tuple[int, Action]]:
        """Yield ``(depth, action)`` in pre-order, success branch before failure.

        Assumes an acyclic tree; use ``build_action_tree`` for untrusted input.
        """
        stack = [(0, action) for action in reversed(self.actions)]
        while stack:
            depth, action = stack.pop()
            yield depth, action
            children = [*action.on_success, *action.on_failure]
            stack.extend((depth + 1, child) for child in reversed(children))

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "beacon_id": self.beacon_id,
            "parallel": self.parallel,
            "actions": [a.to_dict() for a in self.actions],
        }
