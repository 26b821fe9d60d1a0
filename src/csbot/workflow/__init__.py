"""Workflow definitions and the execution engine.

Load workflows from YAML, check them, and run their action trees against a
beacon through a remote client.
"""

from .conditions import OPERATORS, evaluate_condition, evaluate_conditions
from .context import ExecutionContext, LogKey
from .executor import DEFAULT_TASK_TIMEOUT, WorkflowExecutor, assemble_parameters
from .loader import list_workflows, load_workflow, validate_workflow
from .models import Action, Condition, Credentials, ParamValue, Workflow
from .results import (
    ActionOutcome,
    ActionResult,
    ErrorKind,
    ExecutionResult,
    SkippedAction,
    SkipReason,
)
from .tree import DEFAULT_MAX_DEPTH, ActionNode, ActionTree, build_action_tree
from .validator import ValidationIssue, WorkflowValidator, has_errors

__all__ = [
    # Models
    "Action",
    "Condition",
    "Credentials",
    "ParamValue",
    "Workflow",
    # Results
    "ActionOutcome",
    "ActionResult",
    "ErrorKind",
    "ExecutionResult",
    "SkippedAction",
    "SkipReason",
    # Engine
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_TASK_TIMEOUT",
    "ActionNode",
    "ActionTree",
    "ExecutionContext",
    "LogKey",
    "WorkflowExecutor",
    "assemble_parameters",
    "build_action_tree",
    # Conditions
    "OPERATORS",
    "evaluate_condition",
    "evaluate_conditions",
    # Loading
    "list_workflows",
    "load_workflow",
    "validate_workflow",
    "ValidationIssue",
    "WorkflowValidator",
    "has_errors",
]
