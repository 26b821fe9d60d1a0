"""YAML Workflow Loader and Validator."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from csbot.bof.packer import TYPE_ALIASES
from csbot.errors import ValidationError

from .models import BOF_ACTION_TYPES, BOF_ARGUMENTS_KEY, Workflow
from .tree import DEFAULT_MAX_DEPTH

logger = logging.getLogger(__name__)

WORKFLOW_SUFFIXES = (".yaml", ".yml")


def load_workflow(path: str | Path, max_depth: int = DEFAULT_MAX_DEPTH) -> Workflow:
    """Load workflow from YAML file.

    Args:
        path: Path to YAML workflow file
        max_depth: Deepest branch nesting accepted

    Returns:
        Workflow object

    Raises:
        FileNotFoundError: If file doesn't exist
        ValidationError: If YAML is invalid or structural validation fails
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Workflow file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValidationError(f"Invalid YAML in {path}: {e}", {"path": str(path)})

    if not isinstance(data, dict):
        raise ValidationError(
            f"Workflow file must contain a YAML mapping: {path}", {"path": str(path)}
        )

    errors = validate_workflow(data, max_depth=max_depth)
    if errors:
        raise ValidationError(
            f"Workflow validation failed: {'; '.join(errors)}",
            {"path": str(path), "errors": errors},
        )

    workflow = Workflow.from_dict(data)
    logger.debug(f"Loaded workflow '{workflow.name}' from {path}")
    return workflow


def validate_workflow(data: dict, max_depth: int = DEFAULT_MAX_DEPTH) -> list[str]:
    """Validate workflow data against the expected structure.

    Args:
        data: Workflow dictionary
        max_depth: Deepest branch nesting accepted

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    if "name" not in data:
        errors.append("Missing required field: name")
    elif not isinstance(data["name"], str) or not data["name"].strip():
        errors.append("Field 'name' must be a non-empty string")

    if "beacon_id" in data and data["beacon_id"] is not None:
        if not isinstance(data["beacon_id"], (str, int)) or isinstance(data["beacon_id"], bool):
            errors.append("Field 'beacon_id' must be a string")

    if "parallel" in data and not isinstance(data["parallel"], bool):
        errors.append("Field 'parallel' must be a boolean")

    if "description" in data and not isinstance(data["description"], str):
        errors.append("Field 'description' must be a string")

    if "actions" not in data:
        errors.append("Missing required field: actions")
    elif not isinstance(data["actions"], list):
        errors.append("Field 'actions' must be a list")
    elif not data["actions"]:
        errors.append("Workflow must have at least one action")
    else:
        for i, action in enumerate(data["actions"]):
            errors.extend(_validate_action(action, f"Action {i + 1}", 0, max_depth))

    return errors


def _validate_conditions(conditions, prefix: str) -> list[str]:
    if not isinstance(conditions, list):
        return [f"{prefix}: conditions must be a list"]

    errors = []
    for i, cond in enumerate(conditions):
        where = f"{prefix}: condition {i + 1}"
        if not isinstance(cond, dict):
            errors.append(f"{where} must be an object")
            continue
        for req in ("source", "operator"):
            if req not in cond:
                errors.append(f"{where} missing '{req}'")
            elif not isinstance(cond[req], str) or not cond[req].strip():
                errors.append(f"{where}: '{req}' must be a non-empty string")
        # 'value' is required for every operator except 'not_empty'
        if cond.get("operator") != "not_empty" and "value" not in cond:
            errors.append(f"{where} missing 'value'")
    return errors


def _validate_bof_arguments(arguments, prefix: str) -> list[str]:
    if not isinstance(arguments, list):
        return [f"{prefix}: BOF arguments must be a list"]

    errors = []
    for i, arg in enumerate(arguments):
        where = f"{prefix}: BOF argument {i + 1}"
        if not isinstance(arg, dict):
            errors.append(f"{where} must be an object with 'type' and 'value'")
        elif "type" not in arg:
            errors.append(f"{where} missing 'type'")
        elif arg["type"] not in TYPE_ALIASES:
            errors.append(f"{where}: unsupported type '{arg['type']}'")
        elif "value" not in arg:
            errors.append(f"{where} missing 'value'")
    return errors


def _validate_parameters(params, prefix: str, bof: bool = False) -> list[str]:
    if not isinstance(params, dict):
        return [f"{prefix}: parameters must be an object"]

    errors = []
    for key, value in params.items():
        if isinstance(value, list):
            if bof and key == BOF_ARGUMENTS_KEY:
                errors.extend(_validate_bof_arguments(value, f"{prefix} parameter '{key}'"))
            else:
                errors.append(
                    f"{prefix}: parameter '{key}' is a list; only BOF actions take a list, "
                    f"as '{BOF_ARGUMENTS_KEY}'"
                )
        elif value is not None and not isinstance(value, (str, int, float, bool, bytes)):
            errors.append(f"{prefix}: parameter '{key}' has unsupported type")
        elif value is None:
            errors.append(f"{prefix}: parameter '{key}' has no value")
    return errors


def _validate_action(action, prefix: str, depth: int, max_depth: int) -> list[str]:
    """Validate one action and, recursively, its branches."""
    if not isinstance(action, dict):
        return [f"{prefix}: must be an object"]

    if depth > max_depth:
        return [f"{prefix}: nested deeper than {max_depth} levels"]

    errors = []

    if "name" not in action:
        errors.append(f"{prefix}: missing required field 'name'")
    elif not isinstance(action["name"], str) or not action["name"].strip():
        errors.append(f"{prefix}: 'name' must be a non-empty string")
    else:
        prefix = f"Action '{action['name']}'"

    if "type" not in action:
        errors.append(f"{prefix}: missing required field 'type'")
    elif not isinstance(action["type"], str) or not action["type"].strip():
        errors.append(f"{prefix}: 'type' must be a non-empty string")

    if "parameters" in action and action["parameters"] is not None:
        bof = isinstance(action.get("type"), str) and action["type"] in BOF_ACTION_TYPES
        errors.extend(_validate_parameters(action["parameters"], prefix, bof))

    if "conditions" in action and action["conditions"] is not None:
        errors.extend(_validate_conditions(action["conditions"], prefix))

    if "timeout_seconds" in action:
        timeout = action["timeout_seconds"]
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            errors.append(f"{prefix}: timeout_seconds must be a positive number")

    for branch in ("on_success", "on_failure"):
        children = action.get(branch)
        if children is None:
            continue
        if not isinstance(children, list):
            errors.append(f"{prefix}: {branch} must be a list")
            continue
        for i, child in enumerate(children):
            errors.extend(
                _validate_action(child, f"{prefix} {branch}[{i + 1}]", depth + 1, max_depth)
            )

    return errors


def list_workflows(directory: str | Path = "workflows") -> list[dict]:
    """List all workflow files in a directory.

    Args:
        directory: Directory to search for .yaml / .yml files

    Returns:
        List of workflow summaries with name, path, description and action count
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []

    workflows = []
    for path in sorted(directory.iterdir()):
        if path.suffix not in WORKFLOW_SUFFIXES:
            continue
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Skipping unreadable workflow {path}: {e}")
            continue
        if not isinstance(data, dict):
            continue
        actions = data.get("actions")
        workflows.append(
            {
                "path": str(path),
                "name": data.get("name", path.stem),
                "description": data.get("description", ""),
                "actions": len(actions) if isinstance(actions, list) else 0,
                "parallel": bool(data.get("parallel", False)),
            }
        )

    return sorted(workflows, key=lambda w: str(w["name"]))
