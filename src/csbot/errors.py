"""csbot Error Hierarchy.

Structured exception types for the packer, the workflow engine and the glue
around them.
"""

from __future__ import annotations


class CSBotError(Exception):
    """Base error for all csbot exceptions."""

    code = "CSBOT_ERROR"

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# Packing Errors
class PackError(CSBotError):
    """Base error for BOF argument packing failures."""

    code = "PACK_ERROR"


class UnsupportedTypeError(PackError):
    """BOF argument type tag is not recognized."""

    code = "UNSUPPORTED_TYPE"

    def __init__(self, message: str, arg_type: str = None, index: int = None):
        super().__init__(message, {"type": arg_type, "index": index})
        self.arg_type = arg_type
        self.index = index


class TypeMismatchError(PackError):
    """BOF argument value cannot be coerced to its declared type."""

    code = "TYPE_MISMATCH"

    def __init__(self, message: str, arg_type: str = None, index: int = None):
        super().__init__(message, {"type": arg_type, "index": index})
        self.arg_type = arg_type
        self.index = index


# Condition Errors
class InvalidConditionError(CSBotError):
    """Condition cannot be evaluated (unknown operator, bad operand)."""

    code = "INVALID_CONDITION"

    def __init__(self, message: str, source: str = None, operator: str = None):
        super().__init__(message, {"source": source, "operator": operator})
        self.source = source
        self.operator = operator


# Remote Errors
class RemoteCallError(CSBotError):
    """The remote client failed to execute an action."""

    code = "REMOTE_CALL_FAILURE"

    def __init__(self, message: str, action: str = None, cause: Exception = None):
        details = {"action": action}
        if cause:
            details["cause"] = str(cause)
        super().__init__(message, details)
        self.action = action
        self.cause = cause


class ActionTimeoutError(RemoteCallError):
    """Remote call exceeded the per-action timeout and was cancelled."""

    code = "TIMEOUT"

    def __init__(self, message: str, action: str = None, timeout: float = 0.0):
        super().__init__(message, action=action)
        self.details["timeout"] = timeout
        self.timeout = timeout


# Workflow Errors
class WorkflowError(CSBotError):
    """Base error for workflow execution failures."""

    code = "WORKFLOW_ERROR"


class WorkflowFailedError(WorkflowError):
    """One or more actions failed with no on_failure branch to absorb them."""

    code = "WORKFLOW_FAILED"

    def __init__(self, message: str, failed_actions: list[str] = None):
        super().__init__(message, {"failed_actions": list(failed_actions or [])})
        self.failed_actions = list(failed_actions or [])


class WorkflowStructureError(WorkflowError):
    """Action tree is too deep or contains a cycle."""

    code = "WORKFLOW_STRUCTURE"


class BeaconNotSetError(WorkflowError):
    """Workflow has no beacon ID to run against."""

    code = "BEACON_NOT_SET"


class ValidationError(CSBotError):
    """Data validation failed."""

    code = "VALIDATION"


class ConfigError(CSBotError):
    """Configuration is missing or invalid."""

    code = "CONFIG_ERROR"

    def __init__(self, message: str, problems: list[str] = None):
        super().__init__(message, {"problems": list(problems or [])})
        self.problems = list(problems or [])


class BeaconSelectionError(CSBotError):
    """No beacon could be selected."""

    code = "BEACON_SELECTION"
