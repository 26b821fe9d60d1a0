"""Dataclasses and enums for workflow execution results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum

from csbot.errors import WorkflowError


class ErrorKind(Enum):
    """Category of an action failure."""

    NONE = "none"
    TIMEOUT = "timeout"
    REMOTE_CALL = "remote_call"
    PACKING = "packing"


class SkipReason(Enum):
    """Why an action never reached execution."""

    CONDITIONS_NOT_MET = "conditions_not_met"
    INVALID_CONDITION = "invalid_condition"


@dataclass(frozen=True)
class ActionOutcome:
    """What the remote client reports for one action."""

    output: str = ""
    success: bool = True
    error: str | None = None


@dataclass(frozen=True)
class ActionResult:
    """Recorded outcome of one executed action."""

    name: str
    type: str
    start_time: datetime
    end_time: datetime
    success: bool
    output: str = ""
    error: str | None = None
    error_kind: ErrorKind = ErrorKind.NONE

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def timed_out(self) -> bool:
        return self.error_kind is ErrorKind.TIMEOUT

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.type,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration": self.duration.total_seconds(),
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "error_kind": self.error_kind.value,
        }


@dataclass(frozen=True)
class SkippedAction:
    """An action whose conditions kept it from executing."""

    name: str
    reason: SkipReason
    detail: str = ""

    def to_dict(self) -> dict:
        return {"name": self.name, "reason": self.reason.value, "detail": self.detail}


@dataclass
class ExecutionResult:
    """Result of executing a complete workflow."""

    workflow_name: str
    beacon_id: str = ""
    operator: str | None = None
    actions: list[ActionResult] = field(default_factory=list)
    skipped: list[SkippedAction] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    error: WorkflowError | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def duration(self) -> timedelta:
        end = self.completed_at or datetime.now(UTC)
        return end - self.started_at

    def to_dict(self) -> dict:
        return {
            "workflow_name": self.workflow_name,
            "beacon_id": self.beacon_id,
            "operator": self.operator,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration": self.duration.total_seconds(),
            "success": self.success,
            "error": str(self.error) if self.error else None,
            "actions": [a.to_dict() for a in self.actions],
            "skipped": [s.to_dict() for s in self.skipped],
        }
