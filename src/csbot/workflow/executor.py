"""Workflow executor.

Traverses a workflow's action tree against one beacon:

- conditions decide whether an action runs (Skipped actions go to on_failure)
- BOF argument lists are packed before dispatch
- each remote call runs under a per-action timeout that cancels the call
- results land in an ordered log; on_success / on_failure run sequentially

With ``parallel: true`` every top-level action (and its subtree) runs as its
own asyncio task. The log is ordered by top-level declaration and pre-order
position, so a parallel run produces the same log as a sequential one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from csbot.bof.packer import pack_bof_arguments
from csbot.errors import (
    ActionTimeoutError,
    BeaconNotSetError,
    InvalidConditionError,
    PackError,
    RemoteCallError,
    ValidationError,
    WorkflowFailedError,
    WorkflowStructureError,
)

from .conditions import evaluate_conditions
from .context import ExecutionContext, LogKey
from .models import BOF_ARGUMENTS_KEY, Action, Credentials, Workflow
from .results import (
    ActionOutcome,
    ActionResult,
    ErrorKind,
    ExecutionResult,
    SkippedAction,
    SkipReason,
)
from .tree import DEFAULT_MAX_DEPTH, ActionTree, build_action_tree

logger = logging.getLogger(__name__)

DEFAULT_TASK_TIMEOUT = 300.0


def assemble_parameters(action: Action) -> dict[str, Any]:
    """Copy an action's parameters, packing a BOF action's argument list to bytes.

    Raises:
        PackError: If a BOF argument cannot be packed
    """
    params: dict[str, Any] = {}
    for key, value in action.parameters.items():
        if action.is_bof and key == BOF_ARGUMENTS_KEY and isinstance(value, tuple):
            params[key] = pack_bof_arguments(value)
        else:
            params[key] = value
    return params


def _coerce_outcome(value: Any) -> ActionOutcome:
    """Accept an ActionOutcome or an ``(output, success[, error])`` tuple."""
    if isinstance(value, ActionOutcome):
        return value
    if isinstance(value, tuple) and len(value) in (2, 3):
        output, success, *rest = value
        error = rest[0] if rest else None
        return ActionOutcome(
            output="" if output is None else str(output),
            success=bool(success),
            error=str(error) if error else None,
        )
    raise RemoteCallError(f"Client returned unexpected outcome: {type(value).__name__}")


class WorkflowExecutor:
    """Executes workflows against a remote client.

    The client is shared by every concurrent branch and must already be
    authenticated; the executor adds no pooling or authentication of its own.
    """

    def __init__(
        self,
        client,
        task_timeout: float = DEFAULT_TASK_TIMEOUT,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        """Initialize executor.

        Args:
            client: RemoteClient used for every action
            task_timeout: Default per-action timeout in seconds
            max_depth: Deepest allowed branch nesting
        """
        self.client = client
        self.task_timeout = task_timeout
        self.max_depth = max_depth
        self._context: ExecutionContext | None = None

    def get_results(self) -> list[ActionResult]:
        """Ordered results of the current (or last) run.

        Safe to call from another thread while a run is in flight.
        """
        if self._context is None:
            return []
        return self._context.results()

    def get_skipped(self) -> list[SkippedAction]:
        if self._context is None:
            return []
        return self._context.skipped()

    def execute(self, workflow: Workflow, credentials: Credentials | None = None) -> ExecutionResult:
        """Synchronous wrapper around execute_async."""
        return asyncio.run(self.execute_async(workflow, credentials))

    async def execute_async(
        self, workflow: Workflow, credentials: Credentials | None = None
    ) -> ExecutionResult:
        """Run a workflow to completion.

        Args:
            workflow: Workflow to run; its beacon_id must be set
            credentials: Operator the client was authenticated as (recorded only)

        Returns:
            ExecutionResult holding the full result log. ``result.error`` is a
            WorkflowError when the run failed, None otherwise.
        """
        context = ExecutionContext(
            self.client, workflow.beacon_id, self.task_timeout, workflow_name=workflow.name
        )
        self._context = context
        result = ExecutionResult(
            workflow_name=workflow.name,
            beacon_id=workflow.beacon_id,
            operator=credentials.username if credentials else None,
        )

        if not workflow.beacon_id:
            result.error = BeaconNotSetError(f"Workflow '{workflow.name}' has no beacon ID")
            return self._finalize(result, context)

        try:
            tree = build_action_tree(workflow.actions, self.max_depth)
        except WorkflowStructureError as e:
            result.error = e
            return self._finalize(result, context)

        mode = "parallel" if workflow.parallel else "sequential"
        logger.info(
            f"Executing workflow '{workflow.name}' on beacon {workflow.beacon_id} "
            f"({len(tree.roots)} top-level actions, {len(tree)} total, {mode})",
            extra=_log_context(context),
        )

        if workflow.parallel:
            branches = await asyncio.gather(
                *(
                    self._run_node(tree, index, position, context, None)
                    for position, index in enumerate(tree.roots)
                )
            )
        else:
            branches = []
            for position, index in enumerate(tree.roots):
                branches.append(await self._run_node(tree, index, position, context, None))

        failed = [name for branch in branches for name in branch]
        if failed:
            result.error = WorkflowFailedError(
                f"{len(failed)} action(s) failed without an on_failure branch: "
                + ", ".join(failed),
                failed_actions=failed,
            )
        return self._finalize(result, context)

    def _finalize(self, result: ExecutionResult, context: ExecutionContext) -> ExecutionResult:
        result.actions = context.results()
        result.skipped = context.skipped()
        result.completed_at = datetime.now(UTC)
        if result.error:
            logger.error(
                f"Workflow '{result.workflow_name}' failed: {result.error}",
                extra=_log_context(context),
            )
        else:
            logger.info(
                f"Workflow '{result.workflow_name}' completed: "
                f"{len(result.actions)} executed, {len(result.skipped)} skipped",
                extra=_log_context(context),
            )
        return result

    async def _run_branch(
        self,
        tree: ActionTree,
        indices: tuple[int, ...],
        root: int,
        context: ExecutionContext,
        previous: ActionResult | None,
    ) -> list[str]:
        """Run branch children one after another; return unabsorbed failures."""
        failed: list[str] = []
        for index in indices:
            failed.extend(await self._run_node(tree, index, root, context, previous))
        return failed

    async def _run_node(
        self,
        tree: ActionTree,
        index: int,
        root: int,
        context: ExecutionContext,
        previous: ActionResult | None,
    ) -> list[str]:
        """Evaluate, execute and branch one action.

        Returns:
            Names of actions in this subtree that failed with no on_failure branch
        """
        node = tree[index]
        action = node.action
        key = LogKey(root, index)

        skip_reason = None
        detail = ""
        try:
            if not evaluate_conditions(action.conditions, context, previous):
                skip_reason = SkipReason.CONDITIONS_NOT_MET
        except InvalidConditionError as e:
            skip_reason = SkipReason.INVALID_CONDITION
            detail = str(e)
            logger.warning(
                f"Action '{action.name}' has an invalid condition: {e}",
                extra=_log_context(context, action),
            )

        if skip_reason is not None:
            logger.info(
                f"Skipping action '{action.name}' ({skip_reason.value})",
                extra=_log_context(context, action),
            )
            context.record_skip(key, SkippedAction(action.name, skip_reason, detail))
            return await self._run_branch(tree, node.on_failure, root, context, previous)

        action_result = await self._execute_action(action, context)
        context.record(key, action_result)

        if action_result.success:
            return await self._run_branch(tree, node.on_success, root, context, action_result)

        if not node.on_failure:
            return [action.name]
        return await self._run_branch(tree, node.on_failure, root, context, action_result)

    async def _execute_action(self, action: Action, context: ExecutionContext) -> ActionResult:
        """Dispatch one action and convert every outcome into an ActionResult."""
        start = datetime.now(UTC)

        def finish(
            level: int,
            message: str,
            success: bool,
            output: str = "",
            error: str | None = None,
            kind: ErrorKind = ErrorKind.NONE,
        ) -> ActionResult:
            result = ActionResult(
                name=action.name,
                type=action.type,
                start_time=start,
                end_time=datetime.now(UTC),
                success=success,
                output=output,
                error=error,
                error_kind=kind,
            )
            logger.log(level, message, extra=_log_context(context, action, result))
            return result

        try:
            parameters = assemble_parameters(action)
        except (PackError, ValidationError) as e:
            return finish(
                logging.ERROR,
                f"Action '{action.name}': failed to pack BOF arguments: {e}",
                False,
                error=f"packing failed: {e}",
                kind=ErrorKind.PACKING,
            )

        timeout = context.timeout
        if action.timeout_seconds is not None:
            timeout = action.timeout_seconds
        logger.info(
            f"Executing action '{action.name}' ({action.type})",
            extra=_log_context(context, action),
        )
        logger.debug(f"Action '{action.name}' parameters: {_describe(parameters)}")

        deadline = asyncio.timeout(timeout)
        try:
            async with deadline:
                raw = await context.client.execute_action(
                    context.beacon_id, action.type, parameters
                )
            outcome = _coerce_outcome(raw)
        except TimeoutError as e:
            if deadline.expired():
                err = ActionTimeoutError(
                    f"timeout: action '{action.name}' exceeded {timeout:g}s and was cancelled",
                    action=action.name,
                    timeout=timeout,
                )
                return finish(
                    logging.ERROR, str(err), False, error=str(err), kind=ErrorKind.TIMEOUT
                )
            return self._remote_failure(action, e, finish)
        except Exception as e:
            return self._remote_failure(action, e, finish)

        if outcome.success:
            return finish(
                logging.INFO, f"Action '{action.name}' succeeded", True, output=outcome.output
            )

        error = outcome.error or outcome.output or "remote action reported failure"
        return finish(
            logging.WARNING,
            f"Action '{action.name}' failed: {error}",
            False,
            output=outcome.output,
            error=error,
            kind=ErrorKind.REMOTE_CALL,
        )

    @staticmethod
    def _remote_failure(action: Action, cause: Exception, finish) -> ActionResult:
        err = cause
        if not isinstance(cause, RemoteCallError):
            err = RemoteCallError(
                f"remote call failed: {cause}", action=action.name, cause=cause
            )
        return finish(
            logging.ERROR,
            f"Action '{action.name}' failed: {err}",
            False,
            error=str(err),
            kind=ErrorKind.REMOTE_CALL,
        )


def _log_context(
    context: ExecutionContext, action: Action | None = None, result: ActionResult | None = None
) -> dict:
    """Structured fields for JSON logs."""
    fields = {"workflow": context.workflow_name, "beacon_id": context.beacon_id}
    if action is not None:
        fields["action"] = action.name
        fields["action_type"] = action.type
    if result is not None:
        fields["duration_ms"] = round(result.duration.total_seconds() * 1000, 2)
    return fields


def _describe(parameters: Mapping[str, Any]) -> dict:
    """Loggable view of parameters; packed buffers show as sizes."""
    return {
        key: f"<{len(value)} bytes>" if isinstance(value, bytes) else value
        for key, value in parameters.items()
    }
