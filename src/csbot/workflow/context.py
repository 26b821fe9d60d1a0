"""Per-run execution state shared by every branch of a workflow run."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from .results import ActionResult, SkippedAction


@dataclass(frozen=True, order=True)
class LogKey:
    """Position of a result in the deterministic log order.

    ``root`` is the declaration index of the originating top-level action and
    ``sequence`` the pre-order position of the action inside that subtree.
    """

    root: int
    sequence: int


class ExecutionContext:
    """Mutable run state: the ordered result log and the name lookup table.

    Appends may come from several asyncio tasks and reads from other threads,
    so every access goes through one lock. Snapshots are always returned in
    ``LogKey`` order, never in completion order.
    """

    def __init__(self, client, beacon_id: str, timeout: float, workflow_name: str = ""):
        self.client = client
        self.beacon_id = beacon_id
        self.timeout = timeout
        self.workflow_name = workflow_name
        self._lock = threading.Lock()
        self._results: list[tuple[LogKey, ActionResult]] = []
        self._skipped: list[tuple[LogKey, SkippedAction]] = []
        self._by_name: dict[str, ActionResult] = {}

    def record(self, key: LogKey, result: ActionResult) -> None:
        """Append a result and publish it for condition lookups."""
        with self._lock:
            self._results.append((key, result))
            self._by_name[result.name] = result

    def record_skip(self, key: LogKey, skipped: SkippedAction) -> None:
        with self._lock:
            self._skipped.append((key, skipped))

    def lookup(self, name: str) -> ActionResult | None:
        """Most recent result recorded under an action name."""
        with self._lock:
            return self._by_name.get(name)

    def results(self) -> list[ActionResult]:
        with self._lock:
            ordered = sorted(self._results, key=lambda entry: entry[0])
        return [result for _, result in ordered]

    def skipped(self) -> list[SkippedAction]:
        with self._lock:
            ordered = sorted(self._skipped, key=lambda entry: entry[0])
        return [skip for _, skip in ordered]

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)
