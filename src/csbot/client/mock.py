"""In-process scripted client.

Answers actions from a handler function instead of a C2 server. Useful for
rehearsing workflows offline (``client_factory = "csbot.client.mock:create_client"``)
and for tests.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from csbot.workflow.results import ActionOutcome

logger = logging.getLogger(__name__)

Handler = Callable[[str, str, Mapping[str, Any]], Any]


@dataclass(frozen=True)
class RecordedCall:
    beacon_id: str
    action_type: str
    parameters: dict


class ScriptedClient:
    """RemoteClient whose outcomes come from a handler.

    The handler receives ``(beacon_id, action_type, parameters)`` and returns an
    ActionOutcome (or a coroutine producing one), or raises to signal a failed
    remote call. Without a handler every action succeeds with an echo of its
    type.
    """

    def __init__(
        self,
        handler: Handler | None = None,
        delay: float = 0.0,
        beacons: list | None = None,
    ):
        self.handler = handler
        self.delay = delay
        self.beacons = list(beacons or [])
        self.calls: list[RecordedCall] = []
        self.cancelled: list[RecordedCall] = []
        self.active = 0
        self.max_active = 0
        self.logged_in_as: str | None = None

    async def login(self, username: str, password: str) -> None:
        self.logged_in_as = username

    async def execute_action(
        self, beacon_id: str, action_type: str, parameters: Mapping[str, Any]
    ) -> ActionOutcome:
        call = RecordedCall(beacon_id, action_type, dict(parameters))
        self.calls.append(call)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.handler is None:
                return ActionOutcome(output=f"{action_type} ok", success=True)
            outcome = self.handler(beacon_id, action_type, parameters)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            return outcome
        except asyncio.CancelledError:
            self.cancelled.append(call)
            raise
        finally:
            self.active -= 1

    async def list_beacons(self) -> list:
        return list(self.beacons)

    async def get_beacon(self, beacon_id: str):
        for beacon in self.beacons:
            if beacon.bid == beacon_id:
                return beacon
        raise LookupError(f"Beacon not found: {beacon_id}")


def create_client(settings=None) -> ScriptedClient:
    """Client factory for ``settings.client_factory``."""
    logger.warning("Using scripted client: no actions reach a real beacon")
    return ScriptedClient()
