"""Remote client contract.

csbot drives an already-authenticated client; it ships only the protocol,
factory resolution and an in-process scripted client.
"""

from csbot.client.base import (
    BeaconDirectory,
    RemoteClient,
    close_client,
    create_client,
    load_factory,
)
from csbot.client.mock import ScriptedClient
from csbot.workflow.results import ActionOutcome

__all__ = [
    "ActionOutcome",
    "BeaconDirectory",
    "RemoteClient",
    "ScriptedClient",
    "close_client",
    "create_client",
    "load_factory",
]
