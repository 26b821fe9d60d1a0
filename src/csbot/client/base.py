"""Remote client contract and factory resolution.

csbot never speaks the C2 wire protocol itself. The engine drives any object
implementing ``RemoteClient``; the CLI builds one from the dotted path in
``settings.client_factory``.
"""

from __future__ import annotations

import importlib
import inspect
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from csbot.errors import ConfigError
from csbot.workflow.results import ActionOutcome

if TYPE_CHECKING:
    from csbot.config.settings import Settings
    from csbot.selector.beacons import Beacon

logger = logging.getLogger(__name__)


@runtime_checkable
class RemoteClient(Protocol):
    """An already-authenticated handle to the C2 API.

    Must tolerate concurrent ``execute_action`` calls and must let
    ``asyncio.CancelledError`` propagate so timeouts can cancel the call.
    """

    async def execute_action(
        self, beacon_id: str, action_type: str, parameters: Mapping[str, Any]
    ) -> ActionOutcome: ...


@runtime_checkable
class BeaconDirectory(Protocol):
    """Optional client capability used by the beacon selector and validator."""

    async def list_beacons(self) -> list[Beacon]: ...

    async def get_beacon(self, beacon_id: str) -> Beacon: ...


def load_factory(path: str):
    """Import the callable named by ``"package.module:attribute"``."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"client_factory must look like 'module:callable', got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import client factory module '{module_name}': {e}")
    factory = module
    for part in attr.split("."):
        factory = getattr(factory, part, None)
        if factory is None:
            raise ConfigError(f"Client factory '{path}' not found")
    if not callable(factory):
        raise ConfigError(f"Client factory '{path}' is not callable")
    return factory


async def create_client(settings: Settings) -> RemoteClient:
    """Build the remote client configured in settings.

    The factory receives the settings object and may be sync or async.
    """
    if not settings.client_factory:
        raise ConfigError(
            "No remote client configured",
            ["Set client_factory (CSBOT_CLIENT_FACTORY) to 'module:callable'"],
        )
    factory = load_factory(settings.client_factory)
    client = factory(settings)
    if inspect.isawaitable(client):
        client = await client
    if not isinstance(client, RemoteClient):
        raise ConfigError(
            f"Client from '{settings.client_factory}' has no execute_action coroutine"
        )
    logger.debug(f"Created remote client {type(client).__name__}")
    return client


async def close_client(client: Any) -> None:
    """Close a client if it exposes ``close`` / ``aclose``."""
    closer = getattr(client, "aclose", None) or getattr(client, "close", None)
    if closer is None:
        return
    result = closer()
    if inspect.isawaitable(result):
        await result
