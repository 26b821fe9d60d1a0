"""Beacon listing command."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.markup import escape

from csbot.client import close_client
from csbot.errors import BeaconSelectionError
from csbot.selector import BeaconFilter, list_beacons

from ..helpers import build_settings, connect, console, err_console, setup_logging


async def _list_async(settings, beacon_filter: BeaconFilter) -> None:
    client = await connect(settings)
    try:
        await list_beacons(client, beacon_filter, console=console)
    finally:
        await close_client(client)


def beacons(
    config: Path | None = typer.Option(None, "--config", "-c", help="Configuration YAML file"),
    host: str | None = typer.Option(None, "--host", help="Team server host (overrides config)"),
    port: int | None = typer.Option(None, "--port", help="REST API port (overrides config)"),
    username: str | None = typer.Option(None, "--username", "-u", help="Operator username"),
    password: str | None = typer.Option(None, "--password", help="Operator password"),
    insecure: bool = typer.Option(False, "--insecure", help="Skip TLS verification"),
    log_level: str | None = typer.Option(None, "--log-level", help="debug, info, warn, error"),
    user: str = typer.Option("", "--user", help="User name contains (case-insensitive)"),
    hostname: str = typer.Option("", "--hostname", help="Hostname contains (case-insensitive)"),
    admin: bool = typer.Option(False, "--admin", help="Only elevated beacons"),
    alive: bool = typer.Option(False, "--alive", help="Only alive beacons"),
    minutes: int = typer.Option(0, "--minutes", min=0, help="Checked in within N minutes"),
):
    """List beacons known to the team server."""
    settings = build_settings(config, host, port, username, password, insecure, log_level)
    setup_logging(settings)

    beacon_filter = BeaconFilter(
        user=user, hostname=hostname, admin_only=admin, alive_only=alive, minutes_ago=minutes
    )
    try:
        asyncio.run(_list_async(settings, beacon_filter))
    except BeaconSelectionError as e:
        err_console.print(f"[red]{escape(e.message)}[/red]")
        raise typer.Exit(1)
