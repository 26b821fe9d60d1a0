"""Shared helpers for CLI modules: settings, logging and the remote client."""

from __future__ import annotations

import inspect
import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from csbot.client import close_client, create_client
from csbot.config import Settings, configure_logging, load_settings
from csbot.errors import ConfigError

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def build_settings(
    config_file: Path | None = None,
    host: str | None = None,
    port: int | None = None,
    username: str | None = None,
    password: str | None = None,
    insecure: bool = False,
    log_level: str | None = None,
) -> Settings:
    """Load settings with command line flags layered on top.

    Exits with status 1 when the configuration cannot be loaded.
    """
    server = {
        key: value
        for key, value in {
            "host": host,
            "port": port,
            "username": username,
            "password": password,
        }.items()
        if value
    }
    if insecure:
        server["insecure"] = True

    overrides = {}
    if server:
        overrides["server"] = server
    if log_level:
        overrides["logging"] = {"level": log_level}

    try:
        return load_settings(config_file, **overrides)
    except ConfigError as e:
        err_console.print(f"[red]Failed to load configuration:[/red] {escape(e.message)}")
        raise typer.Exit(1)


def setup_logging(settings: Settings, quiet_stdout: bool = False) -> None:
    """Configure logging from settings.

    Args:
        quiet_stdout: Send console logs to stderr so machine-readable output
            on stdout stays clean
    """
    configure_logging(
        level=settings.logging.level,
        format=settings.logging.format,
        log_file=settings.logging.file,
        sanitize_logs=settings.logging.sanitize,
        stream=sys.stderr if quiet_stdout else sys.stdout,
    )


async def connect(settings: Settings):
    """Create the configured client and log in when it supports it.

    Exits with status 1 on configuration or authentication failure.
    """
    try:
        settings.validate_for_run()
        client = await create_client(settings)
    except ConfigError as e:
        err_console.print(f"[red]{escape(e.message)}[/red]")
        for problem in e.problems:
            if problem not in e.message:
                err_console.print(f"  - {escape(problem)}")
        raise typer.Exit(1)

    login = getattr(client, "login", None)
    if login is not None:
        logger.info(f"Authenticating as {settings.server.username}...")
        try:
            outcome = login(settings.server.username, settings.server.password.get_secret_value())
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"Authentication failed: {e}")
            await close_client(client)
            raise typer.Exit(1)
        logger.info("Authentication successful")
    return client
