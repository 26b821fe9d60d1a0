"""csbot CLI - Main entry point."""

from __future__ import annotations

from typing import Annotated

import typer

from csbot import __version__

from .helpers import console

app = typer.Typer(
    name="csbot",
    help="Replay declarative workflows against Cobalt Strike beacons.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold cyan]csbot[/bold cyan] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
):
    """csbot - Cobalt Strike workflow automation.

    [bold]Quick Start:[/bold]

        csbot validate recon.yaml        Check a workflow offline
        csbot run recon.yaml --dry-run   Show what would execute
        csbot run recon.yaml -o json     Execute and print JSON results
        csbot beacons --alive            List live beacons
        csbot pack Z:C:\\Windows i:80     Build a BOF argument buffer
    """
    pass


# =============================================================================
# Register commands
# =============================================================================

from .commands.beacons import beacons  # noqa: E402
from .commands.pack import pack  # noqa: E402
from .commands.workflow import list_cmd, run, validate  # noqa: E402

app.command()(run)
app.command()(validate)
app.command("list")(list_cmd)
app.command()(beacons)
app.command()(pack)


if __name__ == "__main__":
    app()
