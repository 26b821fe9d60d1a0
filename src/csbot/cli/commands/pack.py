"""Pack BOF arguments from the command line."""

from __future__ import annotations

import base64

import typer
from rich.markup import escape

from csbot.bof import BOFArgument, pack_bof_arguments
from csbot.errors import PackError

from ..helpers import console, err_console


def parse_argument(text: str) -> BOFArgument:
    """Parse ``type:value``; the value may itself contain colons."""
    arg_type, sep, value = text.partition(":")
    if not sep or not arg_type:
        raise typer.BadParameter(f"expected TYPE:VALUE, got {text!r}")
    return BOFArgument(arg_type, value)


def pack(
    arguments: list[str] = typer.Argument(
        None, help="Arguments as TYPE:VALUE (int/i, short/s, string/z, wstring/Z, binary/b)"
    ),
    hex_output: bool = typer.Option(False, "--hex", help="Print hex instead of base64"),
):
    """Pack BOF arguments and print the buffer.

    [bold]Example:[/bold]

        csbot pack Z:C:\\Windows i:12112
    """
    args = [parse_argument(item) for item in arguments or []]
    try:
        packed = pack_bof_arguments(args)
    except PackError as e:
        err_console.print(f"[red]Packing failed:[/red] {escape(e.message)}")
        raise typer.Exit(1)

    if hex_output:
        console.print(packed.hex(), highlight=False, soft_wrap=True)
    else:
        console.print(base64.b64encode(packed).decode("ascii"), highlight=False, soft_wrap=True)
