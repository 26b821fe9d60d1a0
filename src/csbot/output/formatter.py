"""Workflow result formatting: text, JSON and CSV."""

from __future__ import annotations

import csv
import json
import sys
from enum import Enum
from typing import TextIO

from rich.console import Console
from rich.markup import escape

from csbot.workflow.results import ExecutionResult

CSV_HEADER = ["Action", "Type", "StartTime", "EndTime", "Duration(s)", "Success", "Output", "Error"]


class OutputFormat(str, Enum):
    TEXT = "text"
    JSON = "json"
    CSV = "csv"


def format_seconds(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, secs = divmod(seconds, 60)
    return f"{int(minutes)}m{secs:.1f}s"


class ResultFormatter:
    """Writes an ExecutionResult to a stream in one of the supported formats."""

    def __init__(self, format: str | OutputFormat = OutputFormat.TEXT, stream: TextIO | None = None):
        try:
            self.format = OutputFormat(format)
        except ValueError:
            raise ValueError(f"unsupported format: {format}") from None
        self.stream = stream or sys.stdout

    def write_result(self, result: ExecutionResult) -> None:
        if self.format is OutputFormat.JSON:
            self._write_json(result)
        elif self.format is OutputFormat.CSV:
            self._write_csv(result)
        else:
            self._write_text(result)

    def _write_json(self, result: ExecutionResult) -> None:
        json.dump(result.to_dict(), self.stream, indent=2)
        self.stream.write("\n")

    def _write_csv(self, result: ExecutionResult) -> None:
        writer = csv.writer(self.stream, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for action in result.actions:
            writer.writerow(
                [
                    action.name,
                    action.type,
                    action.start_time.isoformat(timespec="seconds"),
                    action.end_time.isoformat(timespec="seconds"),
                    f"{action.duration.total_seconds():.2f}",
                    "true" if action.success else "false",
                    action.output,
                    action.error or "",
                ]
            )

    def _write_text(self, result: ExecutionResult) -> None:
        console = Console(
            file=self.stream, highlight=False, soft_wrap=True, force_terminal=False, width=120
        )
        status = "[green]✓ SUCCESS[/green]" if result.success else "[red]✗ FAILED[/red]"

        console.print()
        console.print("[bold]=== Workflow Execution Summary ===[/bold]")
        console.print(f"Workflow: {escape(result.workflow_name)}")
        console.print(f"Beacon ID: {escape(result.beacon_id or '-')}")
        if result.operator:
            console.print(f"Operator: {escape(result.operator)}")
        console.print(f"Start Time: {result.started_at.isoformat(timespec='seconds')}")
        if result.completed_at:
            console.print(f"End Time: {result.completed_at.isoformat(timespec='seconds')}")
        console.print(f"Duration: {format_seconds(result.duration.total_seconds())}")
        console.print(f"Status: {status}")
        if result.error:
            console.print(f"Error: {escape(str(result.error))}")

        console.print()
        console.print(f"[bold]=== Actions ({len(result.actions)} total) ===[/bold]")
        for i, action in enumerate(result.actions, 1):
            console.print()
            console.print(f"[{i}] {action.name} ({action.type})", markup=False)
            console.print(f"    Duration: {format_seconds(action.duration.total_seconds())}")
            if action.success:
                console.print("    Status: [green]✓ Success[/green]")
                if action.output:
                    console.print(f"    Output: {escape(action.output)}")
            else:
                console.print(f"    Status: [red]✗ Failed[/red] ({action.error_kind.value})")
                if action.error:
                    console.print(f"    Error: {escape(action.error)}")

        if result.skipped:
            console.print()
            console.print(f"[bold]=== Skipped ({len(result.skipped)}) ===[/bold]")
            for skip in result.skipped:
                line = f"  - {escape(skip.name)}: {skip.reason.value}"
                if skip.detail:
                    line += f" ({escape(skip.detail)})"
                console.print(line)
        console.print()
