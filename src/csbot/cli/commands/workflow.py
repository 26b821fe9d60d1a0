"""Workflow commands: run, validate, list."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from csbot.client import close_client
from csbot.errors import BeaconSelectionError, ValidationError
from csbot.output import OutputFormat, ResultFormatter
from csbot.selector import display_beacon_details, select_beacon
from csbot.workflow import (
    DEFAULT_MAX_DEPTH,
    Action,
    Credentials,
    ValidationIssue,
    Workflow,
    WorkflowExecutor,
    WorkflowValidator,
    has_errors,
    list_workflows,
    load_workflow,
)

from ..helpers import build_settings, connect, console, err_console, setup_logging

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load(workflow_file: Path, max_depth: int) -> Workflow:
    try:
        return load_workflow(workflow_file, max_depth=max_depth)
    except FileNotFoundError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)
    except ValidationError as e:
        err_console.print(f"[red]Failed to load workflow:[/red] {escape(e.message)}")
        raise typer.Exit(1)


def _output_validation_results(issues: list[ValidationIssue], workflow_file: Path) -> None:
    """Print validation findings; exit 1 when any is an error."""
    errors = [i for i in issues if i.is_error]
    warnings = [i for i in issues if not i.is_error]

    if errors:
        err_console.print(
            Panel(
                "\n".join(f"[red]✗[/red] {escape(str(e))}" for e in errors),
                title="Errors",
                border_style="red",
            )
        )
    if warnings:
        err_console.print(
            Panel(
                "\n".join(f"[yellow]![/yellow] {escape(str(w))}" for w in warnings),
                title="Warnings",
                border_style="yellow",
            )
        )

    if not issues:
        err_console.print(f"[green]✓ Workflow is valid:[/green] {workflow_file}")
    elif not errors:
        err_console.print("[green]✓ Workflow is valid with warnings[/green]")
    else:
        err_console.print("[red]✗ Validation failed[/red]")
        raise typer.Exit(1)


def _add_action_node(parent: Tree, action: Action) -> None:
    node = parent.add(f"[bold]{escape(action.name)}[/bold] [dim]({escape(action.type)})[/dim]")
    for key, value in action.parameters.items():
        if isinstance(value, tuple):
            shown = ", ".join(f"{arg.type}:{arg.value!r}" for arg in value)
            node.add(escape(f"{key}: [{shown}]"))
        else:
            node.add(escape(f"{key}: {value!r}"))
    for condition in action.conditions:
        node.add(
            "[cyan]if[/cyan] "
            + escape(f"{condition.source} {condition.operator} {condition.value!r}")
        )
    if action.timeout_seconds:
        node.add(f"[dim]timeout {action.timeout_seconds:g}s[/dim]")
    if action.on_success:
        branch = node.add("[green]on_success[/green]")
        for child in action.on_success:
            _add_action_node(branch, child)
    if action.on_failure:
        branch = node.add("[red]on_failure[/red]")
        for child in action.on_failure:
            _add_action_node(branch, child)


def _display_workflow_preview(workflow: Workflow) -> None:
    """Show what a run would execute."""
    mode = "PARALLEL" if workflow.parallel else "SEQUENTIAL"
    beacon = escape(workflow.beacon_id or "<prompt>")
    tree = Tree(f"[bold]{escape(workflow.name)}[/bold] [dim]beacon={beacon} {mode}[/dim]")
    for action in workflow.actions:
        _add_action_node(tree, action)
    console.print(tree)


async def _run_async(
    workflow_file: Path,
    settings,
    output_format: OutputFormat,
    output_file: Path | None,
    dry_run: bool,
    beacon: str | None,
) -> bool:
    workflow = _load(workflow_file, settings.engine.max_depth)
    logger.info(f"Loaded workflow: {workflow.name}")
    if beacon:
        workflow = workflow.with_beacon(beacon)

    client = None
    if dry_run:
        logger.info("Skipping authentication in dry-run mode")
    else:
        client = await connect(settings)

    try:
        logger.info("Validating workflow...")
        validator = WorkflowValidator(client, max_depth=settings.engine.max_depth)
        issues = await validator.validate(workflow)
        for issue in issues:
            if issue.is_error:
                logger.error(str(issue))
            else:
                logger.warning(str(issue))
        if has_errors(issues):
            logger.error("Workflow validation failed with errors")
            raise typer.Exit(1)

        if dry_run:
            _display_workflow_preview(workflow)
            logger.info("Dry run complete. No actions were executed.")
            return True

        if not workflow.beacon_id:
            logger.info("No beacon ID specified in workflow, prompting for selection...")
            try:
                beacon_id = await select_beacon(client, console=console)
            except BeaconSelectionError as e:
                logger.error(f"Beacon selection failed: {e}")
                raise typer.Exit(1)
            workflow = workflow.with_beacon(beacon_id)
            try:
                await display_beacon_details(client, beacon_id, console=console)
            except BeaconSelectionError as e:
                logger.warning(f"Could not display beacon details: {e}")
        else:
            logger.info(f"Using beacon ID: {workflow.beacon_id}")

        executor = WorkflowExecutor(
            client,
            task_timeout=settings.timeouts.task_timeout,
            max_depth=settings.engine.max_depth,
        )
        credentials = Credentials(
            settings.server.username, settings.server.password.get_secret_value()
        )
        result = await executor.execute_async(workflow, credentials)
    finally:
        if client is not None:
            await close_client(client)

    if output_file:
        with open(output_file, "w", encoding="utf-8", newline="") as f:
            ResultFormatter(output_format, f).write_result(result)
        logger.info(f"Results written to {output_file}")
    else:
        ResultFormatter(output_format, console.file).write_result(result)

    return result.success


# ---------------------------------------------------------------------------
# Commands (registered by main.py)
# ---------------------------------------------------------------------------


def run(
    workflow_file: Path = typer.Argument(..., help="Path to workflow YAML file"),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Configuration YAML file (default: csbot.yaml search)"
    ),
    host: str | None = typer.Option(None, "--host", help="Team server host (overrides config)"),
    port: int | None = typer.Option(None, "--port", help="REST API port (overrides config)"),
    username: str | None = typer.Option(
        None, "--username", "-u", help="Operator username (overrides config)"
    ),
    password: str | None = typer.Option(
        None, "--password", help="Operator password (overrides config)"
    ),
    insecure: bool = typer.Option(False, "--insecure", help="Skip TLS verification"),
    log_level: str | None = typer.Option(
        None, "--log-level", help="debug, info, warn, error (overrides config)"
    ),
    output: OutputFormat = typer.Option(OutputFormat.TEXT, "--output", "-o", help="Result format"),
    output_file: Path | None = typer.Option(
        None, "--output-file", help="Write results to file instead of stdout"
    ),
    beacon: str | None = typer.Option(
        None, "--beacon", "-b", help="Beacon ID (overrides the workflow)"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Validate and show what would execute without running"
    ),
):
    """Run a workflow against a beacon."""
    settings = build_settings(config, host, port, username, password, insecure, log_level)
    setup_logging(settings, quiet_stdout=output is not OutputFormat.TEXT and not output_file)

    success = asyncio.run(
        _run_async(workflow_file, settings, output, output_file, dry_run, beacon)
    )
    if not success:
        raise typer.Exit(1)


def validate(
    workflow_file: Path = typer.Argument(..., help="Path to workflow YAML file"),
):
    """Validate a workflow file without contacting the team server."""
    workflow = _load(workflow_file, DEFAULT_MAX_DEPTH)
    issues = asyncio.run(WorkflowValidator().validate(workflow))
    _output_validation_results(issues, workflow_file)


def list_cmd(
    directory: Path = typer.Argument(Path("workflows"), help="Directory of workflow files"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """List workflow files in a directory."""
    workflows = list_workflows(directory)

    if json_output:
        print(json.dumps(workflows, indent=2))
        return

    if not workflows:
        console.print(f"[yellow]No workflows found in {directory}[/yellow]")
        return

    table = Table(title="Available Workflows")
    table.add_column("Name", style="bold")
    table.add_column("Path", style="cyan")
    table.add_column("Description")
    table.add_column("Actions", justify="right")
    for wf in workflows:
        table.add_row(
            str(wf["name"]),
            wf["path"],
            str(wf.get("description") or "-")[:50],
            str(wf["actions"]),
        )
    console.print(table)
