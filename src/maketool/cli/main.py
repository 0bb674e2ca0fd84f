"""CLI entrypoints for maketool."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from maketool.app import (
    AppConfigError,
    describe_workspace,
    initialize_config,
    list_tools,
    run_target,
)
from maketool.execution.base import MakeExecutionError, serialize_result
from maketool.util.logging import configure_logging

app = typer.Typer(help="Run make targets with a timeout and bounded parallelism.")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (e.g., DEBUG, INFO, WARNING). Defaults to the configured level.",
    ),
) -> None:
    """Configure CLI-level options."""

    if log_level is not None:
        configure_logging(log_level)


@app.command()
def init(workspace: Path = typer.Argument(Path("."))) -> None:
    """Initialize configuration for a project workspace."""

    try:
        config_path = initialize_config(workspace)
    except AppConfigError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    typer.echo(f"Created configuration at {config_path}")


@app.command("run")
def run_command(
    target: str = typer.Argument(..., help="Make target to run."),
    workspace: Path = typer.Option(
        Path("."),
        "--workspace",
        "-w",
        help="Path to the workspace root.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Override the configured timeout in seconds.",
    ),
) -> None:
    """Run a make target and print its result as JSON."""

    try:
        result = run_target(target=target, workspace=workspace, timeout_s=timeout)
    except MakeExecutionError as exc:
        if exc.result is not None:
            typer.echo(serialize_result(exc.result))
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except Exception as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(serialize_result(result))


@app.command("describe")
def describe_command(
    workspace: Path = typer.Option(
        Path("."),
        "--workspace",
        "-w",
        help="Path to the workspace root.",
    ),
) -> None:
    """Print the project's help listing without its Notes section."""

    try:
        text = describe_workspace(workspace)
    except Exception as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(text)


@app.command("tools")
def tools_command(
    workspace: Path = typer.Option(
        Path("."),
        "--workspace",
        "-w",
        help="Path to the workspace root.",
    ),
) -> None:
    """List the tools served for the workspace."""

    try:
        tools = list_tools(workspace)
    except Exception as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    for entry in tools:
        arguments = ", ".join(entry["parameters"])
        summary = entry["description"].splitlines()[0]
        typer.echo(f"{entry['name']}({arguments}): {summary}")
