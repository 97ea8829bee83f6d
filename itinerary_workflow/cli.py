# itinerary_workflow/cli.py
"""
CLI interface for itinerary-workflow.

Thin presentation layer over the tools/ service layer.
All commands delegate to the same functions that MCP and HTTP wrap.
"""

import asyncio
from pathlib import Path

import typer

app = typer.Typer(
    name="itinerary-workflow",
    help="Workflow session state, status queries and progress streaming.",
    no_args_is_help=True,
)

_CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to config.yaml")


def _run(coro):
    """Run async function from sync CLI context."""
    return asyncio.run(coro)


def _fmt_duration(ms: int | None) -> str:
    """Format milliseconds as human-readable duration (e.g. '5m17s', '42s')."""
    if ms is None:
        return "-"
    s = ms // 1000
    if s < 60:
        return f"{s}s"
    m, s = divmod(s, 60)
    return f"{m}m{s:02d}s"


def _status_color(status: str) -> str:
    """Return ANSI color for session status."""
    colors = {
        "completed": typer.colors.GREEN,
        "processing": typer.colors.YELLOW,
        "pending": typer.colors.CYAN,
        "failed": typer.colors.RED,
    }
    return colors.get(status, typer.colors.WHITE)


async def _get_lifecycle(config_path: Path | None = None):
    """Build and start a ServiceLifecycle from the user (or explicit) config."""
    from itinerary_workflow.background.lifecycle import ServiceLifecycle
    from itinerary_workflow.config.loader import load_config

    lifecycle = ServiceLifecycle(load_config(config_path))
    await lifecycle.startup()
    return lifecycle


def _validated_id(workflow_id: str) -> str:
    from itinerary_workflow.exceptions import InvalidWorkflowId
    from itinerary_workflow.validation.sanitize import sanitize_workflow_id

    try:
        return sanitize_workflow_id(workflow_id)
    except InvalidWorkflowId as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)


@app.command()
def status(
    workflow_id: str = typer.Argument(..., help="Workflow ID to check"),
    config: Path = _CONFIG_OPTION,
):
    """Check the status of a workflow run."""
    workflow_id = _validated_id(workflow_id)

    async def _status():
        lifecycle = await _get_lifecycle(config)
        try:
            return await lifecycle.status_service.get_status(workflow_id)
        finally:
            await lifecycle.shutdown()

    try:
        snapshot = _run(_status())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if snapshot is None:
        typer.echo(f"Workflow '{workflow_id}' not found. It may have expired.", err=True)
        raise typer.Exit(1)

    typer.echo(f"Workflow: {snapshot.workflow_id}")
    typer.echo(typer.style(f"Status:   {snapshot.status}", fg=_status_color(snapshot.status)))
    typer.echo(f"Stage:    {snapshot.current_stage}")
    typer.echo(f"Progress: {snapshot.progress}%")
    if snapshot.completed_steps:
        typer.echo(f"Steps:    {', '.join(snapshot.completed_steps)}")
    if snapshot.processing_time is not None:
        typer.echo(f"Time:     {_fmt_duration(snapshot.processing_time)}")
    if snapshot.error:
        typer.echo(typer.style(f"Error:    {snapshot.error}", fg=typer.colors.RED))


@app.command()
def watch(
    workflow_id: str = typer.Argument(..., help="Workflow ID to follow"),
    config: Path = _CONFIG_OPTION,
):
    """Follow a workflow run's progress events until it finishes."""
    from rich.console import Console

    workflow_id = _validated_id(workflow_id)
    console = Console()

    async def _watch() -> str | None:
        lifecycle = await _get_lifecycle(config)
        last_type = None
        try:
            broadcaster = lifecycle.open_broadcaster(workflow_id)
            async for event in broadcaster.stream():
                last_type = event.type
                if event.type == "connected":
                    console.print(f"[dim]Connected to {event.workflow_id}[/dim]")
                elif event.type == "progress":
                    steps = ", ".join(event.completed_steps) or "-"
                    console.print(
                        f"[cyan]{event.progress:>3}%[/cyan]  {event.current_stage:<11} "
                        f"[dim]{event.status} | done: {steps}[/dim]"
                    )
                elif event.type == "complete":
                    style = "green" if event.status == "completed" else "red"
                    console.print(
                        f"[bold {style}]{event.status}[/bold {style}] "
                        f"in {_fmt_duration(event.processing_time)}"
                    )
                    if event.error:
                        console.print(f"[red]{event.error}[/red]")
                elif event.type == "error":
                    console.print(f"[red]Error: {event.error}[/red]")
        finally:
            await lifecycle.shutdown()
        return last_type

    try:
        last_type = _run(_watch())
    except KeyboardInterrupt:
        typer.echo("\nStopped watching.", err=True)
        raise typer.Exit(130)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if last_type == "error":
        raise typer.Exit(1)
    if last_type != "complete":
        typer.echo("Stream closed before the workflow finished.", err=True)


@app.command()
def stats(config: Path = _CONFIG_OPTION):
    """Show live session counts per status."""
    from rich.console import Console
    from rich.table import Table

    from itinerary_workflow.tools.maintenance import session_stats

    async def _stats():
        lifecycle = await _get_lifecycle(config)
        try:
            return await session_stats(lifecycle.repository)
        finally:
            await lifecycle.shutdown()

    try:
        result = _run(_stats())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    table = Table(title="Workflow sessions")
    table.add_column("Status")
    table.add_column("Count", justify="right")
    for name in ("pending", "processing", "completed", "failed"):
        table.add_row(name, str(getattr(result, name)))
    table.add_row("[bold]total[/bold]", f"[bold]{result.total}[/bold]")
    Console().print(table)


@app.command()
def cleanup(config: Path = _CONFIG_OPTION):
    """Delete expired or unreadable session records."""
    from itinerary_workflow.tools.maintenance import cleanup_sessions

    async def _cleanup():
        lifecycle = await _get_lifecycle(config)
        try:
            return await cleanup_sessions(lifecycle.repository)
        finally:
            await lifecycle.shutdown()

    try:
        result = _run(_cleanup())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Removed {result.removed} session(s).")


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (overrides config)"),
    port: int = typer.Option(None, "--port", "-p", help="Bind port (overrides config)"),
    config: Path = _CONFIG_OPTION,
):
    """Serve the HTTP status and progress-stream API."""
    import uvicorn

    from itinerary_workflow.api.app import create_app
    from itinerary_workflow.background.lifecycle import ServiceLifecycle
    from itinerary_workflow.config.loader import load_config
    from itinerary_workflow.logging_config import configure_logging

    cfg = load_config(config)
    configure_logging(cfg.logging.level)
    api = create_app(ServiceLifecycle(cfg))
    uvicorn.run(
        api,
        host=host or cfg.server.host,
        port=port or cfg.server.port,
        log_config=None,
    )


@app.command()
def mcp():
    """Run the MCP server on stdio."""
    from itinerary_workflow.__main__ import main

    try:
        _run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    app()
