"""Decommission job CLI commands.

This module provides CLI commands for inspecting the job registry:
- list: Display all decommission jobs
- remove: Delete a finished (or orphaned) job record
"""

import asyncio
from pathlib import Path

import typer
from rich.table import Table

from operator_cassandra.cli.common import console, get_settings
from operator_cassandra.db import JobDB
from operator_cassandra.errors import JobStillRunningError
from operator_cassandra.jobs import DecommissionJobTracker

jobs_app = typer.Typer(help="Manage decommission jobs")


def _format_time(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


@jobs_app.command("list")
def list_jobs(
    config: Path = typer.Option(None, "--config", "-c", envvar="OPERATOR_CONFIG", help="Settings file"),
    db_path: Path = typer.Option(None, "--db", help="Path to coordinator database"),
) -> None:
    """List all decommission jobs."""
    settings = get_settings(config, db_path=db_path)

    async def _list() -> None:
        async with JobDB(settings.db_path) as db:
            tracker = DecommissionJobTracker(db, lease_seconds=settings.job_lease_seconds)
            jobs = await tracker.list_jobs()
            live = {job.name: await tracker.is_running(job.name) for job in jobs}

        table = Table(title="Decommission Jobs")
        table.add_column("Name", style="cyan")
        table.add_column("Member")
        table.add_column("Status", style="green")
        table.add_column("Owner")
        table.add_column("Started")
        table.add_column("Heartbeat")
        table.add_column("Error")

        for job in jobs:
            status = job.status.value
            if job.running and not live[job.name]:
                status = "[yellow]orphaned[/yellow]"
            table.add_row(
                job.name,
                job.target_member,
                status,
                job.owner or "-",
                _format_time(job.started_at),
                _format_time(job.heartbeat_at),
                job.error or "",
            )

        console.print(table)

    asyncio.run(_list())


@jobs_app.command("remove")
def remove_job(
    name: str = typer.Argument(..., help="Job name (pod-decommission-<member>)"),
    config: Path = typer.Option(None, "--config", "-c", envvar="OPERATOR_CONFIG", help="Settings file"),
    db_path: Path = typer.Option(None, "--db", help="Path to coordinator database"),
) -> None:
    """Remove a job that is no longer running."""
    settings = get_settings(config, db_path=db_path)

    async def _remove() -> None:
        async with JobDB(settings.db_path) as db:
            tracker = DecommissionJobTracker(db, lease_seconds=settings.job_lease_seconds)
            try:
                removed = await tracker.remove_job(name)
            except JobStillRunningError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1)

        if removed:
            console.print(f"Removed job {name}")
        else:
            console.print(f"Job {name} not found")

    asyncio.run(_remove())
