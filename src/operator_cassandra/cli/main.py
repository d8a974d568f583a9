"""Cassandra operator CLI - topology bootstrap and scaling coordinator.

Commands:
- run: Reconcile continuously until interrupted
- plan: Run one pass without scaling and print the fact sheet
- seeds: Print seed counts for the declared topology
- jobs: Inspect and clean up decommission jobs

Every option can also be given through the environment variable named in
its help text.
"""

import asyncio
from pathlib import Path

import typer
from rich.table import Table

from operator_cassandra.cli.common import configure_logging, console, get_cluster, get_settings
from operator_cassandra.cli.jobs import jobs_app
from operator_cassandra.db import AddressDB, JobDB
from operator_cassandra.errors import OperatorError
from operator_cassandra.facts import DirectoryFactSheetPublisher
from operator_cassandra.factory import create_jolokia_client, create_prober_client
from operator_cassandra.jobs import DecommissionJobTracker
from operator_cassandra.loop import ReconcileLoop
from operator_cassandra.reconciler import ClusterReconciler
from operator_cassandra.scaling import ScaleCoordinator
from operator_cassandra.seeds import dc_seed_count, seed_hostname
from operator_cassandra.snapshot import SnapshotMembershipProvider

app = typer.Typer(
    name="operator-cassandra",
    help="Bootstrap ordering and scaling coordinator for Cassandra clusters",
    no_args_is_help=True,
)

app.add_typer(jobs_app, name="jobs")


@app.command("run")
def run(
    cluster_file: Path = typer.Argument(..., help="Cluster declaration (YAML)"),
    snapshot: Path = typer.Option(
        ..., "--snapshot", "-s", envvar="CASSANDRA_SNAPSHOT", help="Membership snapshot file (YAML)"
    ),
    output: Path = typer.Option(
        Path("pods"), "--output", "-o", envvar="CASSANDRA_FACTS_DIR", help="Directory for per-member config scripts"
    ),
    config: Path = typer.Option(None, "--config", "-c", envvar="OPERATOR_CONFIG", help="Settings file"),
    prober_url: str = typer.Option(None, "--prober", envvar="PROBER_URL", help="Local prober URL"),
    jolokia_url: str = typer.Option(None, "--jolokia", envvar="JOLOKIA_URL", help="Jolokia proxy URL"),
    db_path: Path = typer.Option(None, "--db", help="Path to coordinator database"),
    interval: float = typer.Option(None, "--interval", "-i", help="Seconds between passes once converged"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """
    Run the coordinator until interrupted with Ctrl+C.
    """
    configure_logging(verbose)
    settings = get_settings(
        config,
        prober_url=prober_url,
        jolokia_url=jolokia_url,
        db_path=db_path,
        interval_seconds=interval,
    )
    cluster = get_cluster(cluster_file)

    console.print(f"Starting coordinator for cluster: {cluster.name}")
    console.print(f"  Region: {cluster.region_host}")
    console.print(f"  Prober: {settings.prober_url}")
    console.print(f"  Jolokia: {settings.jolokia_url}")
    console.print(f"  Database: {settings.db_path}")
    console.print(f"  Output: {output}")
    console.print()

    async def _run() -> None:
        prober = create_prober_client(settings)
        nodes = create_jolokia_client(settings)
        provider = SnapshotMembershipProvider(snapshot)

        async with prober.http, nodes.http:
            async with JobDB(settings.db_path) as job_db, AddressDB(settings.db_path) as address_db:
                tracker = DecommissionJobTracker(job_db, lease_seconds=settings.job_lease_seconds)
                reconciler = ClusterReconciler(
                    cluster=cluster,
                    settings=settings,
                    provider=provider,
                    gateway=prober,
                    scaler=ScaleCoordinator(provider, nodes, tracker),
                    address_book=address_db,
                    publisher=DirectoryFactSheetPublisher(output),
                )
                loop = ReconcileLoop(
                    reconciler,
                    interval_seconds=settings.interval_seconds,
                    error_retry_seconds=settings.progress_retry_seconds,
                )
                tracker.on_finished = lambda name: loop.wake()
                try:
                    await loop.run()
                finally:
                    await tracker.close()

    try:
        asyncio.run(_run())
    except OperatorError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command("plan")
def plan(
    cluster_file: Path = typer.Argument(..., help="Cluster declaration (YAML)"),
    snapshot: Path = typer.Option(
        ..., "--snapshot", "-s", envvar="CASSANDRA_SNAPSHOT", help="Membership snapshot file (YAML)"
    ),
    config: Path = typer.Option(None, "--config", "-c", envvar="OPERATOR_CONFIG", help="Settings file"),
    prober_url: str = typer.Option(None, "--prober", envvar="PROBER_URL", help="Local prober URL"),
    db_path: Path = typer.Option(None, "--db", help="Path to coordinator database"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """
    Run one pass without scaling and print the resulting fact sheet.

    Seeds and readiness are still exchanged with the prober, since the
    decisions depend on them. Nothing is written to the output directory.
    """
    configure_logging(verbose)
    settings = get_settings(config, prober_url=prober_url, db_path=db_path)
    cluster = get_cluster(cluster_file)

    async def _plan():
        prober = create_prober_client(settings)
        async with prober.http, AddressDB(settings.db_path) as address_db:
            reconciler = ClusterReconciler(
                cluster=cluster,
                settings=settings,
                provider=SnapshotMembershipProvider(snapshot),
                gateway=prober,
                scaler=None,
                address_book=address_db,
            )
            return await reconciler.reconcile_once()

    try:
        result = asyncio.run(_plan())
    except OperatorError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if result.aborted:
        console.print(f"[yellow]Pass aborted:[/yellow] {result.reason}")
        console.print(f"Retry in {result.requeue_after}s")
        raise typer.Exit(1)

    table = Table(title=f"Fact sheet for {cluster.name}")
    table.add_column("Member", style="cyan")
    table.add_column("Pause", justify="center")
    table.add_column("Reason")
    table.add_column("Broadcast")
    table.add_column("Previous")
    for facts in result.facts.values():
        table.add_row(
            facts.member,
            "[red]yes[/red]" if facts.pause else "[green]no[/green]",
            facts.reason,
            facts.broadcast_address,
            facts.previous_address or "-",
        )
    console.print(table)
    console.print(f"Seeds: {', '.join(result.seeds)}")
    if not result.converged:
        console.print(f"Not converged: {result.reason}")


@app.command("seeds")
def seeds(
    cluster_file: Path = typer.Argument(..., help="Cluster declaration (YAML)"),
) -> None:
    """Print the seed count and seed hostnames of each declared datacenter."""
    cluster = get_cluster(cluster_file)

    table = Table(title=f"Seeds for {cluster.name} (target {cluster.num_seeds})")
    table.add_column("Datacenter", style="cyan")
    table.add_column("Replicas", justify="right")
    table.add_column("Seeds", justify="right")
    table.add_column("Seed hostnames")
    for dc in cluster.datacenters:
        count = dc_seed_count(cluster, dc)
        hostnames = [seed_hostname(cluster, dc.name, i) for i in range(count)]
        table.add_row(dc.name, str(dc.replicas), str(count), "\n".join(hostnames) or "-")
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
