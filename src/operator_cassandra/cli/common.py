"""Helpers shared by CLI commands: logging setup and configuration loading."""

import logging
from pathlib import Path

import pydantic
import typer
from rich.console import Console
from rich.logging import RichHandler

from operator_cassandra.config import ClusterSpec, OperatorSettings, load_cluster_spec, load_settings

console = Console()


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def get_settings(config: Path | None, **overrides: object) -> OperatorSettings:
    """Load settings, exiting with a readable message on invalid input."""
    try:
        settings = load_settings(config, **overrides)
    except (OSError, pydantic.ValidationError) as e:
        console.print(f"[red]Error:[/red] invalid settings: {e}")
        raise typer.Exit(1)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    return settings


def get_cluster(path: Path) -> ClusterSpec:
    """Load the cluster declaration, exiting with a readable message on invalid input."""
    try:
        return load_cluster_spec(path)
    except (OSError, pydantic.ValidationError) as e:
        console.print(f"[red]Error:[/red] invalid cluster declaration {path}: {e}")
        raise typer.Exit(1)
