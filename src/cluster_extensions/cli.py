"""Cluster extensions CLI.

Usage:
    cluster-extensions reconcile cluster cluster.yaml
    cluster-extensions reconcile cluster cluster.yaml --output status.yaml
    cluster-extensions reconcile machine machine.yaml cluster.yaml
    cluster-extensions validate cluster.yaml
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from .main import reconcile_cluster_file, reconcile_machine_file
from .spec_loader import SpecLoadError, load_cluster, load_machine

RECORD_KINDS = ("cluster", "machine")


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="cluster-extensions")
def cli() -> None:
    """Cluster extensions engine for OpenStack-hosted Kubernetes clusters.

    \b
    Connection and behaviour are configured through environment variables
    (OS_CLOUD, SECRET_NAMESPACE, CLUSTER_CONFIG_*, KUBE_IN_CLUSTER, LOG_LEVEL).
    """
    pass


# =============================================================================
# Reconcile Commands
# =============================================================================


@cli.group()
def reconcile() -> None:
    """Run a single reconcile pass."""
    pass


@reconcile.command("cluster")
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    help="Write the resulting status here instead of stdout",
)
def reconcile_cluster(spec_file: Path, output: Path | None) -> None:
    """Reconcile cluster-level extensions and print the extensions status."""
    sys.exit(reconcile_cluster_file(spec_file, output))


@reconcile.command("machine")
@click.argument("machine_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("cluster_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def reconcile_machine(machine_file: Path, cluster_file: Path) -> None:
    """Ensure the machine's ports allow the cluster's keepalived VIPs."""
    sys.exit(reconcile_machine_file(machine_file, cluster_file))


# =============================================================================
# Validate Command
# =============================================================================


@cli.command()
@click.argument("record_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--kind", type=click.Choice(RECORD_KINDS), default="cluster", help="Record kind")
def validate(record_file: Path, kind: str) -> None:
    """Validate a record file without contacting any backend."""
    loader = load_cluster if kind == "cluster" else load_machine
    try:
        record = loader(record_file)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e
    click.secho(f"✓ {kind} {record.name} is valid", fg="green")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
