"""CLI main entry point."""

from __future__ import annotations

import signal
import sys
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import ENV_VARS, BootstrapDescriptor, load_descriptor
from .errors import BootstrapError, OperationCancelled, format_error_chain
from .k8s.scope import open_scope
from .pipeline import Bootstrapper
from .shared.logging import configure_logging, get_logger

console = Console(stderr=True)
logger = get_logger(__name__)

EXIT_FAILURE = 1
EXIT_CANCELLED = 130


def descriptor_options(func: Callable) -> Callable:
    """Options shared by every command that needs a BootstrapDescriptor."""
    options = [
        click.option(
            "-c",
            "--config",
            "config_path",
            type=click.Path(dir_okay=False),
            help="YAML config file",
        ),
        click.option("--cluster-name", help="Management cluster name"),
        click.option("--cluster-namespace", help="Namespace of the cluster's objects"),
        click.option("--provider", help="Infrastructure provider (default: openstack)"),
        click.option("--base-domain", help="Base domain of the installation"),
        click.option("--kind-cluster-name", help="Name of the bootstrap kind cluster"),
        click.option("--team-name", help="Owning team, locates the kubeconfig in LastPass"),
        click.option("--cloud-config-group", help="LastPass group holding openrc files"),
        click.option("-f", "--file", type=click.Path(dir_okay=False), help="Cluster manifest"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _overrides(options: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in options.items() if key in ENV_VARS}


@contextmanager
def _cancel_on_signals() -> Iterator[threading.Event]:
    """Set an event on SIGINT/SIGTERM for the duration of a run."""
    cancel_event = threading.Event()

    def handler(signum: int, frame: Any) -> None:
        logger.warning("cancellation requested", signal=signal.Signals(signum).name)
        cancel_event.set()

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield cancel_event
    finally:
        for sig, old_handler in previous.items():
            signal.signal(sig, old_handler)


def _run(options: dict[str, Any], action: Callable[[BootstrapDescriptor, threading.Event], Any]) -> None:
    """Load the descriptor, run an action and map failures to exit codes."""
    with _cancel_on_signals() as cancel_event:
        try:
            descriptor = load_descriptor(options.get("config_path"), _overrides(options))
            action(descriptor, cancel_event)
        except OperationCancelled as e:
            console.print(f"[yellow]Cancelled:[/yellow] {escape(format_error_chain(e))}", soft_wrap=True)
            sys.exit(EXIT_CANCELLED)
        except BootstrapError as e:
            console.print(f"[red]Error:[/red] {escape(format_error_chain(e))}", soft_wrap=True)
            sys.exit(EXIT_FAILURE)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default="info",
    help="Log level",
)
@click.option("--log-json", is_flag=True, help="Log as JSON lines")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Write logs to a file")
@click.version_option(package_name="capi-bootstrap")
@click.pass_context
def cli(ctx: click.Context, log_level: str, log_json: bool, log_file: str | None) -> None:
    """Create, delete and pivot Cluster API management clusters."""
    ctx.ensure_object(dict)
    configure_logging(level=log_level, log_file=log_file, json_output=log_json)


@cli.command()
@descriptor_options
def create(**options: Any) -> None:
    """Create a management cluster through a kind bootstrap cluster.

    Creates (or reuses) the kind cluster, installs the App platform and
    Cluster API on it, creates the cluster from the manifest, then moves the
    cluster's objects into the new cluster itself.
    """

    def action(descriptor: BootstrapDescriptor, cancel_event: threading.Event) -> None:
        Bootstrapper(descriptor, cancel_event=cancel_event).create()
        console.print(f"[green]✓[/green] Cluster {descriptor.cluster_name} created")

    _run(options, action)


@cli.command()
@descriptor_options
def delete(**options: Any) -> None:
    """Delete a management cluster.

    Moves the cluster's objects back into a kind bootstrap cluster, deletes
    them there and then removes the kind cluster.
    """

    def action(descriptor: BootstrapDescriptor, cancel_event: threading.Event) -> None:
        Bootstrapper(descriptor, cancel_event=cancel_event).delete()
        console.print(f"[green]✓[/green] Cluster {descriptor.cluster_name} deleted")

    _run(options, action)


def _kubeconfig_choice(side: str, kubeconfig: str | None, in_cluster: bool) -> str:
    if bool(kubeconfig) == in_cluster:
        raise click.UsageError(f"give exactly one of --{side}-kubeconfig and --{side}-in-cluster")
    return kubeconfig or ""


@cli.command()
@descriptor_options
@click.option("--from-kubeconfig", type=click.Path(exists=True, dir_okay=False), help="Current owner")
@click.option("--from-in-cluster", is_flag=True, help="Current owner is the cluster we run in")
@click.option("--to-kubeconfig", type=click.Path(exists=True, dir_okay=False), help="New owner")
@click.option("--to-in-cluster", is_flag=True, help="New owner is the cluster we run in")
def pivot(
    from_kubeconfig: str | None,
    from_in_cluster: bool,
    to_kubeconfig: str | None,
    to_in_cluster: bool,
    **options: Any,
) -> None:
    """Move a cluster's objects from one management cluster to another."""
    source_path = _kubeconfig_choice("from", from_kubeconfig, from_in_cluster)
    target_path = _kubeconfig_choice("to", to_kubeconfig, to_in_cluster)
    if not source_path and not target_path:
        raise click.UsageError("source and target cannot both be the in-cluster control plane")

    def action(descriptor: BootstrapDescriptor, cancel_event: threading.Event) -> None:
        source = open_scope("source", source_path)
        target = open_scope("target", target_path)
        Bootstrapper(descriptor, cancel_event=cancel_event).pivot(source, target)
        console.print(f"[green]✓[/green] Cluster {descriptor.cluster_name} moved")

    _run(options, action)


@cli.group()
def config() -> None:
    """Inspect configuration."""
    pass


@config.command("show")
@descriptor_options
def config_show(**options: Any) -> None:
    """Show the resolved configuration and where each value came from."""
    try:
        descriptor = load_descriptor(
            options.get("config_path"), _overrides(options), require_manifest=False
        )
    except BootstrapError as e:
        console.print(f"[red]Error:[/red] {escape(format_error_chain(e))}", soft_wrap=True)
        sys.exit(EXIT_FAILURE)

    table = Table(title="capi-bootstrap configuration")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_column("Source", style="dim")

    for key in ENV_VARS:
        if key == "file":
            table.add_row("manifest", descriptor.manifest_path or "-", descriptor.get_source(key))
        else:
            table.add_row(key, str(getattr(descriptor, key)) or "-", descriptor.get_source(key))
    table.add_row("installations_branch", descriptor.installations_branch, "derived")
    table.add_row(
        "github_token",
        "set" if descriptor.github_token else "not set",
        "environment" if descriptor.github_token else "default",
    )

    Console().print(table)


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
