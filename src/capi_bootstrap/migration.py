"""Moving a workload cluster's management objects between control planes.

clusterctl moves the Cluster API provider objects. The manifest's objects
(the Apps wrapping those provider objects) are then created at the target,
the cluster is waited on there, and only after that are they deleted at the
source. A failure before the delete leaves the objects on both control
planes, never on neither; running the move again after fixing the cause
finishes the job.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol

from .config import BootstrapDescriptor
from .k8s.objects import decode_objects
from .k8s.reconciler import apply_resources, delete_resources
from .k8s.scope import ClusterScope, Scopes
from .installer import WaiterFactory
from .shared.logging import get_logger

logger = get_logger(__name__)


class MigrationState(Enum):
    """Where the manifest's objects exist."""

    APPLIED_AT_SOURCE_ONLY = "applied_at_source_only"
    APPLIED_AT_BOTH = "applied_at_both"
    DELETED_AT_SOURCE = "deleted_at_source"


class MoveTool(Protocol):
    def move(self, namespace: str, from_kubeconfig: str, to_kubeconfig: str) -> None: ...


def migrate(
    source: ClusterScope,
    target: ClusterScope,
    descriptor: BootstrapDescriptor,
    move_tool: MoveTool,
    waiter_factory: WaiterFactory,
) -> MigrationState:
    """Move the managed cluster from source to target.

    Args:
        source: Control plane that currently owns the cluster.
        target: Control plane that takes ownership.
        descriptor: Cluster identity and manifest.
        move_tool: Relocates the Cluster API objects.
        waiter_factory: Builds the readiness waiter for the target.

    Returns:
        The final state, DELETED_AT_SOURCE.

    Raises:
        ReadinessTimeoutError: If the cluster never became ready at the
            target; the source copy is left untouched.
    """
    namespace = descriptor.cluster_namespace
    log = logger.bind(
        cluster=f"{namespace}/{descriptor.cluster_name}",
        source=source.name,
        target=target.name,
    )
    state = MigrationState.APPLIED_AT_SOURCE_ONLY

    log.info("moving cluster")
    objects = decode_objects(descriptor.manifest)
    move_tool.move(namespace, source.kubeconfig_path, target.kubeconfig_path)

    try:
        apply_resources(target.client, objects)
    except Exception:
        log.error("applying at target failed, source objects kept", state=state.value)
        raise
    state = MigrationState.APPLIED_AT_BOTH

    try:
        waiter_factory(target.client).wait_for_cluster_ready(
            namespace, descriptor.cluster_name, descriptor.provider
        )
    except Exception:
        log.error("cluster not ready at target, source objects kept", state=state.value)
        raise

    delete_resources(source.client, objects)
    state = MigrationState.DELETED_AT_SOURCE
    log.info("cluster moved", state=state.value)
    return state


def move_cluster(
    scopes: Scopes,
    descriptor: BootstrapDescriptor,
    move_tool: MoveTool,
    waiter_factory: WaiterFactory,
    bootstrap_to_permanent: bool,
) -> MigrationState:
    """Move the managed cluster between the bootstrap and permanent scopes.

    Args:
        bootstrap_to_permanent: True when creating (bootstrap hands over to
            permanent), False when deleting (permanent hands back).
    """
    source, target = scopes.source_and_target(bootstrap_to_permanent)
    return migrate(source, target, descriptor, move_tool, waiter_factory)
