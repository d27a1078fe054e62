"""clusterctl wrapper: provider installation and object moves."""

from __future__ import annotations

from ..shared.logging import get_logger
from .shell import execute

logger = get_logger(__name__)


class ClusterctlClient:
    """Run clusterctl subcommands."""

    def move(self, namespace: str, from_kubeconfig: str, to_kubeconfig: str) -> None:
        """Move Cluster API objects in a namespace to another management cluster.

        clusterctl relocates the provider objects itself; nothing here
        inspects them.

        Args:
            namespace: Namespace holding the cluster's objects.
            from_kubeconfig: Kubeconfig of the current owner.
            to_kubeconfig: Kubeconfig of the new owner.
        """
        logger.info("moving cluster api objects", namespace=namespace)
        execute(
            [
                "clusterctl",
                "move",
                "--namespace",
                namespace,
                "--kubeconfig",
                from_kubeconfig,
                "--to-kubeconfig",
                to_kubeconfig,
            ],
            tee=True,
        )

    def init(self, kubeconfig: str, provider: str) -> None:
        """Install the core and infrastructure providers.

        Args:
            kubeconfig: Kubeconfig of the management cluster.
            provider: Infrastructure provider name (e.g. openstack).
        """
        logger.info("installing cluster api providers", provider=provider)
        execute(
            ["clusterctl", "init", "--kubeconfig", kubeconfig, "--infrastructure", provider],
            tee=True,
        )
