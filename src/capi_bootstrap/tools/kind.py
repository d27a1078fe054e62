"""kind wrapper for the ephemeral bootstrap cluster."""

from __future__ import annotations

from .shell import execute


class KindClient:
    """Create, find and delete kind clusters by name."""

    def create_cluster(self, name: str, kubeconfig: str) -> str:
        """Create a cluster and return its kubeconfig.

        Args:
            name: Cluster name.
            kubeconfig: File kind writes the new context into.
        """
        execute(
            ["kind", "create", "cluster", "--name", name, "--wait", "2m"],
            env={"KUBECONFIG": kubeconfig},
        )
        return self.get_kubeconfig(name)

    def delete_cluster(self, name: str) -> None:
        execute(["kind", "delete", "cluster", "--name", name])

    def get_kubeconfig(self, name: str) -> str:
        return execute(["kind", "get", "kubeconfig", "--name", name])

    def list_clusters(self) -> list[str]:
        output = execute(["kind", "get", "clusters"])
        return [line.strip() for line in output.splitlines() if line.strip()]

    def cluster_exists(self, name: str) -> bool:
        return name in self.list_clusters()
