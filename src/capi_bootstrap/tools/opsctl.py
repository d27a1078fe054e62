"""opsctl wrapper for installation catalogs."""

from __future__ import annotations

from .shell import execute


class OpsctlClient:
    """Run opsctl with a GitHub token."""

    def __init__(self, github_token: str = ""):
        self.github_token = github_token

    def ensure_catalogs(self, cluster_name: str, installations_branch: str, kubeconfig: str) -> None:
        """Create the App catalogs configured for an installation.

        Args:
            cluster_name: Installation (management cluster) name.
            installations_branch: Branch of the installations repository to read.
            kubeconfig: Kubeconfig of the cluster receiving the catalogs.
        """
        execute(
            [
                "opsctl",
                "ensure",
                "catalogs",
                "--installation",
                cluster_name,
                "--installations-branch",
                installations_branch,
                "--kubeconfig",
                kubeconfig,
            ],
            env={"OPSCTL_GITHUB_TOKEN": self.github_token},
        )
