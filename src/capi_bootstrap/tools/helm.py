"""Helm wrapper: chart repositories and release installation."""

from __future__ import annotations

import json

from ..errors import ConfigurationError
from ..shared.logging import get_logger
from .shell import execute

logger = get_logger(__name__)

CONTROL_PLANE_CATALOG = "control-plane-catalog"

EXPECTED_REPOS = {
    CONTROL_PLANE_CATALOG: "https://giantswarm.github.io/control-plane-catalog/",
}


class HelmClient:
    """Run helm against a kubeconfig."""

    def __init__(self, expected_repos: dict[str, str] | None = None):
        """Initialize helm client.

        Args:
            expected_repos: Repository name to URL mapping to keep configured.
        """
        self.expected_repos = expected_repos or dict(EXPECTED_REPOS)
        # Populated once per run, never invalidated
        self._repos_initialized = False

    def configure_repos(self, names: list[str] | None = None) -> None:
        """Add or correct the expected chart repositories, then update them.

        Args:
            names: Repositories to ensure (default: all expected repositories).
        """
        if self._repos_initialized:
            return

        names = names or list(self.expected_repos)
        current = {repo["name"]: repo["url"] for repo in self.list_repos()}

        stale = []
        for name in names:
            if name not in self.expected_repos:
                raise ConfigurationError(f"unknown helm repository: {name}")
            if current.get(name) != self.expected_repos[name]:
                stale.append(name)

        for name in stale:
            logger.info("adding helm repository", repo=name, url=self.expected_repos[name])
            execute(["helm", "repo", "add", "--force-update", name, self.expected_repos[name]])

        if stale:
            execute(["helm", "repo", "update"])

        self._repos_initialized = True

    def list_repos(self) -> list[dict[str, str]]:
        """List configured chart repositories."""
        output = execute(["helm", "repo", "list", "--output", "json"])
        if not output.strip():
            return []
        return json.loads(output)

    def install_chart(
        self,
        kubeconfig: str,
        release: str,
        chart: str,
        namespace: str,
        values: str | None = None,
        catalog: str = CONTROL_PLANE_CATALOG,
    ) -> None:
        """Install or upgrade a chart release.

        Args:
            kubeconfig: Path to the target cluster's kubeconfig.
            release: Release name.
            chart: Chart name within the catalog.
            namespace: Release namespace.
            values: Optional ``--set`` expression.
            catalog: Chart repository name.
        """
        args = [
            "helm",
            "upgrade",
            "--install",
            "--namespace",
            namespace,
            "--kubeconfig",
            kubeconfig,
            release,
            f"{catalog}/{chart}",
        ]
        if values:
            args.extend(["--set", values])

        logger.info("installing chart", release=release, chart=f"{catalog}/{chart}")
        execute(args)
