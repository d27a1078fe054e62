"""Cluster scopes: a control-plane client paired with its kubeconfig.

Two scopes are in play during a run, ``bootstrap`` (the kind cluster) and
``permanent`` (the management cluster being created or torn down).
Kubeconfigs received as data are written to transient files that
``Scopes.cleanup`` removes at the end of the run; kubeconfig paths supplied
by the user are never removed.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import ConfigurationError
from ..shared.logging import get_logger
from ..shared.paths import remove_files, write_transient_file
from .client import ClusterClient
from .reconciler import ControlPlane

logger = get_logger(__name__)

BOOTSTRAP = "bootstrap"
PERMANENT = "permanent"

ClientFactory = Callable[[str, str], ControlPlane]


def _client_from_kubeconfig(kubeconfig: str, name: str) -> ControlPlane:
    return ClusterClient.from_kubeconfig(kubeconfig, name=name)


@dataclass
class ClusterScope:
    """One reachable control plane."""

    name: str
    client: ControlPlane
    kubeconfig_path: str


def open_scope(
    name: str,
    kubeconfig_path: str = "",
    client_factory: ClientFactory = _client_from_kubeconfig,
) -> ClusterScope:
    """Connect to one control plane.

    Args:
        name: Label for logs and messages.
        kubeconfig_path: Kubeconfig file; empty means in-cluster discovery,
            which external tools also read as "use the default loading rules".
        client_factory: Builds the client for a kubeconfig file.
    """
    try:
        if kubeconfig_path:
            client = client_factory(kubeconfig_path, name)
        else:
            client = ClusterClient.in_cluster(name=name)
    except Exception as e:
        raise ConfigurationError(f"connecting to {name} cluster") from e
    return ClusterScope(name=name, client=client, kubeconfig_path=kubeconfig_path)


@dataclass
class Scopes:
    """The bootstrap and permanent scopes of one run."""

    client_factory: ClientFactory = _client_from_kubeconfig
    bootstrap: ClusterScope | None = None
    permanent: ClusterScope | None = None
    transient_files: list[Path] = field(default_factory=list)

    def new_kubeconfig_file(self, data: bytes | str = b"") -> Path:
        """Create a transient kubeconfig file removed by cleanup()."""
        path = write_transient_file(data)
        self.transient_files.append(path)
        return path

    def load(self, name: str, kubeconfig_data: bytes | str) -> ClusterScope:
        """Create a scope from kubeconfig content.

        Args:
            name: ``bootstrap`` or ``permanent``.
            kubeconfig_data: Kubeconfig YAML.
        """
        path = self.new_kubeconfig_file(kubeconfig_data)
        return self.attach(name, str(path))

    def attach(self, name: str, kubeconfig_path: str) -> ClusterScope:
        """Create a scope from an existing kubeconfig file."""
        scope = open_scope(name, kubeconfig_path, self.client_factory)
        self._set(scope)
        logger.debug("cluster scope ready", scope=name)
        return scope

    def in_cluster(self, name: str) -> ClusterScope:
        """Create a scope from the pod's service account."""
        return self.attach(name, "")

    def _set(self, scope: ClusterScope) -> None:
        if scope.name == BOOTSTRAP:
            self.bootstrap = scope
        elif scope.name == PERMANENT:
            self.permanent = scope
        else:
            raise ConfigurationError(f"unknown cluster scope: {scope.name}")

    def get(self, permanent: bool) -> ClusterScope:
        scope = self.permanent if permanent else self.bootstrap
        if scope is None:
            raise ConfigurationError(
                f"{PERMANENT if permanent else BOOTSTRAP} cluster is not available yet"
            )
        return scope

    def source_and_target(self, bootstrap_to_permanent: bool) -> tuple[ClusterScope, ClusterScope]:
        """Order the scopes for a move in the given direction."""
        if bootstrap_to_permanent:
            return self.get(permanent=False), self.get(permanent=True)
        return self.get(permanent=True), self.get(permanent=False)

    def cleanup(self) -> None:
        """Remove transient kubeconfig files."""
        remove_files(self.transient_files)
        self.transient_files.clear()
