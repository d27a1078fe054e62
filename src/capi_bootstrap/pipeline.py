"""Create and delete workflows.

A workflow is an ordered list of named phases run one after another. The
create and delete workflows share one runner and differ only in their phase
lists, selected by the move direction. Transient kubeconfig files are removed
when the run ends, whether it succeeded or not.
"""

from __future__ import annotations

import base64
import binascii
import threading
from collections.abc import Callable, Iterable
from typing import Any

import yaml

from .config import BootstrapDescriptor
from .errors import BootstrapError, ConfigurationError, OperationCancelled, PhaseError
from .installer import CapiInstaller, PlatformInstaller, setup_management_cluster
from .k8s.objects import MOVE_LABEL, ManagedObject, ObjectKey, decode_objects, secret
from .k8s.reconciler import ControlPlane, apply_resources, create_namespace, delete_resources
from .k8s.scope import BOOTSTRAP, PERMANENT, ClusterScope, Scopes
from .k8s.waiter import RetryPolicy, Waiter
from .migration import MigrationState, migrate, move_cluster
from .releases import CRDReleaseSource
from .secrets import LastPassClient, kubeconfig_secret_location, openrc_to_cloud_config
from .shared.logging import get_logger
from .tools.clusterctl import ClusterctlClient
from .tools.helm import HelmClient
from .tools.kind import KindClient
from .tools.opsctl import OpsctlClient

logger = get_logger(__name__)

Phase = tuple[str, Callable[[], Any]]

CLUSTER_USERCONFIG_SUFFIX = "-cluster-userconfig"
CLOUD_CONFIG_PREFIX = "cloud-config-"


def extract_cloud_config_name(objects: Iterable[ManagedObject]) -> str:
    """Find the cloud config Secret name referenced by the cluster's values.

    Args:
        objects: Decoded manifest.

    Returns:
        ``cloudConfig`` from the ``*-cluster-userconfig`` ConfigMap's values.

    Raises:
        ConfigurationError: If there is no such ConfigMap or it names no cloud config.
    """
    for obj in objects:
        if obj.kind != "ConfigMap" or not obj.name.endswith(CLUSTER_USERCONFIG_SUFFIX):
            continue
        try:
            values = yaml.safe_load(obj.data.get("values") or "") or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"parsing values of {obj.key}") from e
        name = values.get("cloudConfig") if isinstance(values, dict) else None
        if not name:
            raise ConfigurationError(f"{obj.key} does not set cloudConfig")
        return str(name)
    raise ConfigurationError("cluster user values configmap not found")


class Bootstrapper:
    """Run the create and delete workflows for one management cluster.

    Every collaborator can be injected; the defaults drive the real tools.
    """

    def __init__(
        self,
        descriptor: BootstrapDescriptor,
        helm: HelmClient | None = None,
        kind: KindClient | None = None,
        clusterctl: ClusterctlClient | None = None,
        opsctl: OpsctlClient | None = None,
        lastpass: LastPassClient | None = None,
        crd_source: CRDReleaseSource | None = None,
        scopes: Scopes | None = None,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Any] | None = None,
        cancel_event: threading.Event | None = None,
    ):
        self.descriptor = descriptor
        self.helm = helm or HelmClient()
        self.kind = kind or KindClient()
        self.clusterctl = clusterctl or ClusterctlClient()
        self.opsctl = opsctl or OpsctlClient(github_token=descriptor.github_token)
        self.lastpass = lastpass or LastPassClient()
        self.crd_source = crd_source or CRDReleaseSource(token=descriptor.github_token or None)
        self.scopes = scopes or Scopes()
        self.policy = policy or RetryPolicy()
        self.sleep = sleep
        self.cancel_event = cancel_event or threading.Event()

        self.platform = PlatformInstaller(
            descriptor, self.helm, self.opsctl, self.crd_source, self.new_waiter
        )
        self.capi = CapiInstaller(descriptor, self.clusterctl, self.new_waiter)
        self.log = logger.bind(
            cluster=f"{descriptor.cluster_namespace}/{descriptor.cluster_name}"
        )

    def new_waiter(self, client: ControlPlane) -> Waiter:
        return Waiter(client, self.policy, self.sleep, self.cancel_event)

    # Workflows

    def create(self) -> None:
        """Create the management cluster and hand it its own objects."""
        self.run_phases(self.phases(bootstrap_to_permanent=True))

    def delete(self) -> None:
        """Take the management cluster's objects back and delete it."""
        self.run_phases(self.phases(bootstrap_to_permanent=False))

    def pivot(self, source: ClusterScope, target: ClusterScope) -> MigrationState:
        """Move the managed cluster between two explicitly given control planes."""
        result: list[MigrationState] = []
        self.run_phases(
            [
                (
                    "move",
                    lambda: result.append(
                        migrate(source, target, self.descriptor, self.clusterctl, self.new_waiter)
                    ),
                )
            ]
        )
        return result[0]

    def phases(self, bootstrap_to_permanent: bool) -> list[Phase]:
        """Ordered phases of the create (True) or delete (False) workflow."""
        common: list[Phase] = [
            ("configure-helm", self.configure_helm),
            ("ensure-bootstrap-cluster", self.ensure_bootstrap_cluster),
            ("setup-bootstrap", lambda: self.setup_management_cluster(permanent=False)),
        ]
        if bootstrap_to_permanent:
            return common + [
                ("create-cluster", self.create_cluster),
                ("setup-permanent", lambda: self.setup_management_cluster(permanent=True)),
                ("move-to-permanent", lambda: self.move(bootstrap_to_permanent=True)),
            ]
        return common + [
            ("load-permanent-kubeconfig", self.load_permanent_kubeconfig_from_secret_custody),
            ("move-to-bootstrap", lambda: self.move(bootstrap_to_permanent=False)),
            ("delete-cluster", self.delete_cluster),
            ("delete-bootstrap-cluster", self.delete_bootstrap_cluster),
        ]

    def run_phases(self, phases: list[Phase]) -> None:
        """Run phases in order, stopping at the first failure.

        Raises:
            PhaseError: Wrapping the first phase failure.
            OperationCancelled: If cancellation was requested; not wrapped.
        """
        try:
            for name, phase in phases:
                if self.cancel_event.is_set():
                    raise OperationCancelled(f"cancelled before phase {name}")

                self.log.info("phase started", phase=name)
                try:
                    phase()
                except OperationCancelled:
                    raise
                except Exception as e:
                    # A signal also reaches running child processes, which then fail.
                    if self.cancel_event.is_set():
                        raise OperationCancelled(f"cancelled during phase {name}") from e
                    raise PhaseError(name) from e
                self.log.info("phase finished", phase=name)
        finally:
            self.scopes.cleanup()

    # Phases

    def configure_helm(self) -> None:
        self.helm.configure_repos()

    def ensure_bootstrap_cluster(self) -> ClusterScope:
        """Reuse the kind cluster by name, or create it."""
        name = self.descriptor.kind_cluster_name
        if self.kind.cluster_exists(name):
            self.log.info("reusing kind cluster", kind_cluster=name)
            kubeconfig = self.kind.get_kubeconfig(name)
        else:
            self.log.info("creating kind cluster", kind_cluster=name)
            kind_kubeconfig = self.scopes.new_kubeconfig_file()
            kubeconfig = self.kind.create_cluster(name, str(kind_kubeconfig))
        return self.scopes.load(BOOTSTRAP, kubeconfig)

    def setup_management_cluster(self, permanent: bool) -> None:
        setup_management_cluster(self.scopes.get(permanent), self.platform, self.capi)

    def create_cluster(self) -> None:
        """Create the permanent cluster from the bootstrap cluster and connect to it.

        The provider's credentials Secret is created before the manifest so
        that the infrastructure controller finds it on first reconcile.
        """
        scope = self.scopes.get(permanent=False)
        namespace = self.descriptor.cluster_namespace

        create_namespace(scope.client, namespace)
        objects = decode_objects(self.descriptor.manifest)
        if self.descriptor.provider == "openstack":
            self.create_cloud_config_secret(scope, objects)
        apply_resources(scope.client, objects)

        self.new_waiter(scope.client).wait_for_cluster_ready(
            namespace, self.descriptor.cluster_name, self.descriptor.provider
        )
        self.load_permanent_kubeconfig_from_bootstrap()

    def create_cloud_config_secret(self, scope: ClusterScope, objects: Iterable[ManagedObject]) -> None:
        """Materialize the OpenStack clouds.yaml Secret from the project's openrc."""
        cloud_config_name = extract_cloud_config_name(objects)
        project = cloud_config_name.removeprefix(CLOUD_CONFIG_PREFIX)
        openrc = self.lastpass.get_secret(
            self.descriptor.cloud_config_group, f"{project}-openrc.sh"
        )
        clouds_yaml = yaml.safe_dump(openrc_to_cloud_config(openrc.note), sort_keys=False)
        apply_resources(
            scope.client,
            [
                secret(
                    cloud_config_name,
                    self.descriptor.cluster_namespace,
                    string_data={"clouds.yaml": clouds_yaml},
                    labels={MOVE_LABEL: "true"},
                )
            ],
        )

    def load_permanent_kubeconfig_from_bootstrap(self) -> ClusterScope:
        """Read the kubeconfig Cluster API generated for the new cluster."""
        scope = self.scopes.get(permanent=False)
        name = f"{self.descriptor.cluster_name}-kubeconfig"
        namespace = self.descriptor.cluster_namespace
        key = ObjectKey("Secret", namespace, name)

        obj = scope.client.get("v1", "Secret", name, namespace)
        if obj is None:
            raise BootstrapError(f"{key} not found")
        encoded = (obj.get("data") or {}).get("value")
        if not encoded:
            raise BootstrapError(f"{key} has no value")
        try:
            kubeconfig = base64.b64decode(encoded)
        except (binascii.Error, ValueError) as e:
            raise BootstrapError(f"decoding {key}") from e
        return self.scopes.load(PERMANENT, kubeconfig)

    def load_permanent_kubeconfig_from_secret_custody(self) -> ClusterScope:
        if not self.descriptor.team_name:
            raise ConfigurationError("--team-name is required to look up the cluster kubeconfig")
        group, name = kubeconfig_secret_location(
            self.descriptor.team_name, self.descriptor.provider, self.descriptor.cluster_name
        )
        kubeconfig = self.lastpass.get_secret(group, name)
        return self.scopes.load(PERMANENT, kubeconfig.note)

    def move(self, bootstrap_to_permanent: bool) -> MigrationState:
        return move_cluster(
            self.scopes, self.descriptor, self.clusterctl, self.new_waiter, bootstrap_to_permanent
        )

    def delete_cluster(self) -> None:
        """Delete the manifest at bootstrap and wait until the cluster is gone."""
        scope = self.scopes.get(permanent=False)
        delete_resources(scope.client, decode_objects(self.descriptor.manifest))
        self.new_waiter(scope.client).wait_for_cluster_deleted(
            self.descriptor.cluster_namespace,
            self.descriptor.cluster_name,
            self.descriptor.provider,
        )

    def delete_bootstrap_cluster(self) -> None:
        name = self.descriptor.kind_cluster_name
        if self.kind.cluster_exists(name):
            self.log.info("deleting kind cluster", kind_cluster=name)
            self.kind.delete_cluster(name)
