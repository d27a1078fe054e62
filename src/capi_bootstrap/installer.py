"""Management cluster setup: App platform and Cluster API controllers.

Every step either creates-or-skips or installs-or-upgrades, so a failed
setup is finished by running it again.
"""

from __future__ import annotations

from collections.abc import Callable

from .config import BootstrapDescriptor
from .k8s.objects import ManagedObject, app, config_map, secret
from .k8s.reconciler import ControlPlane, apply_resources, create_namespace
from .k8s.scope import ClusterScope
from .k8s.waiter import Waiter
from .releases import CRDReleaseSource
from .shared.logging import get_logger
from .tools.clusterctl import ClusterctlClient
from .tools.helm import CONTROL_PLANE_CATALOG, HelmClient
from .tools.opsctl import OpsctlClient

logger = get_logger(__name__)

PLATFORM_NAMESPACE = "giantswarm"
CATALOG_NAMESPACE = "draughtsman"
CAPI_NAMESPACE = "capi-system"

APP_OPERATOR_VERSION = "5.8.0"
CHART_OPERATOR_VERSION = "2.20.1"
CLUSTER_APPS_OPERATOR_VERSION = "1.5.0"
CERT_MANAGER_VERSION = "2.12.0"

CERT_MANAGER_DEPLOYMENTS = (
    "cert-manager-controller",
    "cert-manager-webhook",
    "cert-manager-cainjector",
)
CERT_MANAGER_CRDS = (
    "certificaterequests.cert-manager.io",
    "certificates.cert-manager.io",
    "clusterissuers.cert-manager.io",
    "issuers.cert-manager.io",
)
CAPI_CONTROLLERS = (
    "capi-kubeadm-bootstrap",
    "capi-kubeadm-control-plane",
    "capi",
    "capo",
)

WaiterFactory = Callable[[ControlPlane], Waiter]


class PlatformInstaller:
    """Install the App platform (app-operator, chart-operator, catalogs)."""

    def __init__(
        self,
        descriptor: BootstrapDescriptor,
        helm: HelmClient,
        opsctl: OpsctlClient,
        crd_source: CRDReleaseSource,
        waiter_factory: WaiterFactory,
    ):
        self.descriptor = descriptor
        self.helm = helm
        self.opsctl = opsctl
        self.crd_source = crd_source
        self.waiter_factory = waiter_factory

    def install(self, scope: ClusterScope) -> None:
        """Install the App platform on one cluster.

        Args:
            scope: Cluster to install onto.
        """
        log = logger.bind(scope=scope.name)
        client = scope.client

        log.info("installing app platform")
        create_namespace(client, PLATFORM_NAMESPACE)
        apply_resources(client, self.crd_source.fetch_crds())

        # Bootstrap releases, adopted by the Apps below
        self.helm.install_chart(
            scope.kubeconfig_path,
            "chart-operator",
            "chart-operator",
            PLATFORM_NAMESPACE,
            values="chartOperator.cni.install=true",
        )
        self.helm.install_chart(
            scope.kubeconfig_path,
            "app-operator",
            "app-operator",
            PLATFORM_NAMESPACE,
            values=f"provider.kind={self.descriptor.provider}",
        )

        self.install_catalogs(scope)

        apply_resources(client, self.platform_apps())
        self.waiter_factory(client).wait_for_apps_deployed(
            PLATFORM_NAMESPACE, ["app-operator", "chart-operator"]
        )
        log.info("app platform installed")

    def install_catalogs(self, scope: ClusterScope) -> None:
        """Create the installation's App catalogs with opsctl.

        opsctl expects the draughtsman values ConfigMap and Secret to exist,
        even when empty.
        """
        create_namespace(scope.client, CATALOG_NAMESPACE)
        apply_resources(
            scope.client,
            [
                config_map("draughtsman-values-configmap", CATALOG_NAMESPACE),
                secret("draughtsman-values-secret", CATALOG_NAMESPACE),
            ],
        )
        self.opsctl.ensure_catalogs(
            self.descriptor.cluster_name,
            self.descriptor.installations_branch,
            scope.kubeconfig_path,
        )

    def platform_apps(self) -> list[ManagedObject]:
        """Values ConfigMaps and the Apps adopting the platform releases."""
        provider = self.descriptor.provider
        base_domain = self.descriptor.base_domain
        return [
            config_map(
                "app-operator-user-values",
                PLATFORM_NAMESPACE,
                {"values": f"provider:\n  kind: {provider}\n"},
            ),
            config_map(
                "chart-operator-user-values",
                PLATFORM_NAMESPACE,
                {"values": "chartOperator:\n  cni:\n    install: true\n"},
            ),
            config_map(
                "cluster-apps-operator-user-values",
                PLATFORM_NAMESPACE,
                {"values": f"baseDomain: {base_domain}\nprovider:\n  kind: {provider}\n"},
            ),
            app(
                "app-operator",
                PLATFORM_NAMESPACE,
                chart="app-operator",
                version=APP_OPERATOR_VERSION,
                catalog=CONTROL_PLANE_CATALOG,
                user_config_map="app-operator-user-values",
            ),
            app(
                "chart-operator",
                PLATFORM_NAMESPACE,
                chart="chart-operator",
                version=CHART_OPERATOR_VERSION,
                catalog=CONTROL_PLANE_CATALOG,
                user_config_map="chart-operator-user-values",
            ),
            app(
                "cluster-apps-operator",
                PLATFORM_NAMESPACE,
                chart="cluster-apps-operator",
                version=CLUSTER_APPS_OPERATOR_VERSION,
                catalog=CONTROL_PLANE_CATALOG,
                user_config_map="cluster-apps-operator-user-values",
            ),
        ]


class CapiInstaller:
    """Install cert-manager and the Cluster API controllers."""

    def __init__(
        self,
        descriptor: BootstrapDescriptor,
        clusterctl: ClusterctlClient,
        waiter_factory: WaiterFactory,
    ):
        self.descriptor = descriptor
        self.clusterctl = clusterctl
        self.waiter_factory = waiter_factory

    def install(self, scope: ClusterScope) -> None:
        log = logger.bind(scope=scope.name)
        client = scope.client
        waiter = self.waiter_factory(client)

        log.info("installing cert-manager")
        apply_resources(
            client,
            [
                app(
                    "cert-manager",
                    PLATFORM_NAMESPACE,
                    chart="cert-manager-app",
                    version=CERT_MANAGER_VERSION,
                    catalog=CONTROL_PLANE_CATALOG,
                )
            ],
        )
        waiter.wait_for_deployments((PLATFORM_NAMESPACE, name) for name in CERT_MANAGER_DEPLOYMENTS)
        waiter.wait_for_crds(CERT_MANAGER_CRDS)

        # clusterctl init is not idempotent; an existing capi-system means it already ran
        if client.get("v1", "Namespace", CAPI_NAMESPACE) is not None:
            log.info("cluster api controllers already installed")
            return

        self.clusterctl.init(scope.kubeconfig_path, self.descriptor.provider)
        waiter.wait_for_deployments(
            (f"{controller}-system", f"{controller}-controller-manager")
            for controller in CAPI_CONTROLLERS
        )
        log.info("cluster api controllers installed")


def setup_management_cluster(
    scope: ClusterScope,
    platform: PlatformInstaller,
    capi: CapiInstaller,
) -> None:
    """Make a cluster able to own Cluster API workload clusters."""
    platform.install(scope)
    capi.install(scope)
