"""Readiness polling over one control plane.

Every wait polls a condition on a fixed interval up to a bounded number of
attempts, driven by an injected RetryPolicy and sleep function so tests can
run without real delays. A condition that has been met is never polled again
within the same call.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from ..errors import BootstrapError, OperationCancelled, ReadinessTimeoutError, ResourceError
from ..shared.logging import get_logger
from .objects import KNOWN_KINDS, ObjectKey
from .reconciler import ControlPlane

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 300
DEFAULT_INTERVAL_SECONDS = 1.0

# Apps every workload cluster gets, named "<cluster>-<component>"
CLUSTER_COMPONENTS = (
    "app-operator",
    "chart-operator",
    "cert-exporter",
    "cilium",
    "cloud-provider-{provider}",
    "kube-state-metrics",
    "metrics-server",
    "net-exporter",
    "node-exporter",
)

DEFAULT_PROVIDER = "openstack"


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how long a condition is polled."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS


def cluster_app_names(cluster_name: str, provider: str = DEFAULT_PROVIDER) -> list[str]:
    """Names of the Apps that make up a ready workload cluster.

    Args:
        cluster_name: Cluster name, e.g. ``guppy``.
        provider: Infrastructure provider, selects the cloud-provider App.

    Returns:
        App names such as ``guppy-cilium``.
    """
    return [
        f"{cluster_name}-{component.format(provider=provider)}" for component in CLUSTER_COMPONENTS
    ]


def _status(obj: dict[str, Any] | None) -> dict[str, Any]:
    if not obj:
        return {}
    return obj.get("status") or {}


def namespace_active(obj: dict[str, Any] | None) -> bool:
    return obj is not None and _status(obj).get("phase") == "Active"


def deployment_ready(obj: dict[str, Any] | None) -> bool:
    if obj is None:
        return False
    status = _status(obj)
    return (status.get("replicas") or 0) == (status.get("readyReplicas") or 0)


def crd_accepted(obj: dict[str, Any] | None) -> bool:
    return bool((_status(obj).get("acceptedNames") or {}).get("kind"))


def app_deployed(obj: dict[str, Any] | None) -> bool:
    return (_status(obj).get("release") or {}).get("status") == "deployed"


class Waiter:
    """Poll readiness conditions on one control plane."""

    def __init__(
        self,
        client: ControlPlane,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Any] | None = None,
        cancel_event: threading.Event | None = None,
    ):
        """Initialize waiter.

        Args:
            client: Control plane to read from.
            policy: Attempt budget and interval (default: 300 attempts, 1s apart).
            sleep: Sleep function, replaced by a fake clock in tests.
            cancel_event: Set to abandon a wait at the next attempt.
        """
        self.client = client
        self.policy = policy or RetryPolicy()
        self.sleep = sleep or time.sleep
        self.cancel_event = cancel_event

    def poll(self, resource: str, condition: str, pending: Callable[[], str | None]) -> int:
        """Poll until nothing is pending.

        Args:
            resource: What is being waited on, for messages.
            condition: What it is waited on to do, for messages.
            pending: Returns the unmet resource, or None once the condition holds.

        Returns:
            Number of attempts used.

        Raises:
            ReadinessTimeoutError: If the attempt budget runs out.
            OperationCancelled: If cancellation was requested.
        """
        unmet: str | None = None
        for attempt in range(1, self.policy.max_attempts + 1):
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise OperationCancelled(f"cancelled while waiting for {unmet or resource}")

            previous = unmet
            try:
                unmet = pending()
            except BootstrapError:
                raise
            except Exception as e:
                raise ResourceError("reading", previous or resource) from e

            if unmet is None:
                if attempt > 1:
                    logger.info(
                        "condition met", resource=resource, condition=condition, attempts=attempt
                    )
                return attempt

            if unmet != previous:
                logger.info("waiting", resource=unmet, condition=condition)

            if attempt < self.policy.max_attempts:
                self.sleep(self.policy.interval_seconds)

        raise ReadinessTimeoutError(unmet or resource, condition, self.policy.max_attempts)

    def _get(self, kind: str, name: str, namespace: str | None = None) -> dict[str, Any] | None:
        return self.client.get(KNOWN_KINDS[kind], kind, name, namespace)

    def _wait_each(
        self,
        keys: Iterable[ObjectKey],
        condition: str,
        predicate: Callable[[dict[str, Any] | None], bool],
    ) -> None:
        for key in keys:

            def pending(key: ObjectKey = key) -> str | None:
                if predicate(self._get(key.kind, key.name, key.namespace)):
                    return None
                return str(key)

            self.poll(str(key), condition, pending)

    def wait_for_namespaces(self, names: Iterable[str]) -> None:
        keys = [ObjectKey("Namespace", None, name) for name in names]
        self._wait_each(keys, "become active", namespace_active)

    def wait_for_deployments(self, keys: Iterable[tuple[str, str]]) -> None:
        """Wait for deployments given as (namespace, name) pairs.

        Their namespaces are waited on first, so a namespace that does not
        exist yet is reported as such rather than as a missing deployment.
        """
        keys = list(keys)
        namespaces = list(dict.fromkeys(namespace for namespace, _ in keys))
        self.wait_for_namespaces(namespaces)

        deployment_keys = [ObjectKey("Deployment", namespace, name) for namespace, name in keys]
        self._wait_each(deployment_keys, "become ready", deployment_ready)

    def wait_for_crds(self, names: Iterable[str]) -> None:
        keys = [ObjectKey("CustomResourceDefinition", None, name) for name in names]
        self._wait_each(keys, "be accepted", crd_accepted)

    def wait_for_apps_deployed(self, namespace: str, names: Iterable[str]) -> None:
        """Wait until every named App reports release status "deployed".

        Apps are checked in order and one attempt stops at the first App that
        is missing or not deployed. Apps already seen deployed are not
        checked again.
        """
        remaining = list(names)

        def pending() -> str | None:
            while remaining:
                name = remaining[0]
                if not app_deployed(self._get("App", name, namespace)):
                    return str(ObjectKey("App", namespace, name))
                remaining.pop(0)
            return None

        self.poll(f"Apps in {namespace}", "be deployed", pending)

    def wait_for_cluster_ready(
        self,
        namespace: str,
        cluster_name: str,
        provider: str = DEFAULT_PROVIDER,
    ) -> None:
        logger.info("waiting for cluster apps", cluster=f"{namespace}/{cluster_name}")
        self.wait_for_apps_deployed(namespace, cluster_app_names(cluster_name, provider))

    def wait_for_cluster_deleted(
        self,
        namespace: str,
        cluster_name: str,
        provider: str = DEFAULT_PROVIDER,
    ) -> None:
        """Wait until the cluster's Apps and then its Cluster object are gone."""
        remaining = cluster_app_names(cluster_name, provider)

        def apps_pending() -> str | None:
            while remaining:
                name = remaining[0]
                if self._get("App", name, namespace) is not None:
                    return str(ObjectKey("App", namespace, name))
                remaining.pop(0)
            return None

        self.poll(f"Apps of cluster {namespace}/{cluster_name}", "be deleted", apps_pending)

        cluster_key = ObjectKey("Cluster", namespace, cluster_name)
        self.poll(
            str(cluster_key),
            "be deleted",
            lambda: str(cluster_key) if self._get("Cluster", cluster_name, namespace) else None,
        )
