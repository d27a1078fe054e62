"""Control-plane client for one Kubernetes API server.

Wraps the kubernetes package's DynamicClient so that typed and arbitrary
manifest objects go through the same create/delete/get calls.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import kubernetes.client
import kubernetes.config
from kubernetes import dynamic
from kubernetes.client import ApiException

from ..errors import ObjectAlreadyExists, ObjectNotFound
from ..shared.logging import get_logger
from .objects import ManagedObject

logger = get_logger(__name__)

HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


class ClusterClient:
    """CRUD against one API server.

    ``create`` raises ObjectAlreadyExists and ``delete`` raises ObjectNotFound
    so that callers decide whether those count as success. ``get`` returns
    None for a missing object. Every other API error propagates.
    """

    def __init__(self, dynamic_client: dynamic.DynamicClient, name: str = ""):
        """Initialize client.

        Args:
            dynamic_client: Configured dynamic client.
            name: Label used in log output.
        """
        self._dynamic = dynamic_client
        self.name = name

    @classmethod
    def from_kubeconfig(cls, kubeconfig: str | Path, name: str = "") -> ClusterClient:
        """Build a client from a kubeconfig file."""
        api_client = kubernetes.config.new_client_from_config(config_file=str(kubeconfig))
        return cls(dynamic.DynamicClient(api_client), name=name)

    @classmethod
    def in_cluster(cls, name: str = "") -> ClusterClient:
        """Build a client from the pod's service account."""
        configuration = kubernetes.client.Configuration()
        kubernetes.config.load_incluster_config(client_configuration=configuration)
        api_client = kubernetes.client.ApiClient(configuration)
        return cls(dynamic.DynamicClient(api_client), name=name)

    def _resource(self, api_version: str, kind: str):
        return self._dynamic.resources.get(api_version=api_version, kind=kind)

    def create(self, obj: ManagedObject) -> None:
        resource = self._resource(obj.api_version, obj.kind)
        try:
            self._dynamic.create(resource, body=obj.to_dict(), namespace=obj.namespace)
        except ApiException as e:
            if e.status == HTTP_CONFLICT:
                raise ObjectAlreadyExists(str(obj.key)) from e
            raise
        logger.debug("created object", cluster=self.name, object=str(obj.key))

    def delete(self, obj: ManagedObject) -> None:
        resource = self._resource(obj.api_version, obj.kind)
        try:
            self._dynamic.delete(resource, name=obj.name, namespace=obj.namespace)
        except ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                raise ObjectNotFound(str(obj.key)) from e
            raise
        logger.debug("deleted object", cluster=self.name, object=str(obj.key))

    def get(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: str | None = None,
    ) -> dict[str, Any] | None:
        """Read one object.

        Returns:
            The object as a dict, or None if it does not exist.
        """
        resource = self._resource(api_version, kind)
        try:
            instance = self._dynamic.get(resource, name=name, namespace=namespace)
        except ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                return None
            raise
        return instance.to_dict()
