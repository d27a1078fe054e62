"""Manifest objects and their decoding.

A manifest is decoded into an ordered, immutable tuple of ManagedObject.
Objects whose kind the tool works with directly (namespaces, deployments,
CRDs, secrets, config maps, Apps and Clusters) are tagged as known and get
typed builders and accessors; everything else is carried as an opaque
document and only ever created or deleted by identity.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NamedTuple

import yaml

from ..errors import ManifestError

# kind -> apiVersion for the kinds handled with typed accessors
KNOWN_KINDS = {
    "Namespace": "v1",
    "Secret": "v1",
    "ConfigMap": "v1",
    "Deployment": "apps/v1",
    "CustomResourceDefinition": "apiextensions.k8s.io/v1",
    "App": "application.giantswarm.io/v1alpha1",
    "Cluster": "cluster.x-k8s.io/v1beta1",
}

MOVE_LABEL = "clusterctl.cluster.x-k8s.io/move"
FORCE_HELM_UPGRADE_ANNOTATION = "chart-operator.giantswarm.io/force-helm-upgrade"
APP_OPERATOR_VERSION_LABEL = "app-operator.giantswarm.io/version"


class ObjectVariant(Enum):
    """Tag of a ManagedObject."""

    KNOWN = "known"
    GENERIC = "generic"


class ObjectKey(NamedTuple):
    """Identity of an API object."""

    kind: str
    namespace: str | None
    name: str

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind} {self.namespace}/{self.name}"
        return f"{self.kind} {self.name}"


@dataclass(frozen=True)
class ManagedObject:
    """One decoded API object.

    The body is a private deep copy; callers get copies back from to_dict(),
    so the same object can be replayed against any number of clusters.
    """

    api_version: str
    kind: str
    name: str
    namespace: str | None = None
    _body: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, document: dict[str, Any]) -> ManagedObject:
        """Build an object from a decoded manifest document.

        Raises:
            ManifestError: If apiVersion, kind or metadata.name is missing.
        """
        if not isinstance(document, dict):
            raise ManifestError(f"expected an object, got {type(document).__name__}")

        api_version = document.get("apiVersion")
        kind = document.get("kind")
        metadata = document.get("metadata") or {}
        if not api_version or not kind:
            raise ManifestError("object is missing apiVersion or kind")
        if not isinstance(metadata, dict) or not metadata.get("name"):
            raise ManifestError(f"{kind} object is missing metadata.name")

        return cls(
            api_version=str(api_version),
            kind=str(kind),
            name=str(metadata["name"]),
            namespace=metadata.get("namespace"),
            _body=copy.deepcopy(document),
        )

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.kind, self.namespace, self.name)

    @property
    def variant(self) -> ObjectVariant:
        if KNOWN_KINDS.get(self.kind) == self.api_version:
            return ObjectVariant.KNOWN
        return ObjectVariant.GENERIC

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._body)

    @property
    def data(self) -> dict[str, str]:
        """ConfigMap/Secret string data."""
        if self.kind == "Secret":
            return dict(self._body.get("stringData") or self._body.get("data") or {})
        return dict(self._body.get("data") or {})


def decode_objects(text: str) -> tuple[ManagedObject, ...]:
    """Decode a multi-document YAML manifest.

    Empty documents (e.g. a leading ``---``) are skipped.

    Args:
        text: Manifest content.

    Returns:
        Objects in document order.

    Raises:
        ManifestError: If any document fails to parse or is not an object.
    """
    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        raise ManifestError("decoding manifest") from e

    objects = []
    for index, document in enumerate(documents):
        if document is None:
            continue
        try:
            objects.append(ManagedObject.from_dict(document))
        except ManifestError as e:
            raise ManifestError(f"document {index}") from e
    return tuple(objects)


def decode_crds(text: str) -> list[ManagedObject]:
    """Decode a manifest, keeping only CustomResourceDefinitions."""
    return [
        obj
        for obj in decode_objects(text)
        if obj.kind == "CustomResourceDefinition" and obj.variant == ObjectVariant.KNOWN
    ]


def _build(kind: str, name: str, namespace: str | None = None, **fields: Any) -> ManagedObject:
    metadata: dict[str, Any] = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    for meta_field in ("labels", "annotations"):
        if fields.get(meta_field):
            metadata[meta_field] = fields.pop(meta_field)
        else:
            fields.pop(meta_field, None)
    document = {"apiVersion": KNOWN_KINDS[kind], "kind": kind, "metadata": metadata}
    document.update({k: v for k, v in fields.items() if v is not None})
    return ManagedObject.from_dict(document)


def namespace(name: str) -> ManagedObject:
    return _build("Namespace", name)


def config_map(
    name: str,
    namespace: str,
    data: dict[str, str] | None = None,
) -> ManagedObject:
    return _build("ConfigMap", name, namespace, data=data)


def secret(
    name: str,
    namespace: str,
    string_data: dict[str, str] | None = None,
    labels: dict[str, str] | None = None,
) -> ManagedObject:
    return _build("Secret", name, namespace, stringData=string_data, labels=labels)


def app(
    name: str,
    namespace: str,
    chart: str,
    version: str,
    catalog: str,
    user_config_map: str | None = None,
) -> ManagedObject:
    """Build an App adopting an in-cluster helm release.

    Args:
        name: App name.
        namespace: Namespace of the App and of its release.
        chart: Chart name in the catalog.
        version: Chart version.
        catalog: Catalog name (in the same namespace).
        user_config_map: Optional values ConfigMap in the same namespace.
    """
    spec: dict[str, Any] = {
        "catalog": catalog,
        "catalogNamespace": namespace,
        "kubeConfig": {"inCluster": True},
        "name": chart,
        "namespace": namespace,
        "version": version,
    }
    if user_config_map:
        spec["userConfig"] = {"configMap": {"name": user_config_map, "namespace": namespace}}

    return _build(
        "App",
        name,
        namespace,
        annotations={FORCE_HELM_UPGRADE_ANNOTATION: "true"},
        labels={APP_OPERATOR_VERSION_LABEL: "0.0.0"},
        spec=spec,
    )
