"""Kubernetes control-plane access for capi-bootstrap.

This package provides:
1. Manifest decoding into immutable object sets
2. A client over one API server
3. Idempotent apply/delete of object sets
4. Readiness polling
5. Bootstrap/permanent cluster scopes
"""

from .client import ClusterClient
from .objects import KNOWN_KINDS, ManagedObject, ObjectKey, ObjectVariant, decode_crds, decode_objects
from .reconciler import ControlPlane, apply_resources, create_namespace, delete_resources
from .scope import BOOTSTRAP, PERMANENT, ClusterScope, Scopes, open_scope
from .waiter import CLUSTER_COMPONENTS, RetryPolicy, Waiter, cluster_app_names

__all__ = [
    # Objects
    "KNOWN_KINDS",
    "ManagedObject",
    "ObjectKey",
    "ObjectVariant",
    "decode_objects",
    "decode_crds",
    # Client
    "ClusterClient",
    "ControlPlane",
    # Reconciler
    "apply_resources",
    "delete_resources",
    "create_namespace",
    # Waiter
    "CLUSTER_COMPONENTS",
    "RetryPolicy",
    "Waiter",
    "cluster_app_names",
    # Scopes
    "BOOTSTRAP",
    "PERMANENT",
    "ClusterScope",
    "Scopes",
    "open_scope",
]
