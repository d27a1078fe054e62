"""Idempotent create/delete of object sets against one control plane.

apply creates, and an object that already exists counts as success; it
never patches. delete deletes, and an object that is already gone counts as
success. Neither is transactional: the first other failure stops the loop,
and running the same call again is always correct.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from ..errors import ObjectAlreadyExists, ObjectNotFound, ResourceError
from ..shared.logging import get_logger
from .objects import ManagedObject, namespace

logger = get_logger(__name__)


class ControlPlane(Protocol):
    """The part of ClusterClient the reconciler and waiter use."""

    name: str

    def create(self, obj: ManagedObject) -> None: ...

    def delete(self, obj: ManagedObject) -> None: ...

    def get(self, api_version: str, kind: str, name: str, namespace: str | None = None): ...


def apply_resources(client: ControlPlane, objects: Iterable[ManagedObject]) -> None:
    """Create every object, skipping ones that already exist.

    Raises:
        ResourceError: For the first object that could not be created.
    """
    for obj in objects:
        try:
            client.create(obj)
        except ObjectAlreadyExists:
            logger.debug("object already exists", cluster=client.name, object=str(obj.key))
        except Exception as e:
            raise ResourceError("creating", str(obj.key)) from e


def delete_resources(client: ControlPlane, objects: Iterable[ManagedObject]) -> None:
    """Delete every object, skipping ones that are already gone.

    Raises:
        ResourceError: For the first object that could not be deleted.
    """
    for obj in objects:
        try:
            client.delete(obj)
        except ObjectNotFound:
            logger.debug("object already absent", cluster=client.name, object=str(obj.key))
        except Exception as e:
            raise ResourceError("deleting", str(obj.key)) from e


def create_namespace(client: ControlPlane, name: str) -> None:
    apply_resources(client, [namespace(name)])
