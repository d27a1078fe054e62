"""Test doubles for capi-bootstrap."""

from .control_plane import (
    FakeControlPlane,
    FakeSleep,
    RecordingWaiter,
    ready_status,
    seed_cluster_apps,
    seed_management_components,
)

__all__ = [
    "FakeControlPlane",
    "FakeSleep",
    "RecordingWaiter",
    "ready_status",
    "seed_cluster_apps",
    "seed_management_components",
]
