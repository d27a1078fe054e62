"""Shared test fixtures for capi-bootstrap tests.

Two fake control planes share one event log so that tests can assert the
order of writes across the bootstrap and permanent clusters.
"""

from __future__ import annotations

from typing import Any

import pytest

from capi_bootstrap.config import BootstrapDescriptor
from capi_bootstrap.k8s.waiter import RetryPolicy
from tests.mocks import FakeControlPlane, FakeSleep

USERCONFIG_MANIFEST = """\
---
apiVersion: v1
kind: ConfigMap
metadata:
  name: guppy-cluster-userconfig
  namespace: org-test
data:
  values: |
    cloudConfig: cloud-config-guppy
"""


@pytest.fixture
def events() -> list[tuple[Any, ...]]:
    return []


@pytest.fixture
def bootstrap_plane(events) -> FakeControlPlane:
    return FakeControlPlane("bootstrap", events=events)


@pytest.fixture
def permanent_plane(events) -> FakeControlPlane:
    return FakeControlPlane("permanent", events=events)


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def fast_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=5, interval_seconds=0.5)


@pytest.fixture
def manifest() -> str:
    return USERCONFIG_MANIFEST


@pytest.fixture
def descriptor(manifest) -> BootstrapDescriptor:
    return BootstrapDescriptor(
        cluster_name="guppy",
        cluster_namespace="org-test",
        provider="openstack",
        manifest=manifest,
        base_domain="test.gigantic.io",
        team_name="Team Rocket",
    )
