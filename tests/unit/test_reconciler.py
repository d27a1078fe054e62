"""Unit tests for idempotent apply and delete."""

from __future__ import annotations

import pytest

from capi_bootstrap.errors import ResourceError
from capi_bootstrap.k8s.objects import ObjectKey, config_map, decode_objects, namespace
from capi_bootstrap.k8s.reconciler import apply_resources, create_namespace, delete_resources


@pytest.fixture
def objects(manifest):
    return (namespace("org-test"),) + decode_objects(manifest)


class TestApplyResources:
    """Tests for apply_resources."""

    def test_creates_in_order(self, bootstrap_plane, objects):
        """Test that objects are created in manifest order."""
        apply_resources(bootstrap_plane, objects)

        assert bootstrap_plane.events == [
            ("create", "bootstrap", "Namespace org-test"),
            ("create", "bootstrap", "ConfigMap org-test/guppy-cluster-userconfig"),
        ]

    def test_apply_twice_is_idempotent(self, bootstrap_plane, objects):
        """Test that a second apply succeeds and changes nothing."""
        apply_resources(bootstrap_plane, objects)
        before = dict(bootstrap_plane.objects)

        apply_resources(bootstrap_plane, objects)

        assert bootstrap_plane.objects == before
        assert len(bootstrap_plane.events) == 2

    def test_existing_object_is_not_updated(self, bootstrap_plane):
        """Test that apply never patches an existing object."""
        bootstrap_plane.put("ConfigMap", "values", "giantswarm", data={"values": "old"})

        apply_resources(bootstrap_plane, [config_map("values", "giantswarm", {"values": "new"})])

        key = ObjectKey("ConfigMap", "giantswarm", "values")
        assert bootstrap_plane.objects[key]["data"] == {"values": "old"}

    def test_failure_stops_at_first_error(self, bootstrap_plane, objects):
        """Test that a failed create aborts the remaining objects."""
        bootstrap_plane.fail_create[objects[0].key] = RuntimeError("forbidden")

        with pytest.raises(ResourceError) as exc_info:
            apply_resources(bootstrap_plane, objects)

        assert str(exc_info.value) == "creating Namespace org-test"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert bootstrap_plane.events == []

    def test_rerun_after_failure(self, bootstrap_plane, objects):
        """Test that re-applying after a partial failure completes the set."""
        bootstrap_plane.fail_create[objects[1].key] = RuntimeError("timeout")
        with pytest.raises(ResourceError):
            apply_resources(bootstrap_plane, objects)

        bootstrap_plane.fail_create.clear()
        apply_resources(bootstrap_plane, objects)

        assert all(obj.key in bootstrap_plane.objects for obj in objects)


class TestDeleteResources:
    """Tests for delete_resources."""

    def test_delete_twice_is_idempotent(self, bootstrap_plane, objects):
        """Test that deleting an absent set is not an error."""
        apply_resources(bootstrap_plane, objects)

        delete_resources(bootstrap_plane, objects)
        delete_resources(bootstrap_plane, objects)

        assert bootstrap_plane.objects == {}
        assert [event[0] for event in bootstrap_plane.events].count("delete") == 2

    def test_delete_nothing_present(self, bootstrap_plane, objects):
        """Test that deleting objects that never existed succeeds."""
        delete_resources(bootstrap_plane, objects)

        assert bootstrap_plane.events == []

    def test_failure_wraps_cause(self, bootstrap_plane, objects):
        """Test that other delete errors are wrapped with the object key."""
        apply_resources(bootstrap_plane, objects)
        bootstrap_plane.fail_delete[objects[0].key] = RuntimeError("conflict")

        with pytest.raises(ResourceError, match="deleting Namespace org-test"):
            delete_resources(bootstrap_plane, objects)


class TestCreateNamespace:
    """Tests for create_namespace."""

    def test_create_namespace_idempotent(self, bootstrap_plane):
        create_namespace(bootstrap_plane, "giantswarm")
        create_namespace(bootstrap_plane, "giantswarm")

        assert bootstrap_plane.has("Namespace", "giantswarm")
        assert len(bootstrap_plane.events) == 1
