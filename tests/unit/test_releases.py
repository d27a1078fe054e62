"""Unit tests for fetching App platform CRDs from GitHub."""

from __future__ import annotations

import httpx
import pytest

from capi_bootstrap.errors import BootstrapError
from capi_bootstrap.releases import GITHUB_API_URL, CRDReleaseSource

REPO = "/repos/giantswarm/apiextensions-application"

APP_CRD = """\
apiVersion: apiextensions.k8s.io/v1
kind: CustomResourceDefinition
metadata:
  name: apps.application.giantswarm.io
"""

CATALOG_CRD = """\
---
apiVersion: apiextensions.k8s.io/v1
kind: CustomResourceDefinition
metadata:
  name: catalogs.application.giantswarm.io
"""


def github_handler(requests: list[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if path == f"{REPO}/releases/latest":
            return httpx.Response(200, json={"tag_name": "v6.6.0"})
        if path == f"{REPO}/contents/config/crd":
            return httpx.Response(
                200,
                json=[
                    {"name": name, "path": f"config/crd/{name}"}
                    for name in (
                        "application.giantswarm.io_apps.yaml",
                        "application.giantswarm.io_catalogs.yaml",
                        "kustomization.yml",
                        "README.md",
                    )
                ],
            )
        if path.endswith("_apps.yaml"):
            return httpx.Response(200, text=APP_CRD)
        if path.endswith("_catalogs.yaml"):
            return httpx.Response(200, text=CATALOG_CRD)
        return httpx.Response(404, json={"message": "Not Found"})

    return handler


@pytest.fixture
def requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def source(requests) -> CRDReleaseSource:
    client = httpx.Client(base_url=GITHUB_API_URL, transport=httpx.MockTransport(github_handler(requests)))
    return CRDReleaseSource(http_client=client)


class TestCRDReleaseSource:
    """Tests for CRDReleaseSource."""

    def test_fetch_crds(self, source, requests):
        """Test that every YAML file in the release's CRD directory is decoded."""
        crds = source.fetch_crds()

        assert [crd.name for crd in crds] == [
            "apps.application.giantswarm.io",
            "catalogs.application.giantswarm.io",
        ]
        assert all(request.url.params.get("ref") == "refs/tags/v6.6.0" for request in requests[1:])
        assert requests[-1].headers["Accept"] == "application/vnd.github.raw"

    def test_latest_tag_is_cached(self, source, requests):
        """Test that the release lookup happens once per source."""
        source.fetch_crds()
        source.fetch_crds()

        latest = [r for r in requests if r.url.path.endswith("/releases/latest")]
        assert len(latest) == 1
        assert source.latest_tag() == "v6.6.0"

    def test_http_error(self, requests):
        """Test that HTTP failures are raised as BootstrapError with the URL."""
        client = httpx.Client(
            base_url=GITHUB_API_URL,
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )
        source = CRDReleaseSource(http_client=client)

        with pytest.raises(BootstrapError, match="releases/latest") as exc_info:
            source.fetch_crds()

        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    def test_token_sets_authorization(self):
        """Test that a token is sent as a bearer token."""
        source = CRDReleaseSource(token="ghp_test")

        assert source._http.headers["Authorization"] == "Bearer ghp_test"
