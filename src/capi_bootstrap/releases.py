"""App platform CRDs from the latest GitHub release of their repository."""

from __future__ import annotations

import posixpath
from typing import Any

import httpx

from .errors import BootstrapError
from .k8s.objects import ManagedObject, decode_crds
from .shared.logging import get_logger

logger = get_logger(__name__)

GITHUB_API_URL = "https://api.github.com"
DEFAULT_OWNER = "giantswarm"
DEFAULT_REPOSITORY = "apiextensions-application"
DEFAULT_CRD_PATH = "config/crd"


class CRDReleaseSource:
    """Fetch CRD manifests from a release tag's source tree."""

    def __init__(
        self,
        owner: str = DEFAULT_OWNER,
        repository: str = DEFAULT_REPOSITORY,
        crd_path: str = DEFAULT_CRD_PATH,
        token: str | None = None,
        http_client: httpx.Client | None = None,
        timeout_seconds: float = 30.0,
    ):
        """Initialize release source.

        Args:
            owner: GitHub organisation.
            repository: Repository holding the CRDs.
            crd_path: Directory of CRD YAML files in the repository.
            token: Optional GitHub token (raises the API rate limit).
            http_client: Preconfigured client, used by tests.
            timeout_seconds: Timeout for each request.
        """
        self.owner = owner
        self.repository = repository
        self.crd_path = crd_path

        headers = {"Accept": "application/vnd.github+json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = http_client or httpx.Client(
            base_url=GITHUB_API_URL,
            headers=headers,
            timeout=timeout_seconds,
            follow_redirects=True,
        )
        # Looked up once per run
        self._latest_tag: str | None = None

    def _get(self, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._http.get(url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise BootstrapError(f"fetching {url}") from e
        return response

    def latest_tag(self) -> str:
        if self._latest_tag is None:
            release = self._get(f"/repos/{self.owner}/{self.repository}/releases/latest").json()
            self._latest_tag = release["tag_name"]
            logger.info("using app platform release", repository=self.repository, tag=self._latest_tag)
        return self._latest_tag

    def fetch_crds(self) -> list[ManagedObject]:
        """Download and decode every CRD in the latest release.

        Returns:
            CRDs from all ``.yaml`` files in the CRD directory, in listing order.
        """
        ref = f"refs/tags/{self.latest_tag()}"
        entries = self._get(
            f"/repos/{self.owner}/{self.repository}/contents/{self.crd_path}",
            params={"ref": ref},
        ).json()

        crds: list[ManagedObject] = []
        for entry in entries:
            if posixpath.splitext(entry["name"])[1] != ".yaml":
                continue
            content = self._get(
                f"/repos/{self.owner}/{self.repository}/contents/{entry['path']}",
                params={"ref": ref},
                headers={"Accept": "application/vnd.github.raw"},
            ).text
            crds.extend(decode_crds(content))
        return crds
