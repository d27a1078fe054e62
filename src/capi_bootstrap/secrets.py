"""Secret custody through the LastPass CLI.

Only lookups are needed: the permanent cluster's kubeconfig and provider
credentials are stored as free-text notes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from .errors import SecretNotFoundError
from .tools.shell import execute

PROVIDER_SHORT_NAMES = {
    "aws": "CAPA",
    "azure": "CAPZ",
    "gcp": "CAPG",
    "openstack": "CAPO",
    "vsphere": "CAPV",
}


@dataclass
class Secret:
    """One password-manager entry."""

    id: str
    name: str
    group: str
    note: str


class LastPassClient:
    """Read entries with ``lpass show``.

    Assumes ``lpass login`` has already happened in this environment.
    """

    def get_secrets(self, group: str, name: str) -> list[Secret]:
        output = execute(["lpass", "show", full_name(group, name), "--json", "--expand-multi"])
        if not output.strip():
            raise SecretNotFoundError(group, name, "no output")
        entries: list[dict[str, Any]] = json.loads(output)
        return [
            Secret(
                id=str(entry.get("id", "")),
                name=entry.get("name", ""),
                group=entry.get("group", ""),
                note=entry.get("note", ""),
            )
            for entry in entries
        ]

    def get_secret(self, group: str, name: str) -> Secret:
        """Get exactly one entry.

        Raises:
            SecretNotFoundError: If zero or several entries match.
        """
        secrets = self.get_secrets(group, name)
        if not secrets:
            raise SecretNotFoundError(group, name)
        if len(secrets) > 1:
            raise SecretNotFoundError(group, name, f"found {len(secrets)} matching secrets")
        return secrets[0]


def full_name(group: str, name: str) -> str:
    """Return ``<group>/<name>``, or ``<name>`` without a group."""
    if group:
        return f"{group}/{name}"
    return name


def provider_short_name(provider: str) -> str:
    return PROVIDER_SHORT_NAMES.get(provider, "")


def kubeconfig_secret_location(team_name: str, provider: str, cluster_name: str) -> tuple[str, str]:
    """Where a management cluster's kubeconfig is kept.

    Returns:
        (group, name), e.g. ``("Shared-Team Rocket/CAPO\\kubeconfigs", "guppy.kubeconfig")``.
    """
    group = f"Shared-{team_name}/{provider_short_name(provider)}\\kubeconfigs"
    return group, f"{cluster_name}.kubeconfig"


def openrc_to_cloud_config(content: str, cloud_name: str = "openstack") -> dict[str, Any]:
    """Translate an OpenStack openrc export script into clouds.yaml content.

    Only ``export OS_*=value`` lines are read; quotes around values are
    stripped and anything else is ignored.

    Args:
        content: openrc.sh text.
        cloud_name: Key of the cloud entry.

    Returns:
        clouds.yaml structure.
    """
    auth: dict[str, str] = {
        "auth_url": "",
        "username": "",
        "password": "",
        "user_domain_name": "",
        "project_id": "",
    }
    cloud: dict[str, Any] = {
        "auth": auth,
        "verify": False,
        "region_name": "",
        "interface": "public",
        "identity_api_version": 3,
    }

    auth_keys = {
        "OS_AUTH_URL": "auth_url",
        "OS_PROJECT_ID": "project_id",
        "OS_USER_DOMAIN_NAME": "user_domain_name",
        "OS_USERNAME": "username",
        "OS_PASSWORD": "password",
    }

    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed.startswith("export "):
            continue
        key, sep, value = trimmed[len("export ") :].partition("=")
        if not sep:
            continue
        value = value.strip('"')
        if key in auth_keys:
            auth[auth_keys[key]] = value
        elif key == "OS_REGION_NAME":
            cloud["region_name"] = value

    return {"clouds": {cloud_name: cloud}}
