"""Bootstrap configuration.

A BootstrapDescriptor is assembled once at startup and read-only afterwards.
Values come from, highest precedence first:
1. CLI flags
2. Environment variables (CAPI_BOOTSTRAP_*)
3. YAML config file (--config)
4. Defaults
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError

DEFAULT_KIND_CLUSTER_NAME = "capi-bootstrap"
DEFAULT_PROVIDER = "openstack"
DEFAULT_CLOUD_CONFIG_GROUP = "Shared-Customers/THG"

# Descriptor field -> environment variable
ENV_VARS = {
    "cluster_name": "CAPI_BOOTSTRAP_CLUSTER_NAME",
    "cluster_namespace": "CAPI_BOOTSTRAP_CLUSTER_NAMESPACE",
    "provider": "CAPI_BOOTSTRAP_PROVIDER",
    "base_domain": "CAPI_BOOTSTRAP_BASE_DOMAIN",
    "kind_cluster_name": "CAPI_BOOTSTRAP_KIND_CLUSTER_NAME",
    "team_name": "CAPI_BOOTSTRAP_TEAM_NAME",
    "cloud_config_group": "CAPI_BOOTSTRAP_CLOUD_CONFIG_GROUP",
    "file": "CAPI_BOOTSTRAP_FILE",
}

REQUIRED = ("cluster_name", "cluster_namespace")


@dataclass(frozen=True)
class BootstrapDescriptor:
    """Everything a pipeline run needs to know about the managed cluster."""

    cluster_name: str
    cluster_namespace: str
    provider: str = DEFAULT_PROVIDER
    manifest: str = ""
    manifest_path: str = ""
    base_domain: str = ""
    kind_cluster_name: str = DEFAULT_KIND_CLUSTER_NAME
    team_name: str = ""
    cloud_config_group: str = DEFAULT_CLOUD_CONFIG_GROUP
    github_token: str = field(default="", repr=False)

    # Track where each value came from
    sources: dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def installations_branch(self) -> str:
        return f"{self.cluster_name}_auto_branch"

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self.sources.get(key, "default")


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            content = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"reading config file {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"parsing config file {path}") from e

    if not isinstance(content, dict):
        raise ConfigurationError(f"config file {path} must contain a mapping")
    # Accept camelCase keys as written in cluster definitions
    return {_snake_case(key): value for key, value in content.items()}


def _snake_case(key: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in key).replace("-", "_")


def _read_manifest(path: str, base_dir: Path | None = None) -> str:
    manifest_path = Path(path)
    if base_dir is not None and not manifest_path.is_absolute():
        manifest_path = base_dir / manifest_path
    try:
        return manifest_path.read_text()
    except OSError as e:
        raise ConfigurationError(f"reading manifest {manifest_path}") from e


def load_descriptor(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
    require_manifest: bool = True,
) -> BootstrapDescriptor:
    """Assemble the descriptor from flags, environment, config file and defaults.

    Args:
        config_path: Optional YAML config file.
        overrides: CLI flag values; None values are ignored.
        require_manifest: Whether a manifest file must be given.

    Returns:
        BootstrapDescriptor with values and their sources.

    Raises:
        ConfigurationError: If a required value is missing or a file cannot be read.
    """
    values: dict[str, Any] = {}
    sources: dict[str, str] = {}
    manifest_base: Path | None = None

    if config_path:
        config_path = Path(config_path)
        for key, value in _read_config_file(config_path).items():
            if key in ENV_VARS and value is not None:
                values[key] = str(value)
                sources[key] = "config file"
        manifest_base = config_path.parent

    for key, env_var in ENV_VARS.items():
        if os.environ.get(env_var):
            values[key] = os.environ[env_var]
            sources[key] = "environment"
            if key == "file":
                manifest_base = None

    for key, value in (overrides or {}).items():
        if value is not None and value != "":
            values[key] = value
            sources[key] = "flag"
            if key == "file":
                manifest_base = None

    missing = [key for key in REQUIRED if not values.get(key)]
    if require_manifest and not values.get("file"):
        missing.append("file")
    if missing:
        flags = ", ".join(f"--{key.replace('_', '-')}" for key in missing)
        raise ConfigurationError(f"missing required configuration: {flags}")

    manifest = ""
    manifest_path = ""
    if values.get("file"):
        manifest_path = str(values.pop("file"))
        manifest = _read_manifest(manifest_path, manifest_base)
    else:
        values.pop("file", None)

    descriptor_fields = {f.name for f in fields(BootstrapDescriptor)}
    return BootstrapDescriptor(
        manifest=manifest,
        manifest_path=manifest_path,
        github_token=os.environ.get("GITHUB_TOKEN", ""),
        sources=sources,
        **{key: value for key, value in values.items() if key in descriptor_fields},
    )
