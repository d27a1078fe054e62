"""Wrappers around the external binaries capi-bootstrap drives.

Each tool is invoked with a fixed argument vector; a non-zero exit raises
ExternalToolError carrying the captured output.
"""

from .clusterctl import ClusterctlClient
from .helm import CONTROL_PLANE_CATALOG, HelmClient
from .kind import KindClient
from .opsctl import OpsctlClient
from .shell import execute

__all__ = [
    "execute",
    "ClusterctlClient",
    "HelmClient",
    "CONTROL_PLANE_CATALOG",
    "KindClient",
    "OpsctlClient",
]
