"""Transient file management for capi-bootstrap.

Kubeconfigs handed to subprocesses live in temporary files for the duration
of a pipeline run only.
"""

import os
import tempfile
from pathlib import Path

KUBECONFIG_PREFIX = "capi-bootstrap-kubeconfig-"


def write_transient_file(data: bytes | str, prefix: str = KUBECONFIG_PREFIX) -> Path:
    """Write data to a new user-only temporary file.

    Args:
        data: File content.
        prefix: Temporary file name prefix.

    Returns:
        Path to the written file. The caller owns its removal.
    """
    if isinstance(data, str):
        data = data.encode()
    fd, name = tempfile.mkstemp(prefix=prefix)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    return Path(name)


def remove_files(paths: list[Path]) -> None:
    """Remove files, ignoring ones that are already gone."""
    for path in paths:
        path.unlink(missing_ok=True)
