"""Shared modules for capi-bootstrap.

This module provides functionality used by every command:
- Logging configuration
- Transient credential files
"""

from .logging import configure_logging, get_logger
from .paths import KUBECONFIG_PREFIX, remove_files, write_transient_file

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    # Paths
    "KUBECONFIG_PREFIX",
    "write_transient_file",
    "remove_files",
]
