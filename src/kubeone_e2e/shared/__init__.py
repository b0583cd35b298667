"""Shared modules for kubeone-e2e.

This module provides functionality used across the runner, the validator
and the generator:
- Paths (~/.kubeone-e2e layout)
- Logging (structlog configuration)
"""

from .logging import bound_run_context, configure_logging, get_logger
from .paths import (
    CONFIG_FILE,
    E2E_DIR,
    RELEASES_DIR,
    RUNS_DIR,
    get_release_dir,
    new_run_dir,
)

__all__ = [
    # Paths
    "E2E_DIR",
    "CONFIG_FILE",
    "RELEASES_DIR",
    "RUNS_DIR",
    "get_release_dir",
    "new_run_dir",
    # Logging
    "configure_logging",
    "get_logger",
    "bound_run_context",
]
