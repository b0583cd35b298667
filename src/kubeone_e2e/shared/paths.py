"""Path management for kubeone-e2e.

Manages the ~/.kubeone-e2e/ directory used for configuration, cached
kubeone releases and per-run working directories.
"""

import tempfile
from pathlib import Path

# Base directory for all kubeone-e2e data
E2E_DIR = Path.home() / ".kubeone-e2e"

# Default configuration file
CONFIG_FILE = E2E_DIR / "config.yaml"

# Downloaded kubeone releases, one directory per version
RELEASES_DIR = E2E_DIR / "releases"

# Per-run working directories (rendered manifests, kubeconfigs, results)
RUNS_DIR = E2E_DIR / "runs"


def get_release_dir(version: str, base_dir: Path | None = None) -> Path:
    """Get the cache directory for a kubeone release.

    Args:
        version: kubeone release version (e.g., "1.4.6")
        base_dir: Override for the releases directory

    Returns:
        Path to the release directory
    """
    return (base_dir or RELEASES_DIR) / version.lstrip("v")


def new_run_dir(prefix: str, base_dir: Path | None = None) -> Path:
    """Create a fresh working directory for one scenario run.

    Args:
        prefix: Directory name prefix, usually the scenario name
        base_dir: Override for the runs directory

    Returns:
        Path to the created directory
    """
    parent = base_dir or RUNS_DIR
    parent.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix=f"{prefix}-", dir=parent))
