"""Run configuration management.

Handles configuration stored in ~/.kubeone-e2e/config.yaml (or a path given
with --config). Supports environment variable overrides.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ValidationError
from .generator.prow import ProwConfig
from .shared.paths import CONFIG_FILE

# Default values
DEFAULT_KUBEONE_INIT_VERSION = "1.4.6"
DEFAULT_SETTLE_DELAY = 5.0
DEFAULT_PROBE_ATTEMPTS = 30
DEFAULT_PROBE_INTERVAL = 1.0
DEFAULT_NODE_READY_TIMEOUT = 1200.0
DEFAULT_NODE_READY_INTERVAL = 10.0
DEFAULT_CONFORMANCE_MODE = "conformance-lite"

# Environment variable mappings
ENV_VARS = {
    "source_dir": "KUBEONE_E2E_SOURCE_DIR",
    "kubeone_init_version": "KUBEONE_E2E_INIT_VERSION",
    "verbose": "KUBEONE_E2E_VERBOSE",
    "credentials": "KUBEONE_E2E_CREDENTIALS",
    "settle_delay": "KUBEONE_E2E_SETTLE_DELAY",
    "probe_attempts": "KUBEONE_E2E_PROBE_ATTEMPTS",
    "probe_interval": "KUBEONE_E2E_PROBE_INTERVAL",
    "node_ready_timeout": "KUBEONE_E2E_NODE_READY_TIMEOUT",
    "node_ready_interval": "KUBEONE_E2E_NODE_READY_INTERVAL",
    "conformance_mode": "KUBEONE_E2E_CONFORMANCE_MODE",
    "sonobuoy_binary": "KUBEONE_E2E_SONOBUOY",
    "kubectl_binary": "KUBEONE_E2E_KUBECTL",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass
class E2EConfig:
    """Scenario run configuration."""

    source_dir: str = "."
    kubeone_init_version: str = DEFAULT_KUBEONE_INIT_VERSION
    verbose: bool = False
    credentials: str = ""
    settle_delay: float = DEFAULT_SETTLE_DELAY
    probe_attempts: int = DEFAULT_PROBE_ATTEMPTS
    probe_interval: float = DEFAULT_PROBE_INTERVAL
    node_ready_timeout: float = DEFAULT_NODE_READY_TIMEOUT
    node_ready_interval: float = DEFAULT_NODE_READY_INTERVAL
    conformance_mode: str = DEFAULT_CONFORMANCE_MODE
    sonobuoy_binary: str = "sonobuoy"
    kubectl_binary: str = "kubectl"
    prow: ProwConfig = field(default_factory=ProwConfig)

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict)

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    def to_dict(self) -> dict[str, Any]:
        """Return public values for display."""
        values = {key: getattr(self, key) for key in ENV_VARS}
        values["prow"] = self.prow.to_dict()
        return values


def _coerce(key: str, value: Any, target: type) -> Any:
    """Convert a raw file or environment value to the field's type."""
    try:
        if target is bool:
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in _TRUE_VALUES:
                return True
            if text in _FALSE_VALUES:
                return False
            raise ValueError(value)
        if target is int:
            return int(value)
        if target is float:
            return float(value)
        return str(value)
    except (TypeError, ValueError):
        raise ValidationError(
            message=f"Invalid value for {key}: {value!r}",
            data={"key": key, "expected": target.__name__},
        ) from None


def _field_types() -> dict[str, type]:
    types = {bool: bool, int: int, float: float, str: str}
    result = {}
    for f in fields(E2EConfig):
        if f.name in ENV_VARS:
            # Annotations are real types here (no postponed evaluation)
            result[f.name] = types[f.type]
    return result


def load_config(path: str | Path | None = None) -> E2EConfig:
    """Load run configuration.

    Precedence (highest to lowest):
    1. Environment variables
    2. Config file (--config path or ~/.kubeone-e2e/config.yaml)
    3. Defaults

    Args:
        path: Optional explicit config file path

    Returns:
        E2EConfig with values and sources

    Raises:
        ValidationError: If the file is unreadable or a value is invalid
    """
    config = E2EConfig()
    sources: dict[str, str] = {key: "default" for key in ENV_VARS}
    types = _field_types()

    config_path = Path(path) if path else CONFIG_FILE
    if path and not config_path.exists():
        raise ValidationError(
            message=f"Config file not found: {config_path}",
            data={"path": str(config_path)},
        )

    if config_path.exists():
        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValidationError(
                message=f"Invalid config file {config_path}: {e}",
                data={"path": str(config_path)},
            ) from e

        if not isinstance(file_config, dict):
            raise ValidationError(
                message=f"Config file {config_path} must contain a mapping",
                data={"path": str(config_path)},
            )

        for key, target in types.items():
            if key in file_config:
                setattr(config, key, _coerce(key, file_config[key], target))
                sources[key] = "config file"

        if "prow" in file_config:
            config.prow = ProwConfig.from_dict(file_config["prow"] or {})
            sources["prow"] = "config file"

    # Override with environment variables
    for key, env_var in ENV_VARS.items():
        raw = os.environ.get(env_var)
        if raw is not None and raw != "":
            setattr(config, key, _coerce(key, raw, types[key]))
            sources[key] = "environment"

    config._sources = sources
    return config
