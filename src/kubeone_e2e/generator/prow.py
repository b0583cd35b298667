"""Prow job descriptors for generated CI configuration."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any

from ..errors import ValidationError

PROW_JOB_PREFIX = "pull-kubeone-e2e"
DEFAULT_IMAGE = "quay.io/kubermatic/build:latest"
DEFAULT_TEST_PATH = "tests/e2e/test_generated.py"
DEFAULT_PATH_ALIAS = "k8c.io/kubeone"


@dataclass(frozen=True)
class ProwConfig:
    """Settings shared by every generated Prow job."""

    always_run: bool = False
    optional: bool = True
    run_if_changed: str = ""
    image: str = DEFAULT_IMAGE
    test_path: str = DEFAULT_TEST_PATH
    environ: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProwConfig:
        """Build a ProwConfig from the `prow` section of a config file."""
        if not isinstance(data, dict):
            raise ValidationError(message="prow config must be a mapping")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(
                message=f"Unknown prow config keys: {', '.join(unknown)}",
                data={"keys": unknown},
            )

        values = dict(data)
        if "environ" in values:
            values["environ"] = {str(k): str(v) for k, v in (values["environ"] or {}).items()}
        return cls(**values)

    def with_environ(self, environ: dict[str, str]) -> ProwConfig:
        """Return a copy whose environment is extended by `environ`.

        Values from `environ` win over the configured ones.
        """
        return replace(self, environ={**self.environ, **environ})

    def to_dict(self) -> dict[str, Any]:
        return {
            "always_run": self.always_run,
            "optional": self.optional,
            "run_if_changed": self.run_if_changed,
            "image": self.image,
            "test_path": self.test_path,
            "environ": dict(self.environ),
        }


@dataclass(frozen=True)
class ProwJob:
    """A single presubmit job."""

    name: str
    always_run: bool
    optional: bool
    labels: dict[str, str]
    spec: dict[str, Any]
    run_if_changed: str = ""
    decorate: bool = True
    path_alias: str = DEFAULT_PATH_ALIAS

    def to_dict(self) -> dict[str, Any]:
        """Serialize in Prow's presubmit field order."""
        job: dict[str, Any] = {
            "name": self.name,
            "always_run": self.always_run,
            "optional": self.optional,
        }
        if self.run_if_changed:
            job["run_if_changed"] = self.run_if_changed
        job["decorate"] = self.decorate
        job["path_alias"] = self.path_alias
        job["labels"] = dict(sorted(self.labels.items()))
        job["spec"] = self.spec
        return job


def pull_prow_job_name(*parts: str) -> str:
    """Build a presubmit job name.

    Example:
        pull_prow_job_name("aws_default", "upgrade_containerd", "from", "v1.27.5")
        -> "pull-kubeone-e2e-aws-default-upgrade-containerd-from-v1.27.5"
    """
    return f"{PROW_JOB_PREFIX}-" + "-".join(parts).replace("_", "-").lower()


def new_prow_job(
    name: str,
    labels: dict[str, str],
    test_title: str,
    cfg: ProwConfig,
) -> ProwJob:
    """Create a Prow job that runs one generated test function.

    Args:
        name: Job name (see pull_prow_job_name)
        labels: Infrastructure scheduling labels (presets)
        test_title: Generated pytest function name, selected by node ID
            inside `cfg.test_path`
        cfg: Shared job settings, environment already merged

    Returns:
        ProwJob ready for serialization
    """
    env = [{"name": key, "value": cfg.environ[key]} for key in sorted(cfg.environ)]

    container: dict[str, Any] = {
        "image": cfg.image,
        "imagePullPolicy": "Always",
        "command": ["pytest"],
        # Node ID, not -k: keyword matching would also pick titles with this one as a prefix
        "args": [f"{cfg.test_path}::{test_title}", "-v"],
        "resources": {
            "requests": {"cpu": "1", "memory": "4Gi"},
        },
    }
    if env:
        container["env"] = env

    return ProwJob(
        name=name,
        always_run=cfg.always_run,
        optional=cfg.optional,
        run_if_changed=cfg.run_if_changed,
        labels=dict(labels),
        spec={"containers": [container]},
    )
