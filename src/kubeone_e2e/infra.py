"""Infrastructure handles.

Infrastructure is provisioned outside of this tool (Terraform); scenarios
only read the handle and pass the Terraform reference to kubeone untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class Terraform:
    """Reference to provisioned Terraform state.

    `path` is either a Terraform working directory or a `terraform output
    -json` file; kubeone accepts both via --tfjson.
    """

    path: str

    def resolve(self, base_dir: Path | None = None) -> str:
        """Return the path, anchored at `base_dir` when relative."""
        path = Path(self.path)
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        return str(path)


@dataclass(frozen=True)
class Infra:
    """Provisioned resources a cluster runs on."""

    name: str
    provider: str
    terraform: Terraform
    environ: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    expected_nodes: int | None = None

    def tfjson_path(self, base_dir: Path | None = None) -> str:
        """Path handed to kubeone's --tfjson flag."""
        return self.terraform.resolve(base_dir)
