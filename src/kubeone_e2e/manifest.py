"""KubeOneCluster manifest rendering.

Scenario manifests are jinja2 templates parametrized by the target
Kubernetes version; each operation renders its own copy into the run
directory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from .errors import ValidationError

TEMPLATE_DIR = Path(__file__).parent / "testdata"


@dataclass(frozen=True)
class ManifestData:
    """Values available to manifest templates."""

    version: str
    extra: dict[str, Any] = field(default_factory=dict)

    def context(self) -> dict[str, Any]:
        return {**self.extra, "VERSION": self.version}


def resolve_template(template_path: str | Path) -> Path:
    """Resolve a template reference.

    Relative references are looked up in the bundled testdata directory.
    """
    path = Path(template_path)
    if not path.is_absolute():
        path = TEMPLATE_DIR / path
    return path


def render_manifest(
    template_path: str | Path,
    data: ManifestData,
    output_dir: Path,
) -> Path:
    """Render a manifest template for one version.

    Args:
        template_path: Template file, absolute or relative to testdata/
        data: Template values
        output_dir: Directory that receives the rendered file

    Returns:
        Path to the rendered manifest

    Raises:
        ValidationError: If the template is missing, fails to render, or
            does not produce a YAML mapping
    """
    path = resolve_template(template_path)
    if not path.is_file():
        raise ValidationError(
            message=f"Manifest template not found: {path}",
            data={"template": str(path)},
        )

    env = Environment(
        loader=FileSystemLoader(path.parent),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    try:
        content = env.get_template(path.name).render(data.context())
    except TemplateError as e:
        raise ValidationError(
            message=f"Rendering manifest {path.name} failed: {e}",
            data={"template": str(path), "version": data.version},
        ) from e

    try:
        parsed = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValidationError(
            message=f"Rendered manifest {path.name} is not valid YAML: {e}",
            data={"template": str(path), "version": data.version},
        ) from e
    if not isinstance(parsed, dict):
        raise ValidationError(
            message=f"Rendered manifest {path.name} is not a mapping",
            data={"template": str(path), "version": data.version},
        )

    output_dir.mkdir(parents=True, exist_ok=True)
    stem = path.name.removesuffix(".j2").removesuffix(".yaml")
    output = output_dir / f"{stem}-{data.version}.yaml"
    output.write_text(content)
    return output
