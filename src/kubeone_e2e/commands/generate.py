"""`kubeone-e2e generate`: render pytest sources or Prow jobs."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import click
import yaml

from ..catalog import default_registry
from ..config import load_config
from ..errors import E2EError, ValidationError
from ..formatters import print_error
from ..generator import GENERATED_NOTICE, GeneratorType, ProwConfig, render_source_header
from ..registry import Registry


def load_matrix(path: str | Path) -> list[dict[str, Any]]:
    """Load a generation matrix.

    The file holds a list (or a mapping with a `tests` list) of entries:

        - scenario: upgrade_containerd
          infrastructures: [aws_default, gce_default]
          versions: [v1.26.9, v1.27.6]

    `infra` may be used instead of `infrastructures` for a single name.

    Raises:
        ValidationError: If the file is not a valid matrix
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ValidationError(message=f"Cannot read matrix {path}: {e}", data={"path": str(path)}) from e

    if isinstance(data, dict):
        data = data.get("tests")
    if not isinstance(data, list):
        raise ValidationError(message=f"Matrix {path} must contain a list of entries", data={"path": str(path)})

    entries = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict) or "scenario" not in entry or "versions" not in entry:
            raise ValidationError(
                message=f"Matrix entry {index} needs `scenario` and `versions`",
                data={"path": str(path), "entry": index},
            )
        infras = entry.get("infrastructures") or ([entry["infra"]] if entry.get("infra") else [])
        if not infras:
            raise ValidationError(
                message=f"Matrix entry {index} names no infrastructure",
                data={"path": str(path), "entry": index},
            )
        entries.append(
            {
                "scenario": str(entry["scenario"]),
                "infrastructures": [str(i) for i in infras],
                "versions": [str(v) for v in entry["versions"]],
            }
        )
    return entries


def _describe(origin: tuple[str, str, tuple[str, ...]]) -> str:
    scenario, infra, versions = origin
    return f"{scenario} on {infra} ({', '.join(versions)})"


def generate_artifact(
    registry: Registry,
    entries: list[dict[str, Any]],
    generator_type: GeneratorType,
    prow_config: ProwConfig | None = None,
) -> str:
    """Render every (entry, infrastructure) combination into one file body.

    All entries are bound and validated before anything is rendered. Two
    combinations that normalize to the same test title are rejected.
    """
    scenarios = []
    seen: dict[str, tuple[str, str, tuple[str, ...]]] = {}
    for entry in entries:
        for infra_name in entry["infrastructures"]:
            scenario = registry.scenario(entry["scenario"])
            scenario.set_infra(registry.infrastructure(infra_name))
            scenario.set_versions(*entry["versions"])
            scenario.validate()
            origin = (entry["scenario"], infra_name, tuple(entry["versions"]))
            title = scenario.test_title()
            if title in seen:
                raise ValidationError(
                    message=f"Duplicate test title {title}: {_describe(seen[title])} and {_describe(origin)}",
                    data={"test_title": title},
                )
            seen[title] = origin
            scenarios.append(scenario)

    body = "".join(s.generate_tests(generator_type, prow_config) for s in scenarios)
    if generator_type is GeneratorType.SOURCE:
        return render_source_header() + body
    return GENERATED_NOTICE + body


@click.command()
@click.option(
    "--type",
    "generator_type",
    type=click.Choice([t.value for t in GeneratorType]),
    default=GeneratorType.SOURCE.value,
    show_default=True,
    help="Output kind: pytest source or Prow job YAML",
)
@click.option("--matrix", type=click.Path(exists=True, dir_okay=False), help="Matrix YAML file")
@click.option("--scenario", "scenario_name", help="Scenario name (without --matrix)")
@click.option("--infra", "infra_names", multiple=True, help="Infrastructure name (repeatable)")
@click.option("--version", "versions", multiple=True, help="Kubernetes version (repeatable)")
@click.option("-o", "--output", type=click.Path(dir_okay=False), help="Output file (default: stdout)")
@click.pass_context
def generate(ctx, generator_type, matrix, scenario_name, infra_names, versions, output):
    """Generate e2e test sources or Prow jobs.

    Either pass --matrix, or a single --scenario with --infra and --version.
    """
    try:
        if matrix:
            entries = load_matrix(matrix)
        elif scenario_name and infra_names:
            entries = [
                {
                    "scenario": scenario_name,
                    "infrastructures": list(infra_names),
                    "versions": list(versions),
                }
            ]
        else:
            raise ValidationError(message="Pass --matrix, or --scenario with --infra")

        config = load_config(ctx.obj.get("config_path"))
        content = generate_artifact(
            default_registry(),
            entries,
            GeneratorType(generator_type),
            config.prow,
        )
    except E2EError as e:
        print_error(str(e))
        raise SystemExit(1)

    if output:
        Path(output).write_text(content)
        click.echo(f"Wrote {output}", err=True)
    else:
        click.echo(content, nl=False)
