"""`kubeone-e2e run`: run one scenario against provisioned infrastructure."""

from __future__ import annotations

from pathlib import Path

import click

from ..catalog import default_registry
from ..config import load_config
from ..errors import E2EError
from ..formatters import print_error, print_scenario_result
from ..scenarios import RunContext


@click.command()
@click.argument("scenario_name", metavar="SCENARIO")
@click.option("--infra", "infra_name", required=True, help="Infrastructure name")
@click.option(
    "--version",
    "versions",
    multiple=True,
    required=True,
    help="Kubernetes version (repeat for upgrades: first is installed)",
)
@click.option("--workdir", type=click.Path(file_okay=False), help="Run directory (default: new dir under ~/.kubeone-e2e/runs)")
@click.pass_context
def run(ctx, scenario_name, infra_name, versions, workdir):
    """Run a scenario.

    The infrastructure must already be provisioned; its Terraform output is
    handed to kubeone. Example:

        kubeone-e2e run upgrade_containerd --infra aws_default \\
            --version v1.26.9 --version v1.27.6
    """
    try:
        config = load_config(ctx.obj.get("config_path"))
        registry = default_registry()
        scenario = registry.scenario(scenario_name)
        scenario.set_infra(registry.infrastructure(infra_name))
        scenario.set_versions(*versions)
        scenario.validate()

        if workdir:
            Path(workdir).mkdir(parents=True, exist_ok=True)
            run_ctx = RunContext(config=config, workdir=Path(workdir))
        else:
            run_ctx = RunContext.create(config, scenario.name)

        result = scenario.run(run_ctx)
    except E2EError as e:
        print_error(str(e))
        raise SystemExit(1)

    print_scenario_result(result)
