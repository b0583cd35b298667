"""CLI output formatting helpers."""

from typing import Any

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .infra import Infra
from .scenarios import Scenario, ScenarioResult

console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    err_console.print(f"[red]Error:[/red] {escape(message)}", soft_wrap=True, highlight=False)


def print_config_yaml(data: dict[str, Any], sources: dict[str, str] | None = None) -> None:
    """Print config as YAML.

    Args:
        data: Configuration data
        sources: Optional key -> source mapping, printed as comments
    """
    if not sources:
        click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False))
        return

    for key, value in data.items():
        dumped = yaml.dump({key: value}, default_flow_style=False, sort_keys=False).rstrip()
        lines = dumped.splitlines()
        click.echo(f"{lines[0]}  # {sources.get(key, 'default')}")
        for line in lines[1:]:
            click.echo(line)


def print_catalog(scenarios: list[Scenario], infrastructures: list[Infra]) -> None:
    """Print registered scenarios and infrastructures as tables."""
    table = Table(title="Scenarios")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Kind")
    table.add_column("Versions", justify="right")
    table.add_column("Manifest")
    for scenario in scenarios:
        table.add_row(
            scenario.name,
            type(scenario).__name__,
            str(scenario.expected_versions),
            scenario.manifest_template,
        )
    console.print(table)

    table = Table(title="Infrastructures")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Provider")
    table.add_column("Terraform")
    for infra in infrastructures:
        table.add_row(infra.name, infra.provider, infra.terraform.path)
    console.print(table)


def print_scenario_result(result: ScenarioResult) -> None:
    click.echo(f"Scenario {result.scenario} on {result.infra} passed in {result.elapsed_seconds:.0f}s")
    for step, operation in enumerate(result.operations, start=1):
        click.echo(f"  {step}. {operation.describe()}")
