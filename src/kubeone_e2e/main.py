"""CLI main entry point."""

import json

import click

from .catalog import default_registry
from .commands import generate, run
from .config import load_config
from .errors import E2EError
from .formatters import print_catalog, print_config_yaml, print_error
from .shared.logging import configure_logging

LOG_LEVELS = ["debug", "info", "warning", "error"]


@click.group()
@click.option("-c", "--config", type=click.Path(), help="Config file path")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS),
    default="info",
    show_default=True,
    help="Log level",
)
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write logs to a file")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines (for CI)")
@click.pass_context
def cli(ctx: click.Context, config: str, log_level: str, log_file: str, json_logs: bool) -> None:
    """KubeOne end-to-end scenario runner."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    configure_logging(log_level, log_file=log_file, json_output=json_logs)


cli.add_command(run)
cli.add_command(generate)


@cli.command("list")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def list_catalog(json_output: bool) -> None:
    """List available scenarios and infrastructures."""
    registry = default_registry()
    scenarios = [registry.scenario(name) for name in registry.scenario_names()]
    infrastructures = [registry.infrastructure(name) for name in registry.infrastructure_names()]

    if json_output:
        data = {
            "scenarios": [
                {
                    "name": s.name,
                    "kind": type(s).__name__,
                    "versions": s.expected_versions,
                    "manifest": s.manifest_template,
                }
                for s in scenarios
            ],
            "infrastructures": [
                {"name": i.name, "provider": i.provider, "terraform": i.terraform.path}
                for i in infrastructures
            ],
        }
        click.echo(json.dumps(data, indent=2))
    else:
        print_catalog(scenarios, infrastructures)


@cli.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def config_show(ctx: click.Context, json_output: bool) -> None:
    """Show the effective configuration and where each value comes from."""
    try:
        loaded = load_config(ctx.obj["config_path"])
    except E2EError as e:
        print_error(str(e))
        raise SystemExit(1)

    data = loaded.to_dict()
    if json_output:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        print_config_yaml(data, {key: loaded.get_source(key) for key in data})


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
