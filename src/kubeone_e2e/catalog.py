"""Built-in scenarios and infrastructures."""

from __future__ import annotations

from .infra import Infra, Terraform
from .registry import Registry
from .scenarios import InstallScenario, Scenario, UpgradeScenario

# provider name -> Prow preset labels carrying its credentials
PROVIDER_PRESETS = {
    "aws": {"preset-aws": "true"},
    "azure": {"preset-azure": "true"},
    "digitalocean": {"preset-digitalocean": "true"},
    "gce": {"preset-gce": "true"},
    "hetzner": {"preset-hetzner": "true"},
    "openstack": {"preset-openstack": "true"},
    "vsphere": {"preset-vsphere": "true"},
}

COMMON_LABELS = {"preset-goproxy": "true"}


def default_infrastructures() -> list[Infra]:
    """One `<provider>_default` infrastructure per supported provider."""
    return [
        Infra(
            name=f"{provider}_default",
            provider=provider,
            terraform=Terraform(path=f"examples/terraform/{provider}"),
            environ={"PROVIDER": provider},
            labels={**COMMON_LABELS, **presets},
        )
        for provider, presets in PROVIDER_PRESETS.items()
    ]


def default_scenarios() -> list[Scenario]:
    return [
        InstallScenario("install_containerd", "containerd_cluster.yaml.j2"),
        InstallScenario("install_cilium", "cilium_cluster.yaml.j2"),
        UpgradeScenario("upgrade_containerd", "containerd_cluster.yaml.j2"),
        UpgradeScenario("upgrade_cilium", "cilium_cluster.yaml.j2"),
    ]


def default_registry() -> Registry:
    """Registry holding the built-in catalog."""
    registry = Registry()
    for infra in default_infrastructures():
        registry.register_infrastructure(infra)
    for scenario in default_scenarios():
        registry.register_scenario(scenario)
    return registry
