"""Unit tests for the registry, catalog and infrastructure handles."""

from pathlib import Path

import pytest

from kubeone_e2e.catalog import default_infrastructures, default_registry, default_scenarios
from kubeone_e2e.errors import ValidationError
from kubeone_e2e.infra import Infra, Terraform
from kubeone_e2e.registry import Registry
from kubeone_e2e.scenarios import InstallScenario, UpgradeScenario


class TestInfra:
    """Tests for Infra and Terraform."""

    def test_relative_terraform_path_is_anchored(self):
        infra = Infra(name="aws_default", provider="aws", terraform=Terraform("examples/terraform/aws"))
        assert infra.tfjson_path(Path("/src")) == "/src/examples/terraform/aws"

    def test_absolute_terraform_path_untouched(self):
        infra = Infra(name="x", provider="aws", terraform=Terraform("/state/tf.json"))
        assert infra.tfjson_path(Path("/src")) == "/state/tf.json"
        assert infra.tfjson_path() == "/state/tf.json"


class TestRegistry:
    """Tests for Registry lookups."""

    def test_scenario_lookup_returns_unbound_copy(self, demo_infra):
        registry = Registry()
        registry.register_scenario(UpgradeScenario("upgrade_demo", "containerd_cluster.yaml.j2"))

        first = registry.scenario("upgrade_demo")
        first.set_infra(demo_infra)
        first.set_versions("1.0", "1.1")
        second = registry.scenario("upgrade_demo")

        assert first is not second
        assert isinstance(second, UpgradeScenario)
        assert second.infra is None
        assert second.versions == []

    def test_duplicate_scenario(self):
        registry = Registry()
        registry.register_scenario(InstallScenario("install_demo", "containerd_cluster.yaml.j2"))
        with pytest.raises(ValidationError, match="already registered"):
            registry.register_scenario(InstallScenario("install_demo", "cilium_cluster.yaml.j2"))

    def test_duplicate_infrastructure(self, demo_infra):
        registry = Registry()
        registry.register_infrastructure(demo_infra)
        with pytest.raises(ValidationError):
            registry.register_infrastructure(demo_infra)

    def test_unknown_names(self):
        registry = Registry()
        with pytest.raises(ValidationError, match="Unknown scenario: nope"):
            registry.scenario("nope")
        with pytest.raises(ValidationError, match="Unknown infrastructure: nope"):
            registry.infrastructure("nope")


class TestCatalog:
    """Tests for the built-in catalog."""

    def test_default_registry(self):
        registry = default_registry()

        assert registry.scenario_names() == [
            "install_cilium",
            "install_containerd",
            "upgrade_cilium",
            "upgrade_containerd",
        ]
        assert "aws_default" in registry.infrastructure_names()
        assert len(registry.infrastructure_names()) == len(default_infrastructures())

    def test_infrastructures_carry_presets(self):
        for infra in default_infrastructures():
            assert infra.name == f"{infra.provider}_default"
            assert infra.labels[f"preset-{infra.provider}"] == "true"
            assert infra.environ == {"PROVIDER": infra.provider}

    def test_scenario_kinds(self):
        kinds = {s.name: s.expected_versions for s in default_scenarios()}
        assert kinds["upgrade_containerd"] == 2
        assert kinds["install_containerd"] == 1
