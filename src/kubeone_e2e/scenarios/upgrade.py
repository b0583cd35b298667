"""Upgrade scenario: install with a released kubeone, upgrade with the build."""

from __future__ import annotations

from ..generator import make_test_title, pull_prow_job_name
from ..kubeone import build_kubeone, download_kubeone
from .base import RunContext, Scenario
from .runner import Operation, OperationRunner, plan_upgrade


class UpgradeScenario(Scenario):
    """Install `versions[0]`, then upgrade the cluster to `versions[1]`.

    The cluster is installed with the released kubeone configured as
    `kubeone_init_version`; reconcile and upgrade use the binary built from
    the source checkout.
    """

    expected_versions = 2

    def test_title(self) -> str:
        infra = self.validate()
        return make_test_title(infra.name, self.name, "from", self.versions[0], "to", self.versions[1])

    def job_name(self) -> str:
        infra = self.validate()
        return pull_prow_job_name(infra.name, self.name, "from", self.versions[0], "to", self.versions[1])

    def execute(self, ctx: RunContext) -> list[Operation]:
        binary = build_kubeone(ctx.config.source_dir)
        init_binary = download_kubeone(ctx.config.kubeone_init_version)

        operations = plan_upgrade(self.versions, binary, install_binary=init_binary)
        executed = OperationRunner(self.kubeone_factory(ctx)).run(operations)

        self.validate_cluster(ctx, self.kubeone(ctx, self.versions[-1], binary))
        return executed
