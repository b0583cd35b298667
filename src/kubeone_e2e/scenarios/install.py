"""Install scenario: a fresh cluster at one version."""

from __future__ import annotations

from ..generator import make_test_title, pull_prow_job_name
from ..kubeone import build_kubeone
from .base import RunContext, Scenario
from .runner import Operation, OperationRunner, plan_install


class InstallScenario(Scenario):
    """Install `versions[0]` with the binary under test and validate it."""

    expected_versions = 1

    def test_title(self) -> str:
        infra = self.validate()
        return make_test_title(infra.name, self.name, self.versions[0])

    def job_name(self) -> str:
        infra = self.validate()
        return pull_prow_job_name(infra.name, self.name, self.versions[0])

    def execute(self, ctx: RunContext) -> list[Operation]:
        binary = build_kubeone(ctx.config.source_dir)
        executed = OperationRunner(self.kubeone_factory(ctx)).run(plan_install(self.versions[0], binary))
        self.validate_cluster(ctx, self.kubeone(ctx, self.versions[0], binary))
        return executed
