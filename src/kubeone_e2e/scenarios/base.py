"""Scenario base class and run context."""

from __future__ import annotations

import copy
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from ..cluster import (
    ClusterClient,
    NodeReadinessWaiter,
    SonobuoyRunner,
    run_cloud_provider_tests,
)
from ..config import E2EConfig
from ..errors import E2EError, ValidationError
from ..generator import (
    GeneratorType,
    ProwConfig,
    TestParams,
    new_prow_job,
    parse_generator_type,
    render,
)
from ..infra import Infra
from ..kubeone import KubeoneBin, ProxyProbe, proxy_tunnel, write_kubeconfig
from ..manifest import ManifestData, render_manifest
from ..shared.logging import bound_run_context, get_logger
from ..shared.paths import new_run_dir
from .runner import Operation

logger = get_logger(__name__)


@dataclass
class RunContext:
    """Configuration and working directory of one scenario run."""

    config: E2EConfig
    workdir: Path

    @classmethod
    def create(cls, config: E2EConfig, prefix: str, base_dir: Path | None = None) -> RunContext:
        return cls(config=config, workdir=new_run_dir(prefix, base_dir))


@dataclass
class ScenarioResult:
    """Outcome of a successful scenario run."""

    scenario: str
    infra: str
    versions: list[str]
    operations: list[Operation] = field(default_factory=list)
    elapsed_seconds: float = 0.0


class Scenario(ABC):
    """A cluster lifecycle test bound to one infrastructure and versions.

    Instances in the registry are unbound prototypes; bind a clone with
    set_infra() and set_versions(), then call run().
    """

    # Number of versions the scenario operates on
    expected_versions: int = 1

    def __init__(self, name: str, manifest_template: str):
        self.name = name
        self.manifest_template = manifest_template
        self.infra: Infra | None = None
        self.versions: list[str] = []
        self._tunnel_active = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, versions={self.versions!r})"

    def set_infra(self, infra: Infra) -> None:
        self.infra = infra

    def set_versions(self, *versions: str) -> None:
        self.versions = list(versions)

    def clone(self) -> Scenario:
        """Return an unbound copy of this scenario."""
        other = copy.copy(self)
        other.infra = None
        other.versions = []
        other._tunnel_active = False
        return other

    def validate(self) -> Infra:
        """Check the scenario is bound and return its infrastructure.

        Raises:
            ValidationError: If no infrastructure is bound or the version
                count does not match
        """
        if self.infra is None:
            raise ValidationError(
                message=f"Scenario {self.name} is not bound to an infrastructure",
                data={"scenario": self.name},
            )
        if len(self.versions) != self.expected_versions:
            raise ValidationError(
                message=(
                    f"Scenario {self.name} expects {self.expected_versions} version(s), "
                    f"got {len(self.versions)}"
                ),
                data={"scenario": self.name, "versions": ", ".join(self.versions)},
            )
        return self.infra

    @abstractmethod
    def test_title(self) -> str:
        """Name of the generated pytest function."""

    @abstractmethod
    def job_name(self) -> str:
        """Name of the generated Prow job."""

    @abstractmethod
    def execute(self, ctx: RunContext) -> list[Operation]:
        """Mutate the cluster and validate it. Called by run()."""

    def run(self, ctx: RunContext) -> ScenarioResult:
        """Run the scenario end to end.

        Every event logged during the run carries the scenario and infra names.

        Raises:
            E2EError: On the first failing phase
        """
        infra = self.validate()
        with bound_run_context(scenario=self.name, infra=infra.name):
            logger.info("scenario started", versions=", ".join(self.versions), workdir=str(ctx.workdir))

            start = time.monotonic()
            try:
                operations = self.execute(ctx)
            except E2EError as e:
                logger.error("scenario failed", error=str(e), elapsed=round(time.monotonic() - start, 1))
                raise

            elapsed = time.monotonic() - start
            logger.info("scenario passed", elapsed=round(elapsed, 1))

        return ScenarioResult(
            scenario=self.name,
            infra=infra.name,
            versions=list(self.versions),
            operations=operations,
            elapsed_seconds=elapsed,
        )

    def kubeone(self, ctx: RunContext, version: str, binary: Path) -> KubeoneBin:
        """Render the manifest for `version` and describe the kubeone call."""
        infra = self.validate()
        manifest = render_manifest(
            self.manifest_template,
            ManifestData(version=version),
            ctx.workdir / "manifests",
        )
        return KubeoneBin(
            bin_path=str(binary),
            tfjson=infra.tfjson_path(Path(ctx.config.source_dir)),
            manifest=str(manifest),
            version=version,
            verbose=ctx.config.verbose,
            credentials=ctx.config.credentials,
        )

    def kubeone_factory(self, ctx: RunContext) -> Callable[[Operation], KubeoneBin]:
        return lambda operation: self.kubeone(ctx, operation.version, operation.binary)

    def validate_cluster(self, ctx: RunContext, kubeone: KubeoneBin) -> None:
        """Open the proxy and run readiness, cloud provider and conformance checks.

        Raises:
            E2EError: If a proxy is already open for this run, or any check fails
        """
        if self._tunnel_active:
            raise E2EError(
                message="A kubeone proxy is already active for this scenario run",
                data={"scenario": self.name},
            )

        infra = self.validate()
        config = ctx.config
        kubeconfig = write_kubeconfig(kubeone, ctx.workdir)
        probe = None
        if config.probe_attempts > 0:
            probe = ProxyProbe(max_attempts=config.probe_attempts, interval_seconds=config.probe_interval)

        self._tunnel_active = True
        try:
            with proxy_tunnel(
                kubeone,
                settle_delay=config.settle_delay,
                probe=probe,
                log_path=ctx.workdir / "proxy.log",
            ) as session:
                client = ClusterClient(kubeconfig, session.address, kubectl=config.kubectl_binary)
                NodeReadinessWaiter(
                    client,
                    expected_nodes=infra.expected_nodes,
                    timeout=config.node_ready_timeout,
                    interval=config.node_ready_interval,
                ).wait()
                run_cloud_provider_tests(client, infra.provider)
                SonobuoyRunner(
                    kubeconfig,
                    session.address,
                    results_dir=ctx.workdir / "sonobuoy",
                    binary=config.sonobuoy_binary,
                ).run(config.conformance_mode)
        finally:
            self._tunnel_active = False

    def generate_tests(
        self,
        generator_type: GeneratorType | str,
        prow_config: ProwConfig | None = None,
    ) -> str:
        """Render this scenario as pytest source or Prow job YAML.

        Raises:
            ValidationError: If the scenario is not fully bound or the
                generator type is unknown
        """
        infra = self.validate()
        kind = parse_generator_type(generator_type)

        title = self.test_title()
        params = TestParams(
            test_title=title,
            infra=infra.name,
            scenario=self.name,
            versions=tuple(self.versions),
        )
        cfg = (prow_config or ProwConfig()).with_environ(infra.environ)
        job = new_prow_job(self.job_name(), infra.labels, title, cfg)
        return render(kind, [params], [job])
