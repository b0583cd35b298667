"""Kubernetes conformance via Sonobuoy."""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..errors import ConformanceError, ValidationError, stderr_tail
from ..shared.logging import get_logger
from .client import proxy_environ

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10800
MAX_REPORTED_FAILURES = 20


class SonobuoyMode(str, Enum):
    CERTIFIED_CONFORMANCE = "certified-conformance"
    CONFORMANCE_LITE = "conformance-lite"
    QUICK = "quick"


def parse_mode(value: str | SonobuoyMode) -> SonobuoyMode:
    """Parse a Sonobuoy mode name.

    Raises:
        ValidationError: If the mode is unknown
    """
    try:
        return SonobuoyMode(value)
    except ValueError:
        raise ValidationError(
            message=f"Unknown sonobuoy mode: {value}",
            data={"known": ", ".join(m.value for m in SonobuoyMode)},
        ) from None


@dataclass
class ConformanceResult:
    """Summary of a Sonobuoy e2e run."""

    mode: SonobuoyMode
    passed: int = 0
    failed: list[str] = field(default_factory=list)
    skipped: int = 0
    tarball: str = ""

    @property
    def success(self) -> bool:
        return not self.failed and self.passed > 0


def parse_detailed_results(output: str) -> tuple[int, list[str], int]:
    """Parse `sonobuoy results --mode detailed` JSON lines.

    Returns:
        (passed count, failed test names, skipped count)
    """
    passed, skipped = 0, 0
    failed: list[str] = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            item = json.loads(line)
        except json.JSONDecodeError:
            continue
        status = item.get("status")
        if status == "passed":
            passed += 1
        elif status == "failed":
            failed.append(item.get("name", "<unnamed>"))
        elif status == "skipped":
            skipped += 1
    return passed, failed, skipped


class SonobuoyRunner:
    """Run Sonobuoy against a cluster behind the kubeone proxy."""

    def __init__(
        self,
        kubeconfig: str | Path,
        proxy_url: str,
        results_dir: Path,
        binary: str = "sonobuoy",
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.kubeconfig = str(kubeconfig)
        self.results_dir = results_dir
        self.binary = binary
        self.timeout = timeout
        self.env = proxy_environ(proxy_url)

    def _sonobuoy(self, *args: str, kubeconfig: bool = True) -> str:
        cmd = [self.binary, *args]
        if kubeconfig:
            cmd.extend(["--kubeconfig", self.kubeconfig])
        logger.debug("running sonobuoy", command=" ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, env=self.env)
        except FileNotFoundError as e:
            raise ConformanceError(message=f"{self.binary} not found. Is sonobuoy installed?") from e

        if result.returncode != 0:
            raise ConformanceError(
                message=f"sonobuoy {args[0]} failed",
                data={"returncode": result.returncode, "stderr": stderr_tail(result.stderr)},
            )
        return result.stdout

    def run(self, mode: str | SonobuoyMode = SonobuoyMode.CONFORMANCE_LITE) -> ConformanceResult:
        """Run the e2e plugin and evaluate its results.

        Sonobuoy resources are deleted afterwards, whatever the outcome.

        Raises:
            ConformanceError: If the run fails or any test failed
        """
        mode = parse_mode(mode)
        logger.info("running conformance tests", mode=mode.value)
        try:
            self._sonobuoy("run", f"--mode={mode.value}", "--wait", f"--timeout={self.timeout}")
            result = self._collect(mode)
        finally:
            try:
                self._sonobuoy("delete", "--wait")
            except ConformanceError as e:
                logger.warning("sonobuoy delete failed", error=str(e))

        if not result.success:
            raise ConformanceError(
                message=f"{len(result.failed)} conformance tests failed"
                if result.failed
                else "sonobuoy reported no passed tests",
                data={
                    "mode": mode.value,
                    "passed": result.passed,
                    "failed": "; ".join(result.failed[:MAX_REPORTED_FAILURES]),
                    "tarball": result.tarball,
                },
            )

        logger.info(
            "conformance tests passed",
            mode=mode.value,
            passed=result.passed,
            skipped=result.skipped,
        )
        return result

    def _collect(self, mode: SonobuoyMode) -> ConformanceResult:
        self.results_dir.mkdir(parents=True, exist_ok=True)
        output = self._sonobuoy("retrieve", str(self.results_dir)).strip()
        tarball = output.splitlines()[-1] if output else ""
        if not tarball:
            raise ConformanceError(message="sonobuoy retrieve returned no results tarball")

        detailed = self._sonobuoy(
            "results", tarball, "--plugin", "e2e", "--mode", "detailed", kubeconfig=False
        )
        passed, failed, skipped = parse_detailed_results(detailed)
        return ConformanceResult(mode=mode, passed=passed, failed=failed, skipped=skipped, tarball=tarball)
