"""Error taxonomy for scenario execution.

Every failure raised by the orchestrator is an E2EError carrying a message
and a context dict (operation, version, exit code, ...) so a failed run can
be diagnosed from its report alone.
"""

from dataclasses import dataclass, field
from typing import Any

# Number of stderr lines kept on subprocess failures
STDERR_TAIL_LINES = 20


@dataclass
class E2EError(Exception):
    """Base error class for scenario errors."""

    message: str
    data: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        if not self.data:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.data.items())
        return f"{self.message} ({details})"


@dataclass
class ValidationError(E2EError):
    """Invalid input detected before any side effect."""

    message: str = "Validation failed"


@dataclass
class BuildError(E2EError):
    """The kubeone binary could not be built or downloaded."""

    message: str = "Building kubeone failed"


@dataclass
class OperationError(E2EError):
    """A kubeone invocation exited with a non-zero status."""

    message: str = "kubeone operation failed"


@dataclass
class TunnelStartError(E2EError):
    """The kubeone proxy could not be started or never became reachable."""

    message: str = "Starting kubeone proxy failed"


@dataclass
class TunnelExitError(E2EError):
    """The kubeone proxy exited with an error after cancellation.

    Returned by TunnelSession.wait() rather than raised: a proxy killed on
    purpose usually reports a signal exit status.
    """

    message: str = "kubeone proxy exited with an error"


@dataclass
class ClusterClientError(E2EError):
    """A kubectl call against the cluster failed."""

    message: str = "Cluster request failed"
    transient: bool = False


@dataclass
class ReadinessTimeoutError(E2EError):
    """Nodes did not become ready within the configured budget."""

    message: str = "Nodes did not become ready"


@dataclass
class CloudProviderTestError(E2EError):
    """A cloud provider capability check failed."""

    message: str = "Cloud provider tests failed"


@dataclass
class ConformanceError(E2EError):
    """The conformance suite reported failures or could not run."""

    message: str = "Conformance tests failed"


def stderr_tail(stderr: str | None, lines: int = STDERR_TAIL_LINES) -> str:
    """Return the last lines of a subprocess stderr stream."""
    if not stderr:
        return ""
    return "\n".join(stderr.strip().splitlines()[-lines:])


def operation_failed(
    operation: str,
    version: str,
    returncode: int,
    stderr: str | None = None,
) -> OperationError:
    """Build an OperationError for a failed kubeone invocation.

    Args:
        operation: kubeone sub-command or scenario step name
        version: Kubernetes version the manifest was rendered for
        returncode: Exit status of the process
        stderr: Captured stderr, trimmed to its tail

    Returns:
        OperationError with diagnostic context
    """
    return OperationError(
        message=f"kubeone {operation} failed for version {version}",
        data={
            "operation": operation,
            "version": version,
            "returncode": returncode,
            "stderr": stderr_tail(stderr),
        },
    )
