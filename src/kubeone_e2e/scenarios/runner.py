"""Version-sequenced kubeone operations.

A plan is an ordered list of operations against one cluster: install the
first version, reconcile it with the binary under test, then upgrade
version by version. Operations run strictly in order and the first failure
stops the sequence.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..errors import OperationError, ValidationError
from ..kubeone.binary import KubeoneBin
from ..shared.logging import get_logger

logger = get_logger(__name__)


class OperationKind(str, Enum):
    INSTALL = "install"
    RECONCILE = "reconcile"
    UPGRADE = "upgrade"


@dataclass(frozen=True)
class Operation:
    """One `kubeone apply` against a manifest rendered for `version`."""

    kind: OperationKind
    version: str
    binary: Path
    from_version: str | None = None

    def describe(self) -> str:
        if self.kind is OperationKind.UPGRADE:
            return f"upgrade {self.from_version} -> {self.version}"
        return f"{self.kind.value} {self.version}"


def plan_install(version: str, binary: Path) -> list[Operation]:
    """Plan a fresh install: a single apply."""
    return [Operation(OperationKind.INSTALL, version, binary)]


def plan_upgrade(
    versions: Sequence[str],
    binary: Path,
    install_binary: Path | None = None,
) -> list[Operation]:
    """Plan install of versions[0] followed by one apply per version.

    Args:
        versions: Ordered Kubernetes versions, first one is installed
        binary: kubeone under test, used for every apply
        install_binary: kubeone used for the initial install (defaults to `binary`)

    Returns:
        Operations in execution order

    Raises:
        ValidationError: If no version is given
    """
    if not versions:
        raise ValidationError(message="At least one version is required")

    operations = [Operation(OperationKind.INSTALL, versions[0], install_binary or binary)]
    operations.append(Operation(OperationKind.RECONCILE, versions[0], binary))
    for previous, version in zip(versions, versions[1:]):
        operations.append(Operation(OperationKind.UPGRADE, version, binary, from_version=previous))
    return operations


class OperationRunner:
    """Execute operations in order, failing fast."""

    def __init__(self, kubeone_factory: Callable[[Operation], KubeoneBin]):
        """Initialize the runner.

        Args:
            kubeone_factory: Returns the command descriptor for an operation
                (renders its manifest on the way)
        """
        self.kubeone_factory = kubeone_factory

    def run(self, operations: Sequence[Operation]) -> list[Operation]:
        """Run every operation.

        Returns:
            The executed operations

        Raises:
            OperationError: From the first failing operation, with step context
        """
        executed: list[Operation] = []
        total = len(operations)
        for step, operation in enumerate(operations, start=1):
            log = logger.bind(step=f"{step}/{total}", operation=operation.kind.value, version=operation.version)
            log.info("running kubeone apply", description=operation.describe())
            kubeone = self.kubeone_factory(operation)
            try:
                kubeone.apply()
            except OperationError as e:
                e.data.update({"step": step, "operation": operation.kind.value, "version": operation.version})
                e.message = f"step {step}/{total} ({operation.describe()}): {e.message}"
                log.error("kubeone apply failed", error=e.message)
                raise
            executed.append(operation)
        return executed
