"""Unit tests for version-sequenced operations."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from kubeone_e2e.errors import OperationError, ValidationError, operation_failed
from kubeone_e2e.scenarios import (
    Operation,
    OperationKind,
    OperationRunner,
    plan_install,
    plan_upgrade,
)

BUILT = Path("/src/dist/kubeone")
RELEASED = Path("/cache/1.4.6/kubeone")


class RecordingFactory:
    """kubeone_factory recording apply order, failing at chosen versions."""

    def __init__(self, fail_at=()):
        self.fail_at = set(fail_at)
        self.applied = []

    def __call__(self, operation):
        kubeone = MagicMock()

        def apply():
            self.applied.append((operation.kind, operation.version))
            if operation.version in self.fail_at:
                raise operation_failed("apply", operation.version, 1, "timed out waiting for nodes")

        kubeone.apply.side_effect = apply
        return kubeone


class TestPlan:
    """Tests for plan_upgrade and plan_install."""

    def test_upgrade_plan(self):
        plan = plan_upgrade(["1.26.9", "1.27.6"], BUILT, install_binary=RELEASED)

        assert plan == [
            Operation(OperationKind.INSTALL, "1.26.9", RELEASED),
            Operation(OperationKind.RECONCILE, "1.26.9", BUILT),
            Operation(OperationKind.UPGRADE, "1.27.6", BUILT, from_version="1.26.9"),
        ]

    def test_k_versions_give_k_applies_after_install(self):
        versions = ["1.25", "1.26", "1.27", "1.28"]
        plan = plan_upgrade(versions, BUILT)

        assert plan[0].kind is OperationKind.INSTALL
        assert [op.version for op in plan[1:]] == versions
        assert plan[-1].from_version == "1.27"

    def test_install_binary_defaults_to_built(self):
        assert plan_upgrade(["1.0"], BUILT)[0].binary == BUILT

    def test_empty_versions(self):
        with pytest.raises(ValidationError):
            plan_upgrade([], BUILT)

    def test_install_plan(self):
        assert plan_install("1.27.6", BUILT) == [Operation(OperationKind.INSTALL, "1.27.6", BUILT)]

    def test_describe(self):
        assert plan_upgrade(["1.0", "1.1"], BUILT)[2].describe() == "upgrade 1.0 -> 1.1"
        assert plan_install("1.0", BUILT)[0].describe() == "install 1.0"


class TestOperationRunner:
    """Tests for OperationRunner."""

    def test_runs_in_order(self):
        factory = RecordingFactory()
        plan = plan_upgrade(["1.0", "1.1", "1.2"], BUILT)

        executed = OperationRunner(factory).run(plan)

        assert executed == plan
        assert factory.applied == [
            (OperationKind.INSTALL, "1.0"),
            (OperationKind.RECONCILE, "1.0"),
            (OperationKind.UPGRADE, "1.1"),
            (OperationKind.UPGRADE, "1.2"),
        ]

    def test_fails_fast(self):
        factory = RecordingFactory(fail_at={"1.1"})
        plan = plan_upgrade(["1.0", "1.1", "1.2"], BUILT)

        with pytest.raises(OperationError) as exc_info:
            OperationRunner(factory).run(plan)

        assert factory.applied[-1] == (OperationKind.UPGRADE, "1.1")
        assert (OperationKind.UPGRADE, "1.2") not in factory.applied
        error = exc_info.value
        assert error.data["step"] == 3
        assert error.data["operation"] == "upgrade"
        assert error.data["version"] == "1.1"
        assert error.data["returncode"] == 1
        assert error.message.startswith("step 3/4 (upgrade 1.0 -> 1.1)")
