"""Cluster lifecycle scenarios."""

from .base import RunContext, Scenario, ScenarioResult
from .install import InstallScenario
from .runner import (
    Operation,
    OperationKind,
    OperationRunner,
    plan_install,
    plan_upgrade,
)
from .upgrade import UpgradeScenario

__all__ = [
    # Scenarios
    "Scenario",
    "InstallScenario",
    "UpgradeScenario",
    "RunContext",
    "ScenarioResult",
    # Runner
    "Operation",
    "OperationKind",
    "OperationRunner",
    "plan_install",
    "plan_upgrade",
]
