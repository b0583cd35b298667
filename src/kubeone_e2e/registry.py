"""Scenario and infrastructure registry.

Holds the catalog by name. It is built once at startup and handed to the
CLI and to generated tests; lookups return fresh scenario instances so
bindings made by one run never leak into another.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .errors import ValidationError
from .shared.logging import get_logger

if TYPE_CHECKING:
    from .infra import Infra
    from .scenarios.base import Scenario

logger = get_logger(__name__)


class Registry:
    """Lookup of scenarios and infrastructures by name."""

    def __init__(self) -> None:
        self._scenarios: dict[str, Scenario] = {}
        self._infrastructures: dict[str, Infra] = {}

    def register_scenario(self, scenario: Scenario) -> None:
        """Register a scenario prototype.

        Raises:
            ValidationError: If the name is already taken
        """
        if scenario.name in self._scenarios:
            raise ValidationError(
                message=f"Scenario already registered: {scenario.name}",
                data={"scenario": scenario.name},
            )
        self._scenarios[scenario.name] = scenario
        logger.debug("registered scenario", scenario=scenario.name)

    def register_infrastructure(self, infra: Infra) -> None:
        """Register an infrastructure handle.

        Raises:
            ValidationError: If the name is already taken
        """
        if infra.name in self._infrastructures:
            raise ValidationError(
                message=f"Infrastructure already registered: {infra.name}",
                data={"infra": infra.name},
            )
        self._infrastructures[infra.name] = infra
        logger.debug("registered infrastructure", infra=infra.name)

    def scenario(self, name: str) -> Scenario:
        """Return a new, unbound instance of the named scenario.

        Raises:
            ValidationError: If no scenario has that name
        """
        prototype = self._scenarios.get(name)
        if prototype is None:
            raise ValidationError(
                message=f"Unknown scenario: {name}",
                data={"scenario": name, "known": ", ".join(self.scenario_names())},
            )
        return prototype.clone()

    def infrastructure(self, name: str) -> Infra:
        """Return the named infrastructure.

        Raises:
            ValidationError: If no infrastructure has that name
        """
        infra = self._infrastructures.get(name)
        if infra is None:
            raise ValidationError(
                message=f"Unknown infrastructure: {name}",
                data={"infra": name, "known": ", ".join(self.infrastructure_names())},
            )
        return infra

    def scenario_names(self) -> list[str]:
        return sorted(self._scenarios)

    def infrastructure_names(self) -> list[str]:
        return sorted(self._infrastructures)
