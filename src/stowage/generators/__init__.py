"""Generators for synthetic allocation scenarios."""

from stowage.generators.scenario import Scenario, ScenarioGenerator

__all__ = ["Scenario", "ScenarioGenerator"]
