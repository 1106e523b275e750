"""Scenario simulation over the farm ledger."""

from .monte_carlo import MonteCarloRunner
from .runner import SimulationResult, SimulationRunner, build_farm, build_vault

__all__ = ["MonteCarloRunner", "SimulationResult", "SimulationRunner", "build_farm", "build_vault"]
