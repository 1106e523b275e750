"""Monte Carlo simulation over randomized user behaviour."""

from typing import List

import pandas as pd

from ..config.schema import Config
from .runner import SimulationResult, SimulationRunner


class MonteCarloRunner:
    """Repeat a farm scenario across seeds and summarise the outcomes."""

    def __init__(self, config: Config):
        """
        Initialize Monte Carlo runner.

        Args:
            config: Base configuration
        """
        self.config = config

    def run(
        self,
        num_runs: int = None,
        random_seed: int = None
    ) -> List[SimulationResult]:
        """
        Run Monte Carlo simulation.

        Args:
            num_runs: Number of runs (defaults to config value)
            random_seed: Random seed (defaults to config value)

        Returns:
            List of simulation results
        """
        if num_runs is None:
            num_runs = self.config.simulation.monte_carlo_runs

        if random_seed is None:
            random_seed = self.config.simulation.random_seed

        runner = SimulationRunner(self.config)
        return [runner.run(random_seed=random_seed + run_idx) for run_idx in range(num_runs)]

    @staticmethod
    def to_frame(results: List[SimulationResult]) -> pd.DataFrame:
        """One row of final metrics per run."""
        rows = []
        for run_idx, result in enumerate(results):
            row = {'run': run_idx, 'invariant_violations': len(result.conservation_errors)}
            row.update(result.final_metrics)
            rows.append(row)
        return pd.DataFrame(rows)

    @classmethod
    def summarize(cls, results: List[SimulationResult]) -> pd.DataFrame:
        """Mean, spread and percentiles of every numeric final metric."""
        frame = cls.to_frame(results).drop(columns=['run'])
        numeric = frame.select_dtypes(include='number').astype(float)
        return numeric.describe(percentiles=[0.05, 0.5, 0.95]).T
