"""Sanity checks and validation for farm configuration and ledger state."""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..config.schema import Config
from ..engine.accounting import LedgerState
from ..engine.clock import multiplier
from ..simulation.runner import SimulationResult


@dataclass
class ValidationWarning:
    """A validation warning with severity and message."""
    severity: str  # "warning" or "error"
    category: str  # e.g., "input", "conservation", "funding"
    message: str
    details: Optional[str] = None


def projected_emission(config: Config, token: str, end_time: int) -> int:
    """
    Reward units of ``token`` all pools would emit from start until ``end_time``.

    Assumes every pool is staked the whole time, so this is an upper bound on
    what the farm must hold to pay everyone in full.
    """
    total_weight = sum(pool.weight for pool in config.pools)
    if total_weight == 0:
        return 0
    span = multiplier(
        config.schedule.start_time,
        end_time,
        config.schedule.bonus_end,
        config.ledger.bonus_multiplier
    )
    emitted = 0
    for pool in config.pools:
        for reward in pool.rewards:
            if reward.token == token:
                emitted += span * reward.rate * pool.weight // total_weight
    return emitted


class SanityChecker:
    """Run sanity checks on configuration and ledger state."""

    def __init__(self, config: Config):
        """Initialize with configuration."""
        self.config = config

    def check_config_inputs(self) -> List[ValidationWarning]:
        """
        Check configuration inputs for implausible values.

        Returns:
            List of validation warnings
        """
        warnings = []
        config = self.config

        if config.pools and sum(pool.weight for pool in config.pools) == 0:
            warnings.append(ValidationWarning(
                severity="error",
                category="input",
                message="Total pool weight is zero; no pool will ever accrue rewards",
                details=f"{len(config.pools)} pools configured"
            ))

        for pid, pool in enumerate(config.pools):
            if pool.fee_rate > config.ledger.max_fee_rate:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="bounds",
                    message=f"Pool {pid} fee exceeds the ledger cap",
                    details=f"fee_rate={pool.fee_rate}, max_fee_rate={config.ledger.max_fee_rate}"
                ))
            if pool.weight == 0:
                warnings.append(ValidationWarning(
                    severity="warning",
                    category="input",
                    message=f"Pool {pid} ({pool.asset}) has zero weight and earns nothing",
                ))
            if not pool.rewards:
                warnings.append(ValidationWarning(
                    severity="warning",
                    category="input",
                    message=f"Pool {pid} ({pool.asset}) has no reward tokens",
                ))
            if pool.fee_rate == 1000:
                warnings.append(ValidationWarning(
                    severity="warning",
                    category="bounds",
                    message=f"Pool {pid} fee of 100% releases nothing on withdrawal",
                ))

        # Funding coverage over the simulated horizon
        sim = config.simulation
        horizon_end = config.schedule.start_time + sim.steps * sim.timestep
        for token in config.reward_token_ids:
            funded = sim.reward_funding.get(token, 0)
            needed = projected_emission(config, token, horizon_end)
            if funded == 0:
                warnings.append(ValidationWarning(
                    severity="warning",
                    category="funding",
                    message=f"Reward token {token} is not funded; every payout will fall short",
                    details=f"Projected emission: {needed:,}"
                ))
            elif funded < needed:
                warnings.append(ValidationWarning(
                    severity="warning",
                    category="funding",
                    message=f"Reward token {token} is under-funded for the simulated horizon",
                    details=f"Funded {funded:,} vs projected emission {needed:,}"
                ))

        if config.ledger.bonus_multiplier > 10:
            warnings.append(ValidationWarning(
                severity="warning",
                category="bounds",
                message=f"Bonus multiplier of {config.ledger.bonus_multiplier}x is unusually high",
            ))

        if sim.deposit_max > sim.initial_balance:
            warnings.append(ValidationWarning(
                severity="warning",
                category="input",
                message="Largest simulated deposit exceeds the users' starting balance",
                details=f"deposit_max={sim.deposit_max:,}, initial_balance={sim.initial_balance:,}"
            ))

        return warnings

    def check_ledger(self, state: LedgerState, t: Optional[int] = None) -> List[ValidationWarning]:
        """
        Check ledger invariants.

        Args:
            state: Ledger state at a quiescent point
            t: Time of the check, for messages

        Returns:
            List of validation warnings
        """
        warnings = []
        when = f" at t={t}" if t is not None else ""

        is_valid, error_msg = state.validate_conservation()
        if not is_valid:
            warnings.append(ValidationWarning(
                severity="error",
                category="conservation",
                message=f"Pool total differs from the sum of positions{when}",
                details=error_msg
            ))

        is_valid, error_msg = state.validate_weights()
        if not is_valid:
            warnings.append(ValidationWarning(
                severity="error",
                category="conservation",
                message=f"Weight total out of sync{when}",
                details=error_msg
            ))

        is_valid, error_msg = state.validate_debts(self.config.ledger.acc_scale)
        if not is_valid:
            warnings.append(ValidationWarning(
                severity="error",
                category="conservation",
                message=f"Reward debt exceeds accrued value{when}",
                details=error_msg
            ))

        for pool in state.pools:
            if pool.amount < 0:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="bounds",
                    message=f"Pool {pool.pid} staked amount went negative{when}",
                    details=f"Value: {pool.amount:,}"
                ))

        return warnings

    def check_metrics(self, metrics: Dict[str, Any]) -> List[ValidationWarning]:
        """
        Check computed metrics for issues.

        Args:
            metrics: Computed metrics dictionary

        Returns:
            List of validation warnings
        """
        warnings = []

        for key, value in metrics.items():
            if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
                warnings.append(ValidationWarning(
                    severity="error",
                    category="nan",
                    message=f"Invalid metric value for {key}",
                    details=f"Value: {value}"
                ))

        for key, value in metrics.items():
            if key.startswith('shortfall_') or key.startswith('total_shortfall_'):
                if value:
                    token = key.split('shortfall_', 1)[1]
                    warnings.append(ValidationWarning(
                        severity="warning",
                        category="funding",
                        message=f"Reward payouts of {token} fell short",
                        details=f"Unpaid entitlement: {value:,}"
                    ))

        return warnings


def validate_simulation_results(result: SimulationResult) -> List[ValidationWarning]:
    """
    Validate complete simulation results.

    Args:
        result: Output of SimulationRunner.run

    Returns:
        List of all validation warnings
    """
    checker = SanityChecker(result.config)
    warnings = []

    warnings.extend(checker.check_config_inputs())

    for error in result.conservation_errors[:10]:
        warnings.append(ValidationWarning(
            severity="error",
            category="conservation",
            message="Ledger invariant violated during simulation",
            details=error
        ))

    warnings.extend(checker.check_metrics(result.final_metrics))

    total_steps = len(result.metrics_over_time)
    rejected = len(result.rejected_actions)
    if total_steps and rejected > total_steps // 2:
        warnings.append(ValidationWarning(
            severity="warning",
            category="behaviour",
            message="More than half of simulated actions were rejected",
            details=f"{rejected} of {total_steps} steps"
        ))

    return warnings
