"""Simulation runner - drive a farm scenario over time.

Key Features:
- Builds the token ledger, vaults and farm straight from Config
- Randomly chosen users deposit, withdraw or harvest each step (numpy RNG)
- Checks ledger invariants after every step
- Records per-step metrics for reporting
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from ..config.schema import Config, PoolSpec
from ..engine.errors import FarmError
from ..engine.farm import Farm, ManualClock
from ..engine.tokens import MAX_ALLOWANCE, NATIVE_TOKEN, TokenLedger
from ..engine.vaults import HoldingStrategy, NativeVault, PlainVault, StrategyVault, Vault

logger = logging.getLogger(__name__)

ACTIONS = ("deposit", "withdraw", "harvest", "idle")


@dataclass
class SimulationResult:
    """Complete simulation result."""
    config: Config
    metrics_over_time: List[Dict[str, Any]]
    final_metrics: Dict[str, Any]
    final_snapshot: Dict[str, Any]
    events: List[Dict[str, Any]] = field(default_factory=list)
    conservation_errors: List[str] = field(default_factory=list)
    rejected_actions: List[str] = field(default_factory=list)
    action_counts: Dict[str, int] = field(default_factory=dict)


def build_vault(spec: PoolSpec, pid: int, config: Config, tokens: TokenLedger) -> Vault:
    """Create the vault variant a pool config asks for."""
    address = f"vault-{pid}-{spec.asset}"
    fee_sink = config.ledger.fee_sink
    if spec.vault == "native":
        return NativeVault(tokens, address, fee_sink)
    if spec.vault == "strategy":
        strategy = HoldingStrategy(tokens, f"strategy-{pid}-{spec.asset}", spec.asset)
        return StrategyVault(tokens, address, spec.asset, fee_sink, strategy)
    return PlainVault(tokens, address, spec.asset, fee_sink)


def build_farm(config: Config, clock: ManualClock, tokens: Optional[TokenLedger] = None) -> Farm:
    """
    Build a configured, started and funded farm.

    Args:
        config: Scenario configuration
        clock: Clock the farm reads ``now`` from
        tokens: Existing token ledger (a fresh one is created if omitted)

    Returns:
        Farm with every configured pool registered
    """
    ledger = config.ledger
    if tokens is None:
        tokens = TokenLedger(
            wrapped_native=ledger.wrapped_native_token,
            transfer_fees=config.transfer_fees
        )
    farm = Farm(
        tokens,
        owner=ledger.owner,
        address=ledger.farm_address,
        clock=clock,
        acc_scale=ledger.acc_scale,
        bonus_multiplier=ledger.bonus_multiplier,
        max_fee_rate=ledger.max_fee_rate
    )

    for pid, spec in enumerate(config.pools):
        farm.add_pool(
            ledger.owner,
            spec.asset,
            spec.weight,
            build_vault(spec, pid, config, tokens),
            [(reward.token, reward.rate) for reward in spec.rewards],
            fee_rate=spec.fee_rate
        )

    farm.set_start_time(ledger.owner, config.schedule.start_time)
    if config.schedule.bonus_end:
        farm.set_bonus_end(ledger.owner, config.schedule.bonus_end)

    for token, amount in config.simulation.reward_funding.items():
        if amount:
            tokens.mint(token, ledger.owner, amount)
            farm.fund_rewards(ledger.owner, token, amount)
    return farm


class SimulationRunner:
    """Run one randomized farm scenario."""

    def __init__(self, config: Config):
        """
        Initialize simulation runner.

        Args:
            config: Scenario configuration
        """
        self.config = config
        self.users = [f"user-{i}" for i in range(config.simulation.num_users)]
        probabilities = config.simulation.action_weights.probabilities()
        self._probabilities = [probabilities[name] for name in ACTIONS]

    def run(self, random_seed: int = None) -> SimulationResult:
        """
        Run the simulation.

        Args:
            random_seed: Random seed for reproducibility

        Returns:
            Simulation result
        """
        sim = self.config.simulation
        seed = sim.random_seed if random_seed is None else random_seed
        rng = np.random.default_rng(seed)

        clock = ManualClock(self.config.schedule.start_time)
        farm = build_farm(self.config, clock)
        self._fund_users(farm)

        metrics_over_time: List[Dict[str, Any]] = []
        conservation_errors: List[str] = []
        rejected: List[str] = []
        counts = {name: 0 for name in ACTIONS}

        for step in range(sim.steps):
            clock.advance(sim.timestep)
            user = self.users[int(rng.integers(len(self.users)))]
            pid = int(rng.integers(farm.pool_length())) if farm.pool_length() else 0
            action = ACTIONS[int(rng.choice(len(ACTIONS), p=self._probabilities))]

            if farm.pool_length():
                try:
                    action = self._perform(farm, rng, action, pid, user)
                except FarmError as exc:
                    rejected.append(f"t={clock.t}: {action} pool {pid} by {user}: {exc}")
            counts[action] += 1

            for error in farm.violations():
                conservation_errors.append(f"t={clock.t}: {error}")
            metrics_over_time.append(self._compute_metrics(farm, step))

        if conservation_errors:
            logger.warning("simulation finished with %d invariant violations", len(conservation_errors))

        return SimulationResult(
            config=self.config,
            metrics_over_time=metrics_over_time,
            final_metrics=self._compute_final_metrics(farm),
            final_snapshot=farm.snapshot(),
            events=[event.to_dict() for event in farm.events],
            conservation_errors=conservation_errors,
            rejected_actions=rejected,
            action_counts=counts
        )

    def _fund_users(self, farm: Farm) -> None:
        """Give every user a starting balance of each pool asset and approve the farm."""
        tokens = farm.tokens
        balance = self.config.simulation.initial_balance
        for user in self.users:
            tokens.mint(NATIVE_TOKEN, user, balance)
            for spec in self.config.pools:
                if spec.vault == "native":
                    tokens.mint(NATIVE_TOKEN, user, balance)
                    tokens.wrap(user, balance)
                else:
                    tokens.mint(spec.asset, user, balance)
                tokens.approve(spec.asset, user, farm.address, MAX_ALLOWANCE)

    def _perform(self, farm: Farm, rng: np.random.Generator, action: str, pid: int, user: str) -> str:
        """Carry out one action; returns the action actually taken."""
        sim = self.config.simulation
        spec = self.config.pools[pid]
        staked = farm.state.positions.get(pid, user).amount

        if action == "deposit":
            amount = int(rng.integers(sim.deposit_min, sim.deposit_max + 1))
            native_value = 0
            if spec.vault == "native" and rng.random() < 0.5:
                native_value = amount // 2
                amount -= native_value
            available = farm.tokens.balance_of(spec.asset, user)
            if available < amount or farm.tokens.balance_of(NATIVE_TOKEN, user) < native_value:
                return "idle"
            farm.deposit(pid, user, amount, native_value=native_value)
        elif action == "withdraw":
            if staked == 0:
                return "idle"
            farm.withdraw(pid, user, int(rng.integers(1, staked + 1)))
        elif action == "harvest":
            if staked == 0:
                return "idle"
            farm.harvest(pid, user)
        return action

    def _compute_metrics(self, farm: Farm, step: int) -> Dict[str, Any]:
        """Per-step metrics: stake, TVL, accumulators and payouts."""
        scale = farm.acc_scale
        metrics: Dict[str, Any] = {'step': step, 't': farm.clock()}
        total_staked = 0
        for pool in farm.state.pools:
            total_staked += pool.amount
            metrics[f'staked_{pool.pid}'] = pool.amount
            metrics[f'tvl_{pool.pid}'] = farm.tvl(pool.pid)
            for token, acc in farm.state.pools.accumulators(pool.pid).items():
                metrics[f'reward_per_share_{pool.pid}_{token}'] = acc / scale
        metrics['total_staked'] = total_staked
        metrics['total_tvl'] = farm.total_tvl()
        for token in farm.reward_tokens():
            metrics[f'paid_{token}'] = farm.total_paid(token)
            metrics[f'shortfall_{token}'] = farm.total_shortfall(token)
            metrics[f'reward_balance_{token}'] = farm.reward_balance(token)
        return metrics

    def _compute_final_metrics(self, farm: Farm) -> Dict[str, Any]:
        """Compute final summary metrics."""
        final: Dict[str, Any] = {
            'final_time': farm.clock(),
            'num_pools': farm.pool_length(),
            'total_staked': sum(pool.amount for pool in farm.state.pools),
            'total_tvl': farm.total_tvl(),
            'num_events': len(farm.events),
        }
        for token in farm.reward_tokens():
            outstanding = 0
            for pool in farm.state.pools:
                for user in farm.state.positions.participants(pool.pid):
                    outstanding += farm.pending_gross(pool.pid, user, token)
            distributed = sum(farm.tokens.balance_of(token, user) for user in self.users)
            final[f'total_paid_{token}'] = farm.total_paid(token)
            final[f'total_shortfall_{token}'] = farm.total_shortfall(token)
            final[f'outstanding_{token}'] = outstanding
            final[f'distributed_{token}'] = distributed
            final[f'reward_balance_{token}'] = farm.reward_balance(token)
        return final
