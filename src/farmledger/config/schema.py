"""Pydantic schema for configuration validation."""

import hashlib
import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class LedgerSettings(BaseModel):
    """Farm identity and fixed-point parameters."""
    farm_address: str = Field(default="farm", min_length=1, description="Holder address of the farm")
    owner: str = Field(default="owner", min_length=1, description="Privileged admin identity")
    fee_sink: str = Field(default="treasury", min_length=1, description="Receiver of vault withdrawal fees")
    acc_scale: int = Field(default=10**18, gt=0, description="Fixed-point scale of reward accumulators")
    bonus_multiplier: int = Field(default=1, ge=1, description="Accrual multiplier inside the bonus window")
    max_fee_rate: int = Field(default=1000, ge=0, le=1000, description="Highest per-thousand pool fee")
    wrapped_native_token: Optional[str] = Field(default=None, description="Token id of wrapped native currency")


class TokenSpec(BaseModel):
    """A fungible token known to the scenario."""
    symbol: str = Field(min_length=1, description="Token id")
    transfer_fee: int = Field(default=0, ge=0, lt=1000, description="Fee burned on every transfer, per thousand")


class RewardSpec(BaseModel):
    """A reward token emitted by a pool."""
    token: str = Field(min_length=1, description="Reward token id")
    rate: int = Field(gt=0, description="Reward units per unit time at full weight")


class PoolSpec(BaseModel):
    """Pool definition."""
    asset: str = Field(min_length=1, description="Staked asset")
    weight: int = Field(ge=0, description="Allocation points")
    fee_rate: int = Field(default=0, ge=0, le=1000, description="Withdrawal/harvest fee per thousand")
    vault: Literal["plain", "strategy", "native"] = Field(default="plain", description="Vault variant")
    rewards: List[RewardSpec] = Field(default_factory=list, description="Reward tokens and rates")

    @field_validator('rewards')
    @classmethod
    def validate_unique_rewards(cls, v):
        """Ensure a pool lists each reward token once."""
        tokens = [reward.token for reward in v]
        if len(tokens) != len(set(tokens)):
            raise ValueError(f"Duplicate reward tokens in pool: {tokens}")
        return v


class Schedule(BaseModel):
    """Farming start and bonus window."""
    start_time: int = Field(default=1, gt=0, description="Farming start timestamp")
    bonus_duration: int = Field(default=0, ge=0, description="Bonus window length after start (0 = none)")

    @property
    def bonus_end(self) -> int:
        return self.start_time + self.bonus_duration if self.bonus_duration else 0


class ActionWeights(BaseModel):
    """Relative frequency of simulated user actions."""
    deposit: float = Field(default=0.45, ge=0)
    withdraw: float = Field(default=0.2, ge=0)
    harvest: float = Field(default=0.25, ge=0)
    idle: float = Field(default=0.1, ge=0)

    @model_validator(mode='after')
    def validate_positive_total(self):
        """At least one action must have weight."""
        if self.deposit + self.withdraw + self.harvest + self.idle <= 0:
            raise ValueError("Action weights must not all be zero")
        return self

    def probabilities(self) -> Dict[str, float]:
        weights = self.model_dump()
        total = sum(weights.values())
        return {name: value / total for name, value in weights.items()}


class Simulation(BaseModel):
    """Scenario simulation parameters."""
    num_users: int = Field(default=5, gt=0, description="Number of simulated stakers")
    steps: int = Field(default=100, gt=0, description="Number of timesteps")
    timestep: int = Field(default=60, gt=0, description="Time units per step")
    random_seed: int = Field(default=42, description="Random seed for reproducibility")
    monte_carlo_runs: int = Field(default=10, gt=0, description="Runs for Monte Carlo analysis")
    initial_balance: int = Field(default=1_000_000, gt=0, description="Starting balance per user per asset")
    deposit_min: int = Field(default=1_000, gt=0, description="Smallest simulated deposit")
    deposit_max: int = Field(default=50_000, gt=0, description="Largest simulated deposit")
    action_weights: ActionWeights = Field(default_factory=ActionWeights)
    reward_funding: Dict[str, int] = Field(default_factory=dict, description="Reward tokens minted to the farm")

    @model_validator(mode='after')
    def validate_deposit_range(self):
        """Ensure deposit_min <= deposit_max."""
        if self.deposit_min > self.deposit_max:
            raise ValueError(
                f"deposit_min ({self.deposit_min}) must not exceed deposit_max ({self.deposit_max})"
            )
        return self

    @field_validator('reward_funding')
    @classmethod
    def validate_funding(cls, v):
        """Funding amounts must be non-negative."""
        for token, amount in v.items():
            if amount < 0:
                raise ValueError(f"Reward funding for {token} must be non-negative, got {amount}")
        return v


class Config(BaseModel):
    """Complete configuration for a farm scenario."""
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    tokens: List[TokenSpec] = Field(default_factory=list)
    pools: List[PoolSpec] = Field(default_factory=list)
    schedule: Schedule = Field(default_factory=Schedule)
    simulation: Simulation = Field(default_factory=Simulation)

    @model_validator(mode='after')
    def validate_pools(self):
        """Ensure pool assets are unique, declared, and native vaults stake the wrapped-native token."""
        declared = {token.symbol for token in self.tokens}
        wrapped = self.ledger.wrapped_native_token
        seen = set()
        for pool in self.pools:
            if pool.asset in seen:
                raise ValueError(f"Duplicate pool asset: {pool.asset}")
            seen.add(pool.asset)

            if pool.vault == "native":
                if wrapped is None or pool.asset != wrapped:
                    raise ValueError(
                        f"Native vault pool must stake the wrapped-native token ({wrapped}), got {pool.asset}"
                    )
            elif pool.asset not in declared:
                raise ValueError(f"Pool asset {pool.asset} is not a declared token")

            for reward in pool.rewards:
                if reward.token not in declared:
                    raise ValueError(f"Reward token {reward.token} is not a declared token")
        return self

    @property
    def transfer_fees(self) -> Dict[str, int]:
        return {token.symbol: token.transfer_fee for token in self.tokens if token.transfer_fee}

    @property
    def reward_token_ids(self) -> List[str]:
        tokens: List[str] = []
        for pool in self.pools:
            for reward in pool.rewards:
                if reward.token not in tokens:
                    tokens.append(reward.token)
        return tokens

    def compute_hash(self) -> str:
        """Compute config hash for reproducibility."""
        config_dict = self.model_dump()
        config_str = json.dumps(config_dict, sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create config from dictionary."""
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return self.model_dump()
