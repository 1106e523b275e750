"""Ledger state aggregate - deterministic tracking of pools, positions and payouts."""

import copy
from dataclasses import dataclass, field
from typing import List, Optional

from .positions import PositionLedger
from .registry import PoolRegistry, RewardTokenRegistry
from .tokens import Address


@dataclass
class FarmSettings:
    """Process-wide farm configuration.

    ``start_time`` is set at most once. ``bonus_end`` of 0 means no bonus
    window has been configured.
    """
    owner: Address
    start_time: Optional[int] = None
    bonus_end: int = 0
    total_weight: int = 0
    paused: bool = False

    def started(self, now: int) -> bool:
        return self.start_time is not None and now >= self.start_time


@dataclass
class LedgerState:
    """All mutable ledger data, held by the farm and mutated only through it.

    Conservation identity, per pool:
        pool.amount = Σ position.amount over the pool's participants

    Debt identity, per (pool, user, token):
        position.amount * accumulator // scale >= position.debt(token)
    """
    settings: FarmSettings
    pools: PoolRegistry = field(default_factory=PoolRegistry)
    positions: PositionLedger = field(default_factory=PositionLedger)
    rewards: RewardTokenRegistry = field(default_factory=RewardTokenRegistry)

    def clone(self) -> "LedgerState":
        return copy.deepcopy(self)

    def validate_conservation(self) -> tuple[bool, Optional[str]]:
        """
        Validate that every pool's total equals the sum of its positions.

        Returns:
            (is_valid, error_message)
        """
        for pool in self.pools:
            staked = self.positions.total_staked(pool.pid)
            if staked != pool.amount:
                return False, (
                    f"Conservation violation in pool {pool.pid}: "
                    f"pool.amount={pool.amount}, Σ positions={staked}, "
                    f"diff={pool.amount - staked}"
                )
        return True, None

    def validate_weights(self) -> tuple[bool, Optional[str]]:
        """Validate that the stored weight total matches the pools' weights."""
        total = sum(pool.weight for pool in self.pools)
        if total != self.settings.total_weight:
            return False, f"Weight total {self.settings.total_weight} != Σ pool weights {total}"
        return True, None

    def validate_debts(self, scale: int) -> tuple[bool, Optional[str]]:
        """Validate that no position's debt exceeds its scaled stake value."""
        for pool in self.pools:
            for user in self.positions.participants(pool.pid):
                position = self.positions.get(pool.pid, user)
                for token in pool.tokens:
                    accrued = position.amount * self.pools.accumulator(pool.pid, token) // scale
                    if position.debt(token) > accrued:
                        return False, (
                            f"Negative entitlement for {user} in pool {pool.pid} ({token}): "
                            f"accrued={accrued}, debt={position.debt(token)}"
                        )
        return True, None

    def violations(self, scale: int) -> List[str]:
        """Collect all invariant violations as messages."""
        errors = []
        for check in (self.validate_conservation, self.validate_weights):
            ok, message = check()
            if not ok:
                errors.append(message)
        ok, message = self.validate_debts(scale)
        if not ok:
            errors.append(message)
        return errors
