"""Reward accrual and entitlement - time-weighted accumulator math.

Key Concepts:
- Pool reward over [last, now): multiplier(last, now) * rate * weight / total_weight
- Accumulator (reward per unit stake): acc += reward * ACC_SCALE / pool.amount
- Pending entitlement: amount * acc / ACC_SCALE - debt
- Unstaked time (pool.amount == 0) earns nothing and is never credited later
"""

import logging

from .accounting import FarmSettings, LedgerState
from .clock import multiplier
from .registry import Pool, RewardToken
from .tokens import Address, Amount, TokenId
from .vaults import split_fee

logger = logging.getLogger(__name__)

ACC_SCALE = 10**18


class RewardEngine:
    """Reward Accrual Engine and Entitlement Calculator.

    Accrual mutates pool accumulators; entitlement queries project the
    accumulator to ``now`` without touching state.
    """

    def __init__(self, acc_scale: int = ACC_SCALE, bonus_multiplier: int = 1):
        """
        Initialize the reward engine.

        Args:
            acc_scale: Fixed-point scale of the reward-per-share accumulators
            bonus_multiplier: Multiplier applied inside the bonus window
        """
        if acc_scale <= 0:
            raise ValueError(f"acc_scale must be positive, got {acc_scale}")
        if bonus_multiplier < 1:
            raise ValueError(f"bonus_multiplier must be >= 1, got {bonus_multiplier}")
        self.acc_scale = acc_scale
        self.bonus_multiplier = bonus_multiplier

    def pool_reward(self, settings: FarmSettings, pool: Pool, reward: RewardToken, now: int) -> Amount:
        """
        Reward emitted to ``pool`` for one token since its last accrual.

        Formula: multiplier(last, now, bonus_end) * rate * weight / total_weight
        """
        if settings.total_weight == 0 or pool.weight == 0:
            return 0
        span = multiplier(pool.last_accrual_time, now, settings.bonus_end, self.bonus_multiplier)
        return span * reward.rate * pool.weight // settings.total_weight

    def accrue(self, state: LedgerState, pid: int, now: int) -> None:
        """Bring pool ``pid``'s accumulators up to ``now``."""
        pool = state.pools.get(pid)
        if now <= pool.last_accrual_time:
            return
        if pool.amount == 0:
            pool.last_accrual_time = now
            return

        for reward in pool.reward_tokens:
            emitted = self.pool_reward(state.settings, pool, reward, now)
            if emitted == 0:
                continue
            acc = state.pools.accumulator(pid, reward.token)
            state.pools.set_accumulator(pid, reward.token, acc + emitted * self.acc_scale // pool.amount)
        pool.last_accrual_time = now
        logger.debug("accrued pool %d to t=%d", pid, now)

    def accrue_all(self, state: LedgerState, now: int) -> None:
        for pool in state.pools:
            self.accrue(state, pool.pid, now)

    def projected_accumulator(self, state: LedgerState, pid: int, token: TokenId, now: int) -> int:
        """Accumulator value as of ``now``, computed without mutating the pool."""
        pool = state.pools.get(pid)
        acc = state.pools.accumulator(pid, token)
        reward = pool.descriptor(token)
        if reward is None or now <= pool.last_accrual_time or pool.amount == 0:
            return acc
        emitted = self.pool_reward(state.settings, pool, reward, now)
        return acc + emitted * self.acc_scale // pool.amount

    def pending(self, state: LedgerState, pid: int, user: Address, token: TokenId, now: int) -> Amount:
        """Gross outstanding reward of ``token`` for ``user`` in pool ``pid``."""
        pool = state.pools.get(pid)
        if pool.descriptor(token) is None:
            return 0
        position = state.positions.get(pid, user)
        acc = self.projected_accumulator(state, pid, token, now)
        return max(0, position.amount * acc // self.acc_scale - position.debt(token))

    def pending_after_fee(self, state: LedgerState, pid: int, user: Address, token: TokenId, now: int) -> Amount:
        """Outstanding reward as the user would receive it, net of the pool fee."""
        gross = self.pending(state, pid, user, token, now)
        net, _ = split_fee(gross, state.pools.get(pid).fee_rate)
        return net
