"""Pool Registry - ordered pools, their reward-token descriptors and accumulators.

Pools are append-only and index-stable: a pool id is its position in the list
and is never reused. Accumulators live in a side table keyed by
(pool id, reward token) rather than inside the pool record.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import InvalidArgument
from .tokens import Address, Amount, TokenId


@dataclass
class RewardToken:
    """Reward-token descriptor owned by a pool."""
    token: TokenId
    rate: int  # Reward units emitted per unit of time at full weight


@dataclass
class Pool:
    """A staking cohort for one asset."""
    pid: int
    asset: TokenId
    weight: int  # Allocation points
    fee_rate: int  # Withdrawal / harvest fee, parts per thousand
    last_accrual_time: int
    vault: Address
    amount: Amount = 0  # Total staked; equals the sum of position amounts
    reward_tokens: List[RewardToken] = field(default_factory=list)

    def descriptor(self, token: TokenId) -> Optional[RewardToken]:
        """Return the descriptor for ``token`` if the pool currently emits it."""
        for reward in self.reward_tokens:
            if reward.token == token:
                return reward
        return None

    @property
    def tokens(self) -> List[TokenId]:
        return [reward.token for reward in self.reward_tokens]


class PoolRegistry:
    """Append-only pool list with a per-(pool, token) accumulator table."""

    def __init__(self):
        self.pools: List[Pool] = []
        self._accumulators: Dict[Tuple[int, TokenId], int] = {}
        self._assets: Dict[TokenId, int] = {}

    def __len__(self) -> int:
        return len(self.pools)

    def __iter__(self) -> Iterator[Pool]:
        return iter(self.pools)

    def get(self, pid: int) -> Pool:
        """
        Look up a pool by id.

        Raises:
            InvalidArgument: If ``pid`` does not name a pool
        """
        if not isinstance(pid, int) or pid < 0 or pid >= len(self.pools):
            raise InvalidArgument(f"Unknown pool id: {pid}")
        return self.pools[pid]

    def has_asset(self, asset: TokenId) -> bool:
        return asset in self._assets

    def append(
        self,
        asset: TokenId,
        weight: int,
        fee_rate: int,
        last_accrual_time: int,
        vault: Address,
        reward_tokens: List[RewardToken]
    ) -> Pool:
        """Create the next pool with zeroed accumulators for each reward token."""
        if self.has_asset(asset):
            raise InvalidArgument(f"A pool for asset {asset} already exists")
        pool = Pool(
            pid=len(self.pools),
            asset=asset,
            weight=weight,
            fee_rate=fee_rate,
            last_accrual_time=last_accrual_time,
            vault=vault,
            reward_tokens=list(reward_tokens),
        )
        self.pools.append(pool)
        self._assets[asset] = pool.pid
        for reward in pool.reward_tokens:
            self._accumulators[(pool.pid, reward.token)] = 0
        return pool

    # ------------------------------------------------------------ accumulators

    def accumulator(self, pid: int, token: TokenId) -> int:
        return self._accumulators.get((pid, token), 0)

    def set_accumulator(self, pid: int, token: TokenId, value: int) -> None:
        current = self.accumulator(pid, token)
        if value < current:
            raise ValueError(
                f"Accumulator for pool {pid} token {token} must not decrease: {current} -> {value}"
            )
        self._accumulators[(pid, token)] = value

    def accumulators(self, pid: int) -> Dict[TokenId, int]:
        pool = self.get(pid)
        return {token: self.accumulator(pid, token) for token in pool.tokens}

    # ---------------------------------------------------------- descriptors

    def add_reward_token(self, pid: int, reward: RewardToken) -> None:
        pool = self.get(pid)
        if pool.descriptor(reward.token) is not None:
            raise InvalidArgument(f"Pool {pid} already emits {reward.token}")
        pool.reward_tokens.append(reward)
        self._accumulators[(pid, reward.token)] = 0

    def remove_reward_token(self, pid: int, token: TokenId) -> RewardToken:
        """Drop ``token`` from the pool by swap-with-last-and-pop; order is not preserved."""
        pool = self.get(pid)
        for index, reward in enumerate(pool.reward_tokens):
            if reward.token == token:
                pool.reward_tokens[index] = pool.reward_tokens[-1]
                pool.reward_tokens.pop()
                self._accumulators.pop((pid, token), None)
                return reward
        raise InvalidArgument(f"Pool {pid} does not emit {token}")


class RewardTokenRegistry:
    """Every reward token ever attached to any pool, with lifetime payout totals.

    Append-only: removing a token from a pool does not remove it here.
    """

    def __init__(self):
        self.tokens: List[TokenId] = []
        self.total_paid: Dict[TokenId, Amount] = {}
        self.total_shortfall: Dict[TokenId, Amount] = {}

    def register(self, token: TokenId) -> None:
        if token not in self.total_paid:
            self.tokens.append(token)
            self.total_paid[token] = 0
            self.total_shortfall[token] = 0

    def record_payout(self, token: TokenId, entitled: Amount, shortfall: Amount = 0) -> None:
        self.register(token)
        self.total_paid[token] += entitled
        self.total_shortfall[token] += shortfall
