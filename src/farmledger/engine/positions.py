"""Position Ledger - per-pool, per-user stake and reward-debt baselines."""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from .tokens import Address, Amount, TokenId


@dataclass
class Position:
    """A user's stake in one pool.

    ``debts[token]`` is the scaled stake value at which the user's unrealized
    reward for ``token`` was last reset to zero.
    """
    amount: Amount = 0
    debts: Dict[TokenId, int] = field(default_factory=dict)

    def debt(self, token: TokenId) -> int:
        return self.debts.get(token, 0)


class PositionLedger:
    """Positions keyed by (pool id, user), plus each pool's participant list.

    Positions are never deleted; a fully withdrawn position stays at zero.
    """

    def __init__(self):
        self._positions: Dict[Tuple[int, Address], Position] = {}
        self._participants: Dict[int, List[Address]] = {}

    def get(self, pid: int, user: Address) -> Position:
        """Return the user's position, or an unattached empty one if none exists."""
        return self._positions.get((pid, user)) or Position()

    def exists(self, pid: int, user: Address) -> bool:
        return (pid, user) in self._positions

    def open(self, pid: int, user: Address) -> Position:
        """Return the user's position, creating and recording it on first use."""
        key = (pid, user)
        position = self._positions.get(key)
        if position is None:
            position = Position()
            self._positions[key] = position
            self._participants.setdefault(pid, []).append(user)
        return position

    def participants(self, pid: int) -> List[Address]:
        return list(self._participants.get(pid, ()))

    def pools_of(self, user: Address) -> List[int]:
        """Pool ids where ``user`` holds a non-zero stake, in ascending order."""
        return sorted(
            pid for (pid, holder), position in self._positions.items()
            if holder == user and position.amount > 0
        )

    def total_staked(self, pid: int) -> Amount:
        return sum(self.get(pid, user).amount for user in self._participants.get(pid, ()))

    def rebaseline(self, pid: int, user: Address, accumulators: Dict[TokenId, int], scale: int) -> None:
        """Reset every debt to the current accumulator value of the stake."""
        position = self.open(pid, user)
        for token, acc in accumulators.items():
            position.debts[token] = position.amount * acc // scale

    def drop_token(self, pid: int, token: TokenId) -> None:
        """Forget every participant's debt for a token the pool no longer emits."""
        for user in self._participants.get(pid, ()):
            self._positions[(pid, user)].debts.pop(token, None)
