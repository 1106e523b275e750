"""Event records emitted by the farm for off-chain style observers.

Events raised inside an operation are buffered and only published once the
operation commits; a rolled-back operation emits nothing.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class FarmEvent:
    """Base event."""
    timestamp: int

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind
        return data


@dataclass(frozen=True)
class Deposit(FarmEvent):
    user: str
    pid: int
    amount: int  # Realized amount credited to the position


@dataclass(frozen=True)
class Withdraw(FarmEvent):
    user: str
    pid: int
    amount: int
    released: int  # Amount the vault actually sent after its fee


@dataclass(frozen=True)
class EmergencyWithdraw(FarmEvent):
    user: str
    pid: int
    amount: int
    released: int


@dataclass(frozen=True)
class RewardPaid(FarmEvent):
    user: str
    pid: int
    token: str
    entitled: int
    fee: int
    paid: int


@dataclass(frozen=True)
class RewardShortfall(FarmEvent):
    user: str
    pid: int
    token: str
    shortfall: int


@dataclass(frozen=True)
class PoolAdded(FarmEvent):
    pid: int
    asset: str
    weight: int
    fee_rate: int
    vault: str


@dataclass(frozen=True)
class PoolUpdated(FarmEvent):
    pid: int
    weight: int
    fee_rate: int


@dataclass(frozen=True)
class RewardTokenAdded(FarmEvent):
    pid: int
    token: str
    rate: int


@dataclass(frozen=True)
class RewardTokenRemoved(FarmEvent):
    pid: int
    token: str


@dataclass(frozen=True)
class RewardRateUpdated(FarmEvent):
    pid: int
    token: str
    rate: int


@dataclass(frozen=True)
class FarmStarted(FarmEvent):
    start_time: int


@dataclass(frozen=True)
class BonusEndUpdated(FarmEvent):
    bonus_end: int


@dataclass(frozen=True)
class PausedChanged(FarmEvent):
    paused: bool


@dataclass(frozen=True)
class OwnershipTransferred(FarmEvent):
    previous_owner: str
    new_owner: Optional[str]
