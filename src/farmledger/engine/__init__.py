"""Ledger engine: reward clock, pool registry, positions, accrual and orchestration."""

from .errors import (
    AlreadyStarted,
    FarmError,
    InsufficientBalance,
    InvalidArgument,
    NotStarted,
    Paused,
    ReentrantCall,
    TransferFailed,
    Unauthorized,
)
from .farm import Farm, ManualClock
from .tokens import NATIVE_TOKEN, TokenLedger
from .vaults import NativeVault, PlainVault, HoldingStrategy, StrategyVault, Vault

__all__ = [
    "Farm",
    "ManualClock",
    "TokenLedger",
    "NATIVE_TOKEN",
    "Vault",
    "PlainVault",
    "StrategyVault",
    "NativeVault",
    "HoldingStrategy",
    "FarmError",
    "Unauthorized",
    "InvalidArgument",
    "InsufficientBalance",
    "NotStarted",
    "AlreadyStarted",
    "Paused",
    "TransferFailed",
    "ReentrantCall",
]
