"""Vault collaborators - custody of a pool's deposited asset.

A vault receives the farm's deposits, reports the value it custodies and
releases principal on withdrawal, routing a per-thousand fee to a fee sink.
Only the farm that owns the vault may move funds through it.

Variants:
- PlainVault: holds the asset itself
- StrategyVault: forwards idle funds to a Strategy and recalls them on demand
- NativeVault: custodies native currency attached to the deposit call
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from .errors import InvalidArgument, TransferFailed, Unauthorized
from .tokens import NATIVE_TOKEN, Address, Amount, TokenId, TokenLedger, is_valid_identity

logger = logging.getLogger(__name__)

FEE_DENOMINATOR = 1000


def split_fee(amount: Amount, fee_rate: int) -> tuple[Amount, Amount]:
    """
    Split ``amount`` into (released, fee) under a per-thousand fee rate.

    Raises:
        InvalidArgument: If fee_rate is outside [0, 1000]
    """
    if not 0 <= fee_rate <= FEE_DENOMINATOR:
        raise InvalidArgument(f"fee rate must be in [0, {FEE_DENOMINATOR}], got {fee_rate}")
    fee = amount * fee_rate // FEE_DENOMINATOR
    return amount - fee, fee


class Vault(ABC):
    """Capability interface the farm consumes: deposit, withdraw, balance."""

    def __init__(
        self,
        tokens: TokenLedger,
        address: Address,
        asset: TokenId,
        fee_sink: Address
    ):
        if not is_valid_identity(address):
            raise InvalidArgument("Vault address must be a valid identity")
        if not is_valid_identity(fee_sink):
            raise InvalidArgument("Vault fee sink must be a valid identity")
        self.tokens = tokens
        self.address = address
        self.asset = asset
        self.fee_sink = fee_sink
        self.controller: Address | None = None

    def bind(self, controller: Address) -> None:
        """Restrict deposit/withdraw to ``controller`` (the owning farm)."""
        if self.controller is not None and self.controller != controller:
            raise Unauthorized(f"Vault {self.address} is already bound to {self.controller}")
        self.controller = controller

    @property
    def is_native(self) -> bool:
        return self.asset == NATIVE_TOKEN

    @abstractmethod
    def deposit(self, depositor: Address, amount: Amount, value: Amount = 0) -> Amount:
        """Take custody of ``amount``; return the amount actually credited."""

    def withdraw(self, caller: Address, recipient: Address, amount: Amount, fee_rate: int) -> Amount:
        """
        Release ``amount`` of principal to ``recipient`` net of the vault-side fee.

        Args:
            caller: Must be the bound controller
            recipient: Receiver of the released principal
            amount: Gross principal to release
            fee_rate: Fee in parts per thousand, routed to ``fee_sink``

        Returns:
            Amount released to the recipient
        """
        self._require_controller(caller)
        released, fee = split_fee(amount, fee_rate)
        self._ensure_liquid(amount)
        if fee:
            self.tokens.transfer(self.asset, self.address, self.fee_sink, fee)
        if released:
            self.tokens.transfer(self.asset, self.address, recipient, released)
        logger.debug("vault %s released %d to %s (fee %d)", self.address, released, recipient, fee)
        return released

    def balance(self) -> Amount:
        """Current custodied value."""
        return self.tokens.balance_of(self.asset, self.address)

    def _ensure_liquid(self, amount: Amount) -> None:
        on_hand = self.tokens.balance_of(self.asset, self.address)
        if on_hand < amount:
            raise TransferFailed(
                f"Vault {self.address} holds {on_hand} {self.asset}, cannot release {amount}"
            )

    def _require_controller(self, caller: Address) -> None:
        if self.controller is None or caller != self.controller:
            raise Unauthorized(f"{caller} is not the controller of vault {self.address}")


class PlainVault(Vault):
    """Vault that keeps deposits on its own balance."""

    def deposit(self, depositor: Address, amount: Amount, value: Amount = 0) -> Amount:
        self._require_controller(depositor)
        if value:
            raise InvalidArgument(f"Vault for {self.asset} does not accept native value")
        before = self.tokens.balance_of(self.asset, self.address)
        self.tokens.transfer_from(self.asset, self.address, depositor, self.address, amount)
        return self.tokens.balance_of(self.asset, self.address) - before


class HoldingStrategy:
    """Minimal strategy: holds whatever its vault forwards and returns it on request."""

    def __init__(self, tokens: TokenLedger, address: Address, asset: TokenId):
        self.tokens = tokens
        self.address = address
        self.asset = asset
        self.vault: Address | None = None

    def deposit(self, caller: Address, amount: Amount) -> Amount:
        if caller != self.vault:
            raise Unauthorized(f"{caller} is not the vault of strategy {self.address}")
        return self.tokens.transfer(self.asset, caller, self.address, amount)

    def withdraw(self, caller: Address, amount: Amount) -> Amount:
        if caller != self.vault:
            raise Unauthorized(f"{caller} is not the vault of strategy {self.address}")
        return self.tokens.transfer(self.asset, self.address, caller, amount)

    def balance(self) -> Amount:
        return self.tokens.balance_of(self.asset, self.address)


class StrategyVault(PlainVault):
    """Vault that forwards every deposit to a yield strategy."""

    def __init__(
        self,
        tokens: TokenLedger,
        address: Address,
        asset: TokenId,
        fee_sink: Address,
        strategy: HoldingStrategy
    ):
        super().__init__(tokens, address, asset, fee_sink)
        if strategy.asset != asset:
            raise InvalidArgument(f"Strategy asset {strategy.asset} does not match vault asset {asset}")
        strategy.vault = address
        self.strategy = strategy

    def deposit(self, depositor: Address, amount: Amount, value: Amount = 0) -> Amount:
        realized = super().deposit(depositor, amount, value)
        idle = self.tokens.balance_of(self.asset, self.address)
        if idle:
            self.strategy.deposit(self.address, idle)
        return realized

    def balance(self) -> Amount:
        return self.tokens.balance_of(self.asset, self.address) + self.strategy.balance()

    def _ensure_liquid(self, amount: Amount) -> None:
        on_hand = self.tokens.balance_of(self.asset, self.address)
        if on_hand < amount:
            self.strategy.withdraw(self.address, min(amount - on_hand, self.strategy.balance()))
        super()._ensure_liquid(amount)


class NativeVault(Vault):
    """Vault that custodies native currency attached to the deposit call."""

    def __init__(self, tokens: TokenLedger, address: Address, fee_sink: Address):
        super().__init__(tokens, address, NATIVE_TOKEN, fee_sink)

    def deposit(self, depositor: Address, amount: Amount, value: Amount = 0) -> Amount:
        self._require_controller(depositor)
        if value != amount:
            raise InvalidArgument(f"Native deposit must attach exactly {amount}, got {value}")
        return self.tokens.send_native(depositor, self.address, value)
