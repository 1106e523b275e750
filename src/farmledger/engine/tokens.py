"""
Value-transfer primitive: fungible token balances, allowances and native currency.

Implements Balances[(holder, token)] -> Amount. Every movement either fully
succeeds or raises TransferFailed before touching any balance.
"""

from __future__ import annotations

import copy
import logging
from typing import Callable, Dict, List, Optional, Tuple

from .errors import InvalidArgument, TransferFailed

logger = logging.getLogger(__name__)

# Type aliases
Address = str
TokenId = str
Amount = int

ZERO_ADDRESS: Address = "0x" + "00" * 20
NATIVE_TOKEN: TokenId = "native"
MAX_ALLOWANCE: Amount = 2**256 - 1
TRANSFER_FEE_DENOMINATOR = 1000

ReceiveHook = Callable[[TokenId, Address, Amount], None]


def is_valid_identity(value: Optional[str]) -> bool:
    """Whether ``value`` names a real holder or token (non-empty, not the zero address)."""
    return bool(value) and value != ZERO_ADDRESS


class TokenLedger:
    """
    Balance and allowance table for every token the farm touches.

    Native currency is tracked as the pseudo-token ``NATIVE_TOKEN``. When a
    wrapped-native token is configured, ``unwrap`` burns it one-for-one into
    native currency.

    Receive hooks model contracts that run code when they are credited. They
    fire after the balance update and are how reentrant callbacks reach the
    farm.
    """

    def __init__(
        self,
        wrapped_native: Optional[TokenId] = None,
        transfer_fees: Optional[Dict[TokenId, int]] = None
    ):
        """
        Initialize an empty ledger.

        Args:
            wrapped_native: Token id of the wrapped-native asset, if any
            transfer_fees: Per-token fee charged on every transfer, in parts per thousand
        """
        self.wrapped_native = wrapped_native
        self._balances: Dict[Tuple[Address, TokenId], Amount] = {}
        self._allowances: Dict[Tuple[TokenId, Address, Address], Amount] = {}
        self._supply: Dict[TokenId, Amount] = {}
        self._transfer_fees: Dict[TokenId, int] = {}
        self._hooks: Dict[Address, List[ReceiveHook]] = {}
        for token, fee in (transfer_fees or {}).items():
            self.set_transfer_fee(token, fee)

    # ---------------------------------------------------------------- queries

    def balance_of(self, token: TokenId, holder: Address) -> Amount:
        return self._balances.get((holder, token), 0)

    def allowance(self, token: TokenId, owner: Address, spender: Address) -> Amount:
        return self._allowances.get((token, owner, spender), 0)

    def total_supply(self, token: TokenId) -> Amount:
        return self._supply.get(token, 0)

    def transfer_fee(self, token: TokenId) -> int:
        return self._transfer_fees.get(token, 0)

    # ----------------------------------------------------------- configuration

    def set_transfer_fee(self, token: TokenId, fee_ppt: int) -> None:
        """Charge ``fee_ppt`` per thousand on every transfer of ``token`` (the fee is burned)."""
        if not 0 <= fee_ppt < TRANSFER_FEE_DENOMINATOR:
            raise InvalidArgument(f"transfer fee must be in [0, 1000), got {fee_ppt}")
        if fee_ppt == 0:
            self._transfer_fees.pop(token, None)
        else:
            self._transfer_fees[token] = fee_ppt

    def register_hook(self, holder: Address, hook: ReceiveHook) -> None:
        """Run ``hook(token, sender, amount)`` whenever ``holder`` is credited."""
        self._hooks.setdefault(holder, []).append(hook)

    def clear_hooks(self, holder: Address) -> None:
        self._hooks.pop(holder, None)

    # -------------------------------------------------------------- mutations

    def mint(self, token: TokenId, to: Address, amount: Amount) -> None:
        if amount < 0:
            raise InvalidArgument(f"Cannot mint negative amount: {amount}")
        if not is_valid_identity(to):
            raise InvalidArgument("Cannot mint to the zero address")
        self._credit(to, token, amount)
        self._supply[token] = self._supply.get(token, 0) + amount

    def burn(self, token: TokenId, holder: Address, amount: Amount) -> None:
        self._debit(holder, token, amount)
        self._supply[token] = self._supply.get(token, 0) - amount

    def approve(self, token: TokenId, owner: Address, spender: Address, amount: Amount) -> None:
        if amount < 0:
            raise InvalidArgument(f"Allowance cannot be negative: {amount}")
        if amount == 0:
            self._allowances.pop((token, owner, spender), None)
        else:
            self._allowances[(token, owner, spender)] = amount

    def transfer(self, token: TokenId, sender: Address, to: Address, amount: Amount) -> Amount:
        """
        Move ``amount`` of ``token`` from ``sender`` to ``to``.

        Returns:
            Amount actually received by ``to`` (net of any transfer fee)

        Raises:
            TransferFailed: If the sender cannot cover ``amount`` or ``to`` is invalid
        """
        if amount < 0:
            raise TransferFailed(f"Negative transfer of {token}: {amount}")
        if not is_valid_identity(to):
            raise TransferFailed(f"Transfer of {token} to the zero address")
        if amount == 0:
            return 0

        fee = amount * self.transfer_fee(token) // TRANSFER_FEE_DENOMINATOR
        received = amount - fee
        self._debit(sender, token, amount)
        self._credit(to, token, received)
        if fee:
            self._supply[token] = self._supply.get(token, 0) - fee

        logger.debug("transfer %s %s -> %s: %d (fee %d)", token, sender, to, amount, fee)
        self._notify(to, token, sender, received)
        return received

    def transfer_from(
        self,
        token: TokenId,
        spender: Address,
        owner: Address,
        to: Address,
        amount: Amount
    ) -> Amount:
        """
        Move tokens on behalf of ``owner``, consuming ``spender``'s allowance.

        Every check runs before the allowance is touched, so a rejected
        transfer leaves both the allowance and the balances unchanged.
        """
        if amount < 0:
            raise TransferFailed(f"Negative transfer of {token}: {amount}")
        if not is_valid_identity(to):
            raise TransferFailed(f"Transfer of {token} to the zero address")
        available = self.balance_of(token, owner)
        if available < amount:
            raise TransferFailed(
                f"Insufficient {token} balance for {owner}: {available} < {amount}"
            )
        if spender != owner:
            current = self.allowance(token, owner, spender)
            if current < amount:
                raise TransferFailed(
                    f"Allowance exceeded for {token}: {spender} may spend {current} of {owner}, "
                    f"requested {amount}"
                )
            if current != MAX_ALLOWANCE:
                self.approve(token, owner, spender, current - amount)
        return self.transfer(token, owner, to, amount)

    def send_native(self, sender: Address, to: Address, amount: Amount) -> Amount:
        return self.transfer(NATIVE_TOKEN, sender, to, amount)

    def wrap(self, holder: Address, amount: Amount) -> None:
        """Convert native currency into the wrapped-native token."""
        wrapped = self._require_wrapped_native()
        self.burn(NATIVE_TOKEN, holder, amount)
        self.mint(wrapped, holder, amount)

    def unwrap(self, holder: Address, amount: Amount) -> None:
        """Convert the wrapped-native token back into native currency."""
        wrapped = self._require_wrapped_native()
        self.burn(wrapped, holder, amount)
        self.mint(NATIVE_TOKEN, holder, amount)

    # --------------------------------------------------------------- rollback

    def snapshot(self) -> dict:
        """Capture balances, allowances and supply for a later ``restore``."""
        return {
            "balances": dict(self._balances),
            "allowances": dict(self._allowances),
            "supply": dict(self._supply),
            "transfer_fees": copy.copy(self._transfer_fees),
        }

    def restore(self, snapshot: dict) -> None:
        self._balances = dict(snapshot["balances"])
        self._allowances = dict(snapshot["allowances"])
        self._supply = dict(snapshot["supply"])
        self._transfer_fees = dict(snapshot["transfer_fees"])

    # ---------------------------------------------------------------- helpers

    def _require_wrapped_native(self) -> TokenId:
        if self.wrapped_native is None:
            raise InvalidArgument("No wrapped-native token configured")
        return self.wrapped_native

    def _credit(self, holder: Address, token: TokenId, amount: Amount) -> None:
        if amount:
            self._balances[(holder, token)] = self.balance_of(token, holder) + amount

    def _debit(self, holder: Address, token: TokenId, amount: Amount) -> None:
        current = self.balance_of(token, holder)
        if current < amount:
            raise TransferFailed(
                f"Insufficient {token} balance for {holder}: {current} < {amount}"
            )
        remaining = current - amount
        if remaining == 0:
            # Keep the table sparse
            self._balances.pop((holder, token), None)
        else:
            self._balances[(holder, token)] = remaining

    def _notify(self, holder: Address, token: TokenId, sender: Address, amount: Amount) -> None:
        for hook in list(self._hooks.get(holder, ())):
            hook(token, sender, amount)
