"""Tests for vault custody, fees, strategy recall and the token transfers underneath."""

import pytest

from farmledger.engine.errors import InvalidArgument, TransferFailed, Unauthorized
from farmledger.engine.tokens import NATIVE_TOKEN, ZERO_ADDRESS, TokenLedger
from farmledger.engine.vaults import HoldingStrategy, NativeVault, PlainVault, StrategyVault, split_fee


@pytest.fixture
def ledger():
    tokens = TokenLedger()
    tokens.mint("LP", "farm", 10_000)
    return tokens


def bound_vault(tokens, cls=PlainVault):
    vault = cls(tokens, "vault", "LP", "treasury")
    vault.bind("farm")
    tokens.approve("LP", "farm", "vault", 10_000)
    return vault


class TestSplitFee:

    @pytest.mark.parametrize("amount,rate,expected", [
        (1000, 0, (1000, 0)),
        (1000, 1000, (0, 1000)),
        (1000, 25, (975, 25)),
        (999, 1, (999, 0)),
        (0, 500, (0, 0)),
    ])
    def test_boundaries(self, amount, rate, expected):
        assert split_fee(amount, rate) == expected

    @pytest.mark.parametrize("rate", [-1, 1001])
    def test_out_of_range(self, rate):
        with pytest.raises(InvalidArgument):
            split_fee(100, rate)


class TestPlainVault:

    def test_deposit_and_withdraw(self, ledger):
        vault = bound_vault(ledger)
        assert vault.deposit("farm", 1000) == 1000
        assert vault.balance() == 1000
        assert vault.withdraw("farm", "alice", 400, 0) == 400
        assert ledger.balance_of("LP", "alice") == 400

    def test_full_fee_releases_nothing(self, ledger):
        vault = bound_vault(ledger)
        vault.deposit("farm", 1000)
        assert vault.withdraw("farm", "alice", 1000, 1000) == 0
        assert ledger.balance_of("LP", "treasury") == 1000
        assert ledger.balance_of("LP", "alice") == 0

    def test_only_controller_may_move_funds(self, ledger):
        vault = bound_vault(ledger)
        vault.deposit("farm", 1000)
        with pytest.raises(Unauthorized):
            vault.withdraw("mallory", "mallory", 1000, 0)
        with pytest.raises(Unauthorized):
            vault.deposit("mallory", 1)

    def test_unbound_vault_refuses(self, ledger):
        vault = PlainVault(ledger, "vault", "LP", "treasury")
        with pytest.raises(Unauthorized):
            vault.deposit("farm", 1)

    def test_rebinding_to_another_controller(self, ledger):
        vault = bound_vault(ledger)
        vault.bind("farm")
        with pytest.raises(Unauthorized):
            vault.bind("other-farm")

    def test_over_withdraw(self, ledger):
        vault = bound_vault(ledger)
        vault.deposit("farm", 100)
        with pytest.raises(TransferFailed):
            vault.withdraw("farm", "alice", 101, 0)

    def test_rejects_native_value(self, ledger):
        vault = bound_vault(ledger)
        with pytest.raises(InvalidArgument):
            vault.deposit("farm", 10, value=10)

    def test_zero_fee_sink_rejected(self, ledger):
        with pytest.raises(InvalidArgument):
            PlainVault(ledger, "vault", "LP", "0x" + "00" * 20)


class TestStrategyVault:

    def _vault(self, ledger):
        strategy = HoldingStrategy(ledger, "strategy", "LP")
        vault = StrategyVault(ledger, "vault", "LP", "treasury", strategy)
        vault.bind("farm")
        ledger.approve("LP", "farm", "vault", 10_000)
        return vault, strategy

    def test_deposits_are_forwarded(self, ledger):
        vault, strategy = self._vault(ledger)
        vault.deposit("farm", 1000)
        assert ledger.balance_of("LP", "vault") == 0
        assert strategy.balance() == 1000
        assert vault.balance() == 1000

    def test_withdraw_recalls_from_strategy(self, ledger):
        vault, strategy = self._vault(ledger)
        vault.deposit("farm", 1000)
        assert vault.withdraw("farm", "alice", 600, 10) == 594
        assert ledger.balance_of("LP", "treasury") == 6
        assert strategy.balance() == 400
        assert vault.balance() == 400

    def test_strategy_only_serves_its_vault(self, ledger):
        vault, strategy = self._vault(ledger)
        vault.deposit("farm", 1000)
        with pytest.raises(Unauthorized):
            strategy.withdraw("mallory", 1000)

    def test_strategy_asset_mismatch(self, ledger):
        with pytest.raises(InvalidArgument):
            StrategyVault(ledger, "vault", "LP", "treasury", HoldingStrategy(ledger, "s", "OTHER"))


class TestNativeVault:

    def test_requires_matching_value(self):
        tokens = TokenLedger(wrapped_native="WNATIVE")
        tokens.mint(NATIVE_TOKEN, "farm", 1000)
        vault = NativeVault(tokens, "vault", "treasury")
        vault.bind("farm")
        assert vault.is_native
        with pytest.raises(InvalidArgument):
            vault.deposit("farm", 500, value=400)
        assert vault.deposit("farm", 500, value=500) == 500
        assert vault.withdraw("farm", "alice", 500, 0) == 500
        assert tokens.balance_of(NATIVE_TOKEN, "alice") == 500


class TestTransferFrom:

    def test_insufficient_balance_keeps_allowance(self):
        tokens = TokenLedger()
        tokens.mint("LP", "alice", 50)
        tokens.approve("LP", "alice", "farm", 100)
        with pytest.raises(TransferFailed):
            tokens.transfer_from("LP", "farm", "alice", "farm", 100)
        assert tokens.allowance("LP", "alice", "farm") == 100
        assert tokens.balance_of("LP", "alice") == 50

    def test_negative_amount_keeps_allowance(self):
        tokens = TokenLedger()
        tokens.mint("LP", "alice", 50)
        tokens.approve("LP", "alice", "farm", 100)
        with pytest.raises(TransferFailed):
            tokens.transfer_from("LP", "farm", "alice", "farm", -5)
        assert tokens.allowance("LP", "alice", "farm") == 100

    def test_zero_address_recipient_keeps_allowance(self):
        tokens = TokenLedger()
        tokens.mint("LP", "alice", 50)
        tokens.approve("LP", "alice", "farm", 100)
        with pytest.raises(TransferFailed):
            tokens.transfer_from("LP", "farm", "alice", ZERO_ADDRESS, 10)
        assert tokens.allowance("LP", "alice", "farm") == 100

    def test_success_consumes_allowance(self):
        tokens = TokenLedger()
        tokens.mint("LP", "alice", 50)
        tokens.approve("LP", "alice", "farm", 100)
        assert tokens.transfer_from("LP", "farm", "alice", "farm", 40) == 40
        assert tokens.allowance("LP", "alice", "farm") == 60
        assert tokens.balance_of("LP", "farm") == 40
