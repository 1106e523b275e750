"""Tests for pool administration and the farm lifecycle."""

import pytest

from farmledger.engine.errors import AlreadyStarted, InvalidArgument, NotStarted, Unauthorized
from farmledger.engine.farm import Farm
from farmledger.engine.vaults import NativeVault, PlainVault

from conftest import OWNER, START, TREASURY, fund_farm, fund_user


class TestAddPool:

    def test_add_pool_registers_and_binds_vault(self, farm, tokens):
        vault = PlainVault(tokens, "vault-1", "LP2", TREASURY)
        pid = farm.add_pool(OWNER, "LP2", 50, vault, [("REWARD", 5)], fee_rate=3)
        assert pid == 1
        assert farm.pool_length() == 2
        assert farm.state.settings.total_weight == 150
        info = farm.pool_info(pid)
        assert (info.asset, info.weight, info.fee_rate, info.vault) == ("LP2", 50, 3, "vault-1")
        assert info.accumulators == {"REWARD": 0}
        assert vault.controller == farm.address
        assert farm.events[-1].kind == "PoolAdded"

    def test_duplicate_asset_rejected(self, farm, tokens):
        with pytest.raises(InvalidArgument):
            farm.add_pool(OWNER, "LP", 10, PlainVault(tokens, "vault-x", "LP", TREASURY), [("REWARD", 1)])
        assert farm.pool_length() == 1

    def test_vault_asset_mismatch(self, farm, tokens):
        with pytest.raises(InvalidArgument):
            farm.add_pool(OWNER, "LP2", 10, PlainVault(tokens, "vault-x", "LP3", TREASURY), [("REWARD", 1)])

    def test_vault_reuse_rejected(self, farm):
        with pytest.raises(InvalidArgument):
            farm.add_pool(OWNER, "LP", 10, farm.vault(0), [("REWARD", 1)])

    def test_native_vault_only_for_wrapped_native(self, farm, tokens):
        with pytest.raises(InvalidArgument):
            farm.add_pool(OWNER, "LP2", 10, NativeVault(tokens, "vault-n", TREASURY), [("REWARD", 1)])
        pid = farm.add_pool(OWNER, "WNATIVE", 10, NativeVault(tokens, "vault-n2", TREASURY), [("REWARD", 1)])
        assert farm.pool_info(pid).asset == "WNATIVE"

    @pytest.mark.parametrize("rewards", [
        [("REWARD", 0)],
        [("REWARD", 1), ("REWARD", 2)],
        [("0x" + "00" * 20, 1)],
    ])
    def test_bad_reward_descriptors(self, farm, tokens, rewards):
        with pytest.raises(InvalidArgument):
            farm.add_pool(OWNER, "LP2", 10, PlainVault(tokens, "vault-1", "LP2", TREASURY), rewards)

    @pytest.mark.parametrize("weight,fee_rate", [(-1, 0), (10, -1), (10, 1001)])
    def test_bad_weight_or_fee(self, farm, tokens, weight, fee_rate):
        with pytest.raises(InvalidArgument):
            farm.add_pool(
                OWNER, "LP2", weight, PlainVault(tokens, "vault-1", "LP2", TREASURY),
                [("REWARD", 1)], fee_rate=fee_rate,
            )

    def test_max_fee_rate_cap(self, clock, tokens):
        farm = Farm(tokens, owner=OWNER, clock=clock, max_fee_rate=50)
        with pytest.raises(InvalidArgument):
            farm.add_pool(OWNER, "LP", 10, PlainVault(tokens, "vault-0", "LP", TREASURY), [("REWARD", 1)], fee_rate=51)

    def test_add_pool_settles_existing_weights_first(self, farm, clock, tokens):
        """Emission up to the change uses the old total weight."""
        farm.deposit(0, "alice", 1000)
        clock.advance(10)
        farm.add_pool(OWNER, "LP2", 100, PlainVault(tokens, "vault-1", "LP2", TREASURY), [("REWARD", 10)])
        clock.advance(10)
        assert farm.pending(0, "alice", "REWARD") == 100 + 50


class TestSetPool:

    def test_reweight(self, farm, clock):
        farm.deposit(0, "alice", 1000)
        clock.advance(10)
        farm.set_pool(OWNER, 0, 300)
        assert farm.state.settings.total_weight == 300
        clock.advance(10)
        assert farm.pending(0, "alice", "REWARD") == 200
        assert farm.events[-1].kind == "PoolUpdated"

    def test_fee_is_kept_when_omitted(self, farm):
        farm.set_pool(OWNER, 0, 100, fee_rate=7)
        farm.set_pool(OWNER, 0, 80)
        assert farm.pool_info(0).fee_rate == 7

    def test_unknown_pool(self, farm):
        with pytest.raises(InvalidArgument):
            farm.set_pool(OWNER, 3, 10)


class TestRewardTokens:

    def test_add_reward_token_starts_from_now(self, farm, clock, tokens):
        farm.deposit(0, "alice", 1000)
        clock.advance(10)
        farm.add_reward_token(OWNER, 0, "BONUS", 5)
        clock.advance(10)
        assert farm.pending(0, "alice", "BONUS") == 50
        assert "BONUS" in farm.reward_tokens()

    def test_add_existing_token_rejected(self, farm):
        with pytest.raises(InvalidArgument):
            farm.add_reward_token(OWNER, 0, "REWARD", 5)

    def test_remove_pays_pre_removal_pending(self, farm, clock, tokens):
        farm.add_reward_token(OWNER, 0, "BONUS", 5)
        fund_farm(tokens, farm, "BONUS", 10_000)
        farm.deposit(0, "alice", 1000)
        farm.deposit(0, "bob", 3000)
        clock.advance(20)
        expected = {user: farm.pending(0, user, "BONUS") for user in ("alice", "bob")}

        receipts = farm.remove_reward_token(OWNER, 0, "BONUS")

        assert {receipt.user: receipt.paid("BONUS") for receipt in receipts} == expected
        for user, amount in expected.items():
            assert tokens.balance_of("BONUS", user) == amount
        assert "BONUS" not in farm.pool_info(0).reward_rates
        assert "BONUS" not in farm.pool_info(0).accumulators
        assert farm.pending(0, "alice", "BONUS") == 0
        assert farm.state.positions.get(0, "alice").debt("BONUS") == 0
        # Other tokens keep accruing untouched
        assert farm.pending(0, "alice", "REWARD") == 50
        assert farm.violations() == []

    def test_remove_unknown_token(self, farm):
        with pytest.raises(InvalidArgument):
            farm.remove_reward_token(OWNER, 0, "BONUS")

    def test_readd_after_remove_starts_fresh(self, farm, clock, tokens):
        farm.add_reward_token(OWNER, 0, "BONUS", 5)
        fund_farm(tokens, farm, "BONUS", 10_000)
        farm.deposit(0, "alice", 1000)
        clock.advance(10)
        farm.remove_reward_token(OWNER, 0, "BONUS")
        clock.advance(10)
        farm.add_reward_token(OWNER, 0, "BONUS", 5)
        assert farm.pending(0, "alice", "BONUS") == 0
        clock.advance(10)
        assert farm.pending(0, "alice", "BONUS") == 50

    def test_set_reward_rate(self, farm, clock):
        farm.deposit(0, "alice", 1000)
        clock.advance(10)
        farm.set_reward_rate(OWNER, 0, "REWARD", 30)
        clock.advance(10)
        assert farm.pending(0, "alice", "REWARD") == 100 + 300

    @pytest.mark.parametrize("token,rate", [("REWARD", 0), ("BONUS", 5)])
    def test_set_reward_rate_rejects(self, farm, token, rate):
        with pytest.raises(InvalidArgument):
            farm.set_reward_rate(OWNER, 0, token, rate)


class TestLifecycle:

    def test_start_time_set_once(self, farm):
        with pytest.raises(AlreadyStarted):
            farm.set_start_time(OWNER, START + 5)

    def test_start_time_must_be_positive(self, clock, tokens):
        farm = Farm(tokens, owner=OWNER, clock=clock)
        with pytest.raises(InvalidArgument):
            farm.set_start_time(OWNER, 0)
        assert farm.state.settings.start_time is None

    def test_start_time_lifts_pool_accrual_time(self, clock, tokens):
        farm = Farm(tokens, owner=OWNER, clock=clock)
        farm.add_pool(OWNER, "LP", 100, PlainVault(tokens, "vault-0", "LP", TREASURY), [("REWARD", 10)])
        farm.set_start_time(OWNER, START + 50)
        assert farm.pool_info(0).last_accrual_time == START + 50

    def test_bonus_end_requires_start(self, clock, tokens):
        farm = Farm(tokens, owner=OWNER, clock=clock)
        with pytest.raises(NotStarted):
            farm.set_bonus_end(OWNER, 500)

    def test_bonus_end_must_follow_start(self, farm):
        with pytest.raises(InvalidArgument):
            farm.set_bonus_end(OWNER, START)
        farm.set_bonus_end(OWNER, START + 1)
        assert farm.state.settings.bonus_end == START + 1

    def test_update_pool_is_idempotent(self, farm, clock):
        farm.deposit(0, "alice", 1000)
        clock.advance(10)
        farm.update_pool(0)
        first = farm.pool_info(0)
        farm.update_pool(0)
        farm.mass_update_pools()
        assert farm.pool_info(0) == first


class TestAuthorization:

    @pytest.mark.parametrize("call", [
        lambda farm, tokens: farm.add_pool("mallory", "LP2", 1, PlainVault(tokens, "v", "LP2", TREASURY), []),
        lambda farm, tokens: farm.set_pool("mallory", 0, 1),
        lambda farm, tokens: farm.add_reward_token("mallory", 0, "BONUS", 1),
        lambda farm, tokens: farm.remove_reward_token("mallory", 0, "REWARD"),
        lambda farm, tokens: farm.set_reward_rate("mallory", 0, "REWARD", 1),
        lambda farm, tokens: farm.set_bonus_end("mallory", START + 10),
        lambda farm, tokens: farm.pause("mallory"),
        lambda farm, tokens: farm.transfer_ownership("mallory", "mallory"),
        lambda farm, tokens: farm.participants("mallory", 0),
    ])
    def test_non_owner_rejected(self, farm, tokens, call):
        before = farm.snapshot()
        with pytest.raises(Unauthorized):
            call(farm, tokens)
        assert farm.snapshot() == before

    def test_transfer_ownership(self, farm):
        farm.transfer_ownership(OWNER, "dao")
        assert farm.owner == "dao"
        with pytest.raises(Unauthorized):
            farm.pause(OWNER)
        farm.pause("dao")
        assert farm.state.settings.paused

    def test_participants_listing(self, farm):
        farm.deposit(0, "alice", 10)
        farm.deposit(0, "bob", 10)
        assert farm.participants(OWNER, 0) == ["alice", "bob"]


class TestSnapshot:

    def test_snapshot_shape(self, farm, clock):
        farm.deposit(0, "alice", 1000)
        clock.advance(10)
        snap = farm.snapshot()
        assert snap["time"] == START + 10
        assert snap["start_time"] == START
        pool = snap["pools"][0]
        assert pool["tvl"] == 1000
        assert pool["positions"]["alice"] == {"amount": 1000, "pending": {"REWARD": 100}}
