"""Tests for reward accrual and entitlement over a live farm."""

from farmledger.engine.farm import Farm
from farmledger.engine.rewards import ACC_SCALE
from farmledger.engine.vaults import PlainVault

from conftest import OWNER, START, TREASURY, fund_farm, fund_user


class TestSinglePoolAccrual:
    """Worked examples over the default fixture (rate 10, weight 100 of 100)."""

    def test_single_staker_earns_full_emission(self, farm, clock):
        farm.deposit(0, "alice", 1000)
        clock.advance(10)
        assert farm.pending(0, "alice", "REWARD") == 100

    def test_accumulator_after_update(self, farm, clock):
        farm.deposit(0, "alice", 1000)
        clock.advance(10)
        farm.update_pool(0)
        info = farm.pool_info(0)
        assert info.accumulators["REWARD"] == 100 * ACC_SCALE // 1000
        assert info.last_accrual_time == START + 10

    def test_equal_stakers_split_evenly(self, farm, clock):
        farm.deposit(0, "alice", 1000)
        farm.deposit(0, "bob", 1000)
        clock.advance(10)
        assert farm.pending(0, "alice", "REWARD") == 50
        assert farm.pending(0, "bob", "REWARD") == 50

    def test_late_joiner_earns_only_from_entry(self, farm, clock):
        farm.deposit(0, "alice", 1000)
        clock.advance(10)
        farm.deposit(0, "bob", 1000)
        clock.advance(10)
        assert farm.pending(0, "alice", "REWARD") == 150
        assert farm.pending(0, "bob", "REWARD") == 50

    def test_unstaked_time_is_not_credited(self, farm, clock):
        """Emission while the pool is empty is lost, not banked."""
        clock.advance(50)
        farm.deposit(0, "alice", 1000)
        clock.advance(10)
        assert farm.pending(0, "alice", "REWARD") == 100

    def test_pending_is_monotonic_without_actions(self, farm, clock):
        farm.deposit(0, "alice", 777)
        previous = 0
        for _ in range(20):
            clock.advance(3)
            current = farm.pending(0, "alice", "REWARD")
            assert current >= previous
            previous = current

    def test_pending_is_read_only(self, farm, clock):
        farm.deposit(0, "alice", 1000)
        clock.advance(10)
        before = farm.pool_info(0)
        farm.pending(0, "alice", "REWARD")
        farm.user_info(0, "alice")
        assert farm.pool_info(0) == before

    def test_pending_for_stranger_is_zero(self, farm, clock):
        farm.deposit(0, "alice", 1000)
        clock.advance(10)
        assert farm.pending(0, "mallory", "REWARD") == 0
        assert farm.pending(0, "alice", "UNKNOWN") == 0

    def test_total_emission_bounded_by_rate(self, farm, clock):
        """Payouts over a window never exceed rate * elapsed."""
        farm.deposit(0, "alice", 333)
        farm.deposit(0, "bob", 667)
        clock.advance(30)
        farm.harvest(0, "alice")
        farm.harvest(0, "bob")
        assert farm.total_paid("REWARD") <= 10 * 30


class TestBonusWindow:
    """Accrual under a bonus multiplier."""

    def _farm(self, clock, tokens, bonus_multiplier):
        farm = Farm(tokens, owner=OWNER, clock=clock, bonus_multiplier=bonus_multiplier)
        farm.add_pool(OWNER, "LP", 100, PlainVault(tokens, "vault-0", "LP", TREASURY), [("REWARD", 10)])
        farm.set_start_time(OWNER, START)
        farm.set_bonus_end(OWNER, START + 10)
        fund_farm(tokens, farm, "REWARD", 1_000_000)
        fund_user(tokens, farm, "alice", "LP", 10_000)
        return farm

    def test_bonus_then_normal(self, clock, tokens):
        farm = self._farm(clock, tokens, bonus_multiplier=3)
        farm.deposit(0, "alice", 1000)
        clock.advance(20)
        assert farm.pending(0, "alice", "REWARD") == 10 * 10 * 3 + 10 * 10

    def test_multiplier_one_is_neutral(self, clock, tokens):
        farm = self._farm(clock, tokens, bonus_multiplier=1)
        farm.deposit(0, "alice", 1000)
        clock.advance(20)
        assert farm.pending(0, "alice", "REWARD") == 200


class TestMultiPool:
    """Weight split across pools."""

    def test_weights_split_emission(self, farm, clock, tokens):
        farm.add_pool(OWNER, "LP2", 300, PlainVault(tokens, "vault-1", "LP2", TREASURY), [("REWARD", 10)])
        fund_user(tokens, farm, "alice", "LP2", 10_000)
        farm.deposit(0, "alice", 1000)
        farm.deposit(1, "alice", 1000)
        clock.advance(40)
        assert farm.pending(0, "alice", "REWARD") == 40 * 10 * 100 // 400
        assert farm.pending(1, "alice", "REWARD") == 40 * 10 * 300 // 400

    def test_zero_weight_pool_earns_nothing(self, farm, clock, tokens):
        farm.add_pool(OWNER, "LP2", 0, PlainVault(tokens, "vault-1", "LP2", TREASURY), [("REWARD", 10)])
        fund_user(tokens, farm, "alice", "LP2", 10_000)
        farm.deposit(1, "alice", 1000)
        clock.advance(40)
        assert farm.pending(1, "alice", "REWARD") == 0

    def test_multiple_reward_tokens(self, farm, clock, tokens):
        farm.add_reward_token(OWNER, 0, "BONUS", 4)
        fund_farm(tokens, farm, "BONUS", 10_000)
        farm.deposit(0, "alice", 1000)
        clock.advance(10)
        receipt = farm.harvest(0, "alice")
        assert receipt.paid("REWARD") == 100
        assert receipt.paid("BONUS") == 40
