"""Shared fixtures: a manual clock, a token ledger and a started, funded single-pool farm."""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from farmledger.engine.farm import Farm, ManualClock
from farmledger.engine.tokens import MAX_ALLOWANCE, TokenLedger
from farmledger.engine.vaults import PlainVault

OWNER = "owner"
TREASURY = "treasury"
START = 100
USERS = ("alice", "bob", "carol")


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
def tokens():
    return TokenLedger(wrapped_native="WNATIVE")


def fund_user(tokens, farm, user, asset, amount):
    """Mint ``amount`` of ``asset`` to ``user`` and let the farm pull it."""
    tokens.mint(asset, user, amount)
    tokens.approve(asset, user, farm.address, MAX_ALLOWANCE)


def fund_farm(tokens, farm, token, amount):
    tokens.mint(token, OWNER, amount)
    farm.fund_rewards(OWNER, token, amount)


@pytest.fixture
def farm(clock, tokens):
    """
    Farm with one pool (asset LP, weight 100, REWARD at rate 10, no fee),
    started at t=100 and funded with 1,000,000 REWARD.

    Each of alice, bob and carol holds 10,000 LP approved to the farm.
    """
    farm = Farm(tokens, owner=OWNER, clock=clock)
    vault = PlainVault(tokens, "vault-0", "LP", TREASURY)
    farm.add_pool(OWNER, "LP", 100, vault, [("REWARD", 10)])
    farm.set_start_time(OWNER, START)
    fund_farm(tokens, farm, "REWARD", 1_000_000)
    for user in USERS:
        fund_user(tokens, farm, user, "LP", 10_000)
    return farm
