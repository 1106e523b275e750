"""Farm orchestrator - deposit, withdraw and harvest over the reward ledger.

Every top-level operation:
- reads ``now`` once from the farm clock
- runs as one atomic unit: ledger state, token balances and the vault
  directory are snapshotted on entry and restored if anything raises
- publishes its events only after it commits

Every operation that moves value or touches the accumulators (deposit,
withdraw, harvest, emergency withdraw, pool updates and the admin setters)
additionally holds one per-farm exclusion guard, so a vault or token receiver
that calls back into the farm mid-operation gets ReentrantCall and the whole
outer operation rolls back.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from . import events as ev
from .accounting import FarmSettings, LedgerState
from .errors import (
    AlreadyStarted,
    InsufficientBalance,
    InvalidArgument,
    NotStarted,
    Paused,
    ReentrantCall,
    Unauthorized,
)
from .registry import Pool, RewardToken
from .rewards import ACC_SCALE, RewardEngine
from .tokens import MAX_ALLOWANCE, Address, Amount, TokenId, TokenLedger, is_valid_identity
from .vaults import FEE_DENOMINATOR, Vault, split_fee

logger = logging.getLogger(__name__)

RewardSpec = Union[RewardToken, Tuple[TokenId, int]]
Listener = Callable[[ev.FarmEvent], None]


class ManualClock:
    """Deterministic integer clock for simulations and tests."""

    def __init__(self, t: int = 0):
        self.t = t

    def __call__(self) -> int:
        return self.t

    def advance(self, dt: int) -> int:
        if dt < 0:
            raise ValueError(f"Clock cannot move backwards: dt={dt}")
        self.t += dt
        return self.t

    def set(self, t: int) -> None:
        if t < self.t:
            raise ValueError(f"Clock cannot move backwards: {self.t} -> {t}")
        self.t = t


def system_clock() -> int:
    return int(time.time())


class ReentrancyGuard:
    """Call-scoped exclusive-access token; nested entry raises ReentrantCall."""

    def __init__(self):
        self._entered = False

    @property
    def locked(self) -> bool:
        return self._entered

    def __enter__(self) -> "ReentrancyGuard":
        if self._entered:
            raise ReentrantCall("Reentrant call into a guarded farm operation")
        self._entered = True
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._entered = False


@dataclass
class TokenSettlement:
    """Outcome of settling one reward token for one position."""
    token: TokenId
    entitled: Amount  # Gross entitlement; the debt baseline advanced by this much
    fee: Amount
    paid: Amount  # Actually transferred to the user
    shortfall: Amount  # Net entitlement the farm could not cover


@dataclass
class SettlementReceipt:
    """Result of ``settle`` for one (pool, user)."""
    pid: int
    user: Address
    tokens: List[TokenSettlement] = field(default_factory=list)

    def paid(self, token: TokenId) -> Amount:
        return sum(item.paid for item in self.tokens if item.token == token)

    def entitled(self, token: TokenId) -> Amount:
        return sum(item.entitled for item in self.tokens if item.token == token)

    @property
    def total_paid(self) -> Dict[TokenId, Amount]:
        return {item.token: item.paid for item in self.tokens}

    @property
    def has_shortfall(self) -> bool:
        return any(item.shortfall for item in self.tokens)


@dataclass
class PoolView:
    """Read-only projection of a pool."""
    pid: int
    asset: TokenId
    weight: int
    amount: Amount
    fee_rate: int
    last_accrual_time: int
    vault: Address
    accumulators: Dict[TokenId, int]
    reward_rates: Dict[TokenId, int]


@dataclass
class UserView:
    """Read-only projection of a user's position in a pool."""
    pid: int
    user: Address
    amount: Amount
    pending: Dict[TokenId, Amount]  # Net of the pool fee


class Farm:
    """Multi-pool, multi-token staking ledger.

    Combines the Deposit/Withdraw/Harvest Orchestrator, the Admin/Lifecycle
    Controller and the read-only projections over one ``LedgerState``.
    """

    def __init__(
        self,
        tokens: TokenLedger,
        owner: Address,
        address: Address = "farm",
        clock: Optional[Callable[[], int]] = None,
        acc_scale: int = ACC_SCALE,
        bonus_multiplier: int = 1,
        max_fee_rate: int = FEE_DENOMINATOR
    ):
        """
        Initialize an empty farm.

        Args:
            tokens: Value-transfer primitive holding every balance
            owner: Privileged identity for admin operations
            address: The farm's own holder address in ``tokens``
            clock: Callable returning the current integer time (defaults to wall clock)
            acc_scale: Fixed-point scale of the accumulators
            bonus_multiplier: Accrual multiplier inside the bonus window
            max_fee_rate: Highest per-thousand fee a pool may charge
        """
        if not is_valid_identity(owner):
            raise InvalidArgument("Owner must be a valid identity")
        if not is_valid_identity(address):
            raise InvalidArgument("Farm address must be a valid identity")
        if not 0 <= max_fee_rate <= FEE_DENOMINATOR:
            raise InvalidArgument(f"max_fee_rate must be in [0, {FEE_DENOMINATOR}], got {max_fee_rate}")

        self.tokens = tokens
        self.address = address
        self.clock = clock or system_clock
        self.engine = RewardEngine(acc_scale=acc_scale, bonus_multiplier=bonus_multiplier)
        self.max_fee_rate = max_fee_rate
        self.state = LedgerState(settings=FarmSettings(owner=owner))
        self.events: List[ev.FarmEvent] = []

        self._vaults: Dict[int, Vault] = {}
        self._guard = ReentrancyGuard()
        self._listeners: List[Listener] = []
        self._buffer: Optional[List[ev.FarmEvent]] = None

    # ================================================================ plumbing

    @property
    def owner(self) -> Address:
        return self.state.settings.owner

    @property
    def acc_scale(self) -> int:
        return self.engine.acc_scale

    def subscribe(self, listener: Listener) -> None:
        """Call ``listener(event)`` for every committed event; listener errors are logged, not raised."""
        self._listeners.append(listener)

    def vault(self, pid: int) -> Vault:
        self.state.pools.get(pid)
        return self._vaults[pid]

    @contextmanager
    def _transaction(self, action: str):
        """All-or-nothing unit of work; nested calls join the outermost one."""
        if self._buffer is not None:
            yield
            return

        saved_state = self.state.clone()
        saved_tokens = self.tokens.snapshot()
        saved_vaults = dict(self._vaults)
        self._buffer = []
        try:
            yield
        except BaseException as exc:
            self.state = saved_state
            self.tokens.restore(saved_tokens)
            self._vaults = saved_vaults
            self._buffer = None
            logger.debug("%s rolled back: %r", action, exc)
            raise
        committed, self._buffer = self._buffer, None
        for event in committed:
            self.events.append(event)
        # Already committed: listener errors are logged only
        for event in committed:
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    logger.exception("event listener failed on %s", event.kind)

    def _emit(self, event: ev.FarmEvent) -> None:
        if self._buffer is None:
            raise RuntimeError("Events can only be emitted inside a transaction")
        self._buffer.append(event)

    def _require_owner(self, caller: Address) -> None:
        if caller != self.state.settings.owner:
            raise Unauthorized(f"{caller} is not the farm owner")

    def _require_active(self, pid: int, now: int, check_tokens: bool = True) -> Pool:
        """Gate shared by deposit, withdraw and harvest."""
        settings = self.state.settings
        if settings.paused:
            raise Paused("Farm is paused")
        if not settings.started(now):
            raise NotStarted(f"Farming has not started (now={now}, start={settings.start_time})")
        pool = self.state.pools.get(pid)
        if check_tokens:
            for reward in pool.reward_tokens:
                if not is_valid_identity(reward.token):
                    raise InvalidArgument(f"Pool {pid} carries an invalid reward token")
        return pool

    # ================================================================= settle

    def _settle(self, pool: Pool, user: Address, now: int, only: Optional[TokenId] = None) -> SettlementReceipt:
        """
        Pay out every outstanding reward of ``user`` in ``pool``.

        Must run after ``accrue`` and before the position's amount changes. The
        debt baseline advances by the full gross entitlement; the transfer is
        net of the pool fee and capped at what the farm currently holds.
        """
        receipt = SettlementReceipt(pid=pool.pid, user=user)
        position = self.state.positions.get(pool.pid, user)
        if position.amount == 0:
            return receipt

        for reward in list(pool.reward_tokens):
            if only is not None and reward.token != only:
                continue
            entitled = self.engine.pending(self.state, pool.pid, user, reward.token, now)
            if entitled <= 0:
                continue

            position.debts[reward.token] = position.debt(reward.token) + entitled
            net, fee = split_fee(entitled, pool.fee_rate)
            available = self.tokens.balance_of(reward.token, self.address)
            paid = min(net, available)
            shortfall = net - paid
            self.state.rewards.record_payout(reward.token, entitled, shortfall)
            if paid:
                self.tokens.transfer(reward.token, self.address, user, paid)

            receipt.tokens.append(TokenSettlement(reward.token, entitled, fee, paid, shortfall))
            self._emit(ev.RewardPaid(
                timestamp=now, user=user, pid=pool.pid, token=reward.token,
                entitled=entitled, fee=fee, paid=paid,
            ))
            if shortfall:
                logger.warning(
                    "reward shortfall in pool %d for %s: %s short by %d",
                    pool.pid, user, reward.token, shortfall,
                )
                self._emit(ev.RewardShortfall(
                    timestamp=now, user=user, pid=pool.pid, token=reward.token, shortfall=shortfall,
                ))
        return receipt

    def _rebaseline(self, pool: Pool, user: Address) -> None:
        self.state.positions.rebaseline(
            pool.pid, user, self.state.pools.accumulators(pool.pid), self.acc_scale
        )

    # ========================================================== user actions

    def deposit(self, pid: int, user: Address, amount: Amount, native_value: Amount = 0) -> Amount:
        """
        Stake ``amount`` of the pool asset for ``user``.

        For wrapped-native pools the pulled tokens are unwrapped and any
        ``native_value`` attached by the user is added before custody moves
        to the vault. Outstanding rewards on an existing stake are paid first.

        Returns:
            Realized amount credited to the position
        """
        with self._transaction("deposit"), self._guard:
            now = self.clock()
            pool = self._require_active(pid, now)
            if amount < 0 or native_value < 0:
                raise InvalidArgument(f"Deposit amounts must be non-negative: {amount}, {native_value}")

            self.engine.accrue(self.state, pid, now)
            if self.state.positions.get(pid, user).amount > 0:
                self._settle(pool, user, now)

            realized = self._take_custody(pool, user, amount, native_value)

            position = self.state.positions.open(pid, user)
            position.amount += realized
            pool.amount += realized
            self._rebaseline(pool, user)

            self._emit(ev.Deposit(timestamp=now, user=user, pid=pid, amount=realized))
            logger.info("deposit: %s staked %d in pool %d", user, realized, pid)
            return realized

    def _take_custody(self, pool: Pool, user: Address, amount: Amount, native_value: Amount) -> Amount:
        """Pull the asset from ``user`` and hand it to the pool's vault."""
        vault = self._vaults[pool.pid]
        if self._is_wrapped_native(pool):
            received = 0
            if amount:
                received = self._pull(pool.asset, user, amount)
                self.tokens.unwrap(self.address, received)
            if native_value:
                self.tokens.send_native(user, self.address, native_value)
            total = received + native_value
            return vault.deposit(self.address, total, value=total) if total else 0

        if native_value:
            raise InvalidArgument(f"Pool {pool.pid} does not accept native value")
        received = self._pull(pool.asset, user, amount) if amount else 0
        return vault.deposit(self.address, received) if received else 0

    def _pull(self, token: TokenId, user: Address, amount: Amount) -> Amount:
        before = self.tokens.balance_of(token, self.address)
        self.tokens.transfer_from(token, self.address, user, self.address, amount)
        return self.tokens.balance_of(token, self.address) - before

    def _is_wrapped_native(self, pool: Pool) -> bool:
        return pool.asset == self.tokens.wrapped_native and self._vaults[pool.pid].is_native

    def withdraw(self, pid: int, user: Address, amount: Amount) -> Amount:
        """
        Unstake ``amount`` for ``user``, paying outstanding rewards first.

        Returns:
            Principal released by the vault after its withdrawal fee
        """
        with self._transaction("withdraw"), self._guard:
            now = self.clock()
            pool = self._require_active(pid, now)
            position = self.state.positions.get(pid, user)
            if amount < 0:
                raise InvalidArgument(f"Withdraw amount must be non-negative: {amount}")
            if amount > position.amount:
                raise InsufficientBalance(
                    f"{user} cannot withdraw {amount} from pool {pid}, only {position.amount} staked"
                )

            self.engine.accrue(self.state, pid, now)
            self._settle(pool, user, now)

            released = 0
            if position.amount > 0 or amount > 0:
                position.amount -= amount
                pool.amount -= amount
                self._rebaseline(pool, user)
                if amount:
                    released = self._vaults[pid].withdraw(self.address, user, amount, pool.fee_rate)

            self._emit(ev.Withdraw(timestamp=now, user=user, pid=pid, amount=amount, released=released))
            logger.info("withdraw: %s unstaked %d from pool %d (released %d)", user, amount, pid, released)
            return released

    def harvest(self, pid: int, user: Address) -> SettlementReceipt:
        """Pay out ``user``'s outstanding rewards in pool ``pid`` without touching the stake."""
        with self._transaction("harvest"), self._guard:
            now = self.clock()
            return self._harvest(pid, user, now)

    def harvest_all(self, user: Address) -> List[SettlementReceipt]:
        """Harvest every pool where ``user`` holds a stake."""
        with self._transaction("harvest_all"), self._guard:
            now = self.clock()
            return [self._harvest(pid, user, now) for pid in self.state.positions.pools_of(user)]

    def _harvest(self, pid: int, user: Address, now: int) -> SettlementReceipt:
        pool = self._require_active(pid, now, check_tokens=False)
        self.engine.accrue(self.state, pid, now)
        receipt = self._settle(pool, user, now)
        if receipt.tokens:
            logger.info("harvest: %s collected %s from pool %d", user, receipt.total_paid, pid)
        return receipt

    def emergency_withdraw(self, pid: int, user: Address) -> Amount:
        """Withdraw the whole stake without settling rewards; outstanding rewards are forfeited."""
        with self._transaction("emergency_withdraw"), self._guard:
            now = self.clock()
            pool = self.state.pools.get(pid)
            position = self.state.positions.get(pid, user)
            amount = position.amount
            if amount == 0:
                raise InsufficientBalance(f"{user} has nothing staked in pool {pid}")

            self.engine.accrue(self.state, pid, now)
            position.amount = 0
            position.debts.clear()
            pool.amount -= amount
            released = self._vaults[pid].withdraw(self.address, user, amount, pool.fee_rate)

            self._emit(ev.EmergencyWithdraw(timestamp=now, user=user, pid=pid, amount=amount, released=released))
            logger.warning("emergency withdraw: %s pulled %d from pool %d", user, amount, pid)
            return released

    def fund_rewards(self, funder: Address, token: TokenId, amount: Amount) -> Amount:
        """Move reward tokens from ``funder`` into the farm's payout balance."""
        with self._transaction("fund_rewards"):
            if not is_valid_identity(token):
                raise InvalidArgument("Reward token must be a valid identity")
            if amount <= 0:
                raise InvalidArgument(f"Funding amount must be positive: {amount}")
            return self.tokens.transfer(token, funder, self.address, amount)

    # ========================================================= pool updates

    def update_pool(self, pid: int) -> None:
        """Accrue one pool up to now."""
        with self._transaction("update_pool"), self._guard:
            self.engine.accrue(self.state, pid, self.clock())

    def mass_update_pools(self) -> None:
        """Accrue every pool up to now."""
        with self._transaction("mass_update_pools"), self._guard:
            self.engine.accrue_all(self.state, self.clock())

    # ================================================================= admin

    def add_pool(
        self,
        caller: Address,
        asset: TokenId,
        weight: int,
        vault: Vault,
        reward_tokens: Iterable[RewardSpec],
        fee_rate: int = 0,
        with_update: bool = True
    ) -> int:
        """
        Register a new pool.

        Args:
            caller: Must be the owner
            asset: Staked asset; one pool per asset
            weight: Allocation points
            vault: Custodian for the pool's deposits
            reward_tokens: Descriptors or (token, rate) pairs
            fee_rate: Withdrawal/harvest fee in parts per thousand
            with_update: Accrue every existing pool before the weight total changes

        Returns:
            New pool id
        """
        with self._transaction("add_pool"), self._guard:
            self._require_owner(caller)
            now = self.clock()
            if not is_valid_identity(asset):
                raise InvalidArgument("Pool asset must be a valid identity")
            if self.state.pools.has_asset(asset):
                raise InvalidArgument(f"A pool for asset {asset} already exists")
            self._check_weight(weight)
            self._check_fee(fee_rate)
            if vault.asset != asset and not (vault.is_native and asset == self.tokens.wrapped_native):
                raise InvalidArgument(f"Vault custodies {vault.asset}, pool stakes {asset}")
            if any(v is vault for v in self._vaults.values()):
                raise InvalidArgument(f"Vault {vault.address} already serves another pool")
            rewards = self._normalize_rewards(reward_tokens)

            if with_update:
                self.engine.accrue_all(self.state, now)

            settings = self.state.settings
            last_accrual = now if settings.start_time is None else max(now, settings.start_time)
            pool = self.state.pools.append(asset, weight, fee_rate, last_accrual, vault.address, rewards)
            settings.total_weight += weight
            for reward in rewards:
                self.state.rewards.register(reward.token)

            vault.bind(self.address)
            self._vaults[pool.pid] = vault
            if not vault.is_native:
                self.tokens.approve(asset, self.address, vault.address, MAX_ALLOWANCE)

            self._emit(ev.PoolAdded(
                timestamp=now, pid=pool.pid, asset=asset, weight=weight,
                fee_rate=fee_rate, vault=vault.address,
            ))
            logger.info("pool added: %d asset=%s weight=%d fee=%d", pool.pid, asset, weight, fee_rate)
            return pool.pid

    def set_pool(
        self,
        caller: Address,
        pid: int,
        weight: int,
        fee_rate: Optional[int] = None,
        with_update: bool = True
    ) -> None:
        """Change a pool's weight and, optionally, its fee rate."""
        with self._transaction("set_pool"), self._guard:
            self._require_owner(caller)
            now = self.clock()
            pool = self.state.pools.get(pid)
            self._check_weight(weight)
            if fee_rate is not None:
                self._check_fee(fee_rate)

            if with_update:
                self.engine.accrue_all(self.state, now)
            else:
                self.engine.accrue(self.state, pid, now)

            self.state.settings.total_weight += weight - pool.weight
            pool.weight = weight
            if fee_rate is not None:
                pool.fee_rate = fee_rate

            self._emit(ev.PoolUpdated(timestamp=now, pid=pid, weight=weight, fee_rate=pool.fee_rate))
            logger.info("pool updated: %d weight=%d fee=%d", pid, weight, pool.fee_rate)

    def add_reward_token(self, caller: Address, pid: int, token: TokenId, rate: int) -> None:
        """Start emitting ``token`` from pool ``pid``; existing stakers earn it from now on."""
        with self._transaction("add_reward_token"), self._guard:
            self._require_owner(caller)
            now = self.clock()
            self.state.pools.get(pid)
            (reward,) = self._normalize_rewards([(token, rate)])

            self.engine.accrue(self.state, pid, now)
            self.state.pools.add_reward_token(pid, reward)
            self.state.rewards.register(token)

            self._emit(ev.RewardTokenAdded(timestamp=now, pid=pid, token=token, rate=rate))
            logger.info("reward token added: pool %d token=%s rate=%d", pid, token, rate)

    def remove_reward_token(self, caller: Address, pid: int, token: TokenId) -> List[SettlementReceipt]:
        """
        Stop emitting ``token`` from pool ``pid``.

        Every participant's outstanding entitlement of ``token`` is paid out
        first; afterwards the pool tracks no accumulator or debt for it.
        """
        with self._transaction("remove_reward_token"), self._guard:
            self._require_owner(caller)
            now = self.clock()
            pool = self.state.pools.get(pid)
            if pool.descriptor(token) is None:
                raise InvalidArgument(f"Pool {pid} does not emit {token}")

            self.engine.accrue(self.state, pid, now)
            receipts = [
                self._settle(pool, user, now, only=token)
                for user in self.state.positions.participants(pid)
            ]
            self.state.pools.remove_reward_token(pid, token)
            self.state.positions.drop_token(pid, token)

            self._emit(ev.RewardTokenRemoved(timestamp=now, pid=pid, token=token))
            logger.info("reward token removed: pool %d token=%s", pid, token)
            return [receipt for receipt in receipts if receipt.tokens]

    def set_reward_rate(self, caller: Address, pid: int, token: TokenId, rate: int) -> None:
        """Change the emission rate of ``token`` in pool ``pid``."""
        with self._transaction("set_reward_rate"), self._guard:
            self._require_owner(caller)
            now = self.clock()
            reward = self.state.pools.get(pid).descriptor(token)
            if reward is None:
                raise InvalidArgument(f"Pool {pid} does not emit {token}")
            if rate <= 0:
                raise InvalidArgument(f"Reward rate must be positive, got {rate}")

            self.engine.accrue_all(self.state, now)
            reward.rate = rate

            self._emit(ev.RewardRateUpdated(timestamp=now, pid=pid, token=token, rate=rate))
            logger.info("reward rate updated: pool %d token=%s rate=%d", pid, token, rate)

    def set_start_time(self, caller: Address, start_time: int) -> None:
        """Set when farming starts; allowed once."""
        with self._transaction("set_start_time"), self._guard:
            self._require_owner(caller)
            settings = self.state.settings
            if settings.start_time is not None:
                raise AlreadyStarted(f"Start time already set to {settings.start_time}")
            if start_time <= 0:
                raise InvalidArgument(f"Start time must be positive, got {start_time}")

            settings.start_time = start_time
            for pool in self.state.pools:
                pool.last_accrual_time = max(pool.last_accrual_time, start_time)

            self._emit(ev.FarmStarted(timestamp=self.clock(), start_time=start_time))
            logger.info("farm start time set to %d", start_time)

    def set_bonus_end(self, caller: Address, bonus_end: int) -> None:
        """Set when the bonus window closes; requires a start time and must postdate it."""
        with self._transaction("set_bonus_end"), self._guard:
            self._require_owner(caller)
            now = self.clock()
            settings = self.state.settings
            if settings.start_time is None:
                raise NotStarted("Bonus window requires a start time")
            if bonus_end <= settings.start_time:
                raise InvalidArgument(
                    f"Bonus end {bonus_end} must be after start time {settings.start_time}"
                )

            self.engine.accrue_all(self.state, now)
            settings.bonus_end = bonus_end

            self._emit(ev.BonusEndUpdated(timestamp=now, bonus_end=bonus_end))
            logger.info("bonus window end set to %d", bonus_end)

    def set_paused(self, caller: Address, paused: bool) -> None:
        """Engage or release the circuit breaker for deposit, withdraw and harvest."""
        with self._transaction("set_paused"):
            self._require_owner(caller)
            self.state.settings.paused = paused
            self._emit(ev.PausedChanged(timestamp=self.clock(), paused=paused))
            logger.info("farm %s", "paused" if paused else "unpaused")

    def pause(self, caller: Address) -> None:
        self.set_paused(caller, True)

    def unpause(self, caller: Address) -> None:
        self.set_paused(caller, False)

    def transfer_ownership(self, caller: Address, new_owner: Address) -> None:
        with self._transaction("transfer_ownership"):
            self._require_owner(caller)
            if not is_valid_identity(new_owner):
                raise InvalidArgument("New owner must be a valid identity")
            self.state.settings.owner = new_owner
            self._emit(ev.OwnershipTransferred(
                timestamp=self.clock(), previous_owner=caller, new_owner=new_owner,
            ))

    def _check_weight(self, weight: int) -> None:
        if weight < 0:
            raise InvalidArgument(f"Pool weight must be non-negative, got {weight}")

    def _check_fee(self, fee_rate: int) -> None:
        if not 0 <= fee_rate <= self.max_fee_rate:
            raise InvalidArgument(f"Fee rate must be in [0, {self.max_fee_rate}], got {fee_rate}")

    def _normalize_rewards(self, reward_tokens: Iterable[RewardSpec]) -> List[RewardToken]:
        rewards: List[RewardToken] = []
        seen = set()
        for spec in reward_tokens:
            reward = spec if isinstance(spec, RewardToken) else RewardToken(token=spec[0], rate=spec[1])
            if not is_valid_identity(reward.token):
                raise InvalidArgument("Reward token must be a valid identity")
            if reward.rate <= 0:
                raise InvalidArgument(f"Reward rate for {reward.token} must be positive, got {reward.rate}")
            if reward.token in seen:
                raise InvalidArgument(f"Duplicate reward token {reward.token}")
            seen.add(reward.token)
            rewards.append(RewardToken(token=reward.token, rate=reward.rate))
        return rewards

    # ============================================================ projections

    def pool_length(self) -> int:
        return len(self.state.pools)

    def pool_info(self, pid: int) -> PoolView:
        pool = self.state.pools.get(pid)
        return PoolView(
            pid=pool.pid,
            asset=pool.asset,
            weight=pool.weight,
            amount=pool.amount,
            fee_rate=pool.fee_rate,
            last_accrual_time=pool.last_accrual_time,
            vault=pool.vault,
            accumulators=self.state.pools.accumulators(pid),
            reward_rates={reward.token: reward.rate for reward in pool.reward_tokens},
        )

    def pending(self, pid: int, user: Address, token: TokenId) -> Amount:
        """Outstanding reward as of now, net of the pool fee. Lock-free and advisory."""
        return self.engine.pending_after_fee(self.state, pid, user, token, self.clock())

    def pending_gross(self, pid: int, user: Address, token: TokenId) -> Amount:
        return self.engine.pending(self.state, pid, user, token, self.clock())

    def user_info(self, pid: int, user: Address) -> UserView:
        pool = self.state.pools.get(pid)
        return UserView(
            pid=pid,
            user=user,
            amount=self.state.positions.get(pid, user).amount,
            pending={token: self.pending(pid, user, token) for token in pool.tokens},
        )

    def tvl(self, pid: int) -> Amount:
        """Value custodied by the pool's vault, including any forwarded-to-strategy portion."""
        return self.vault(pid).balance()

    def total_tvl(self) -> Amount:
        return sum(self.tvl(pool.pid) for pool in self.state.pools)

    def total_paid(self, token: TokenId) -> Amount:
        return self.state.rewards.total_paid.get(token, 0)

    def total_shortfall(self, token: TokenId) -> Amount:
        return self.state.rewards.total_shortfall.get(token, 0)

    def reward_tokens(self) -> List[TokenId]:
        """Every reward token ever attached to a pool."""
        return list(self.state.rewards.tokens)

    def reward_balance(self, token: TokenId) -> Amount:
        return self.tokens.balance_of(token, self.address)

    def participants(self, caller: Address, pid: int) -> List[Address]:
        """Pool participant list; owner only."""
        self._require_owner(caller)
        self.state.pools.get(pid)
        return self.state.positions.participants(pid)

    def snapshot(self) -> Dict[str, Any]:
        """Plain-dict projection of the whole ledger for reporting."""
        settings = self.state.settings
        pools = []
        for pool in self.state.pools:
            view = self.pool_info(pool.pid)
            pools.append({
                "pid": view.pid,
                "asset": view.asset,
                "weight": view.weight,
                "amount": view.amount,
                "fee_rate": view.fee_rate,
                "last_accrual_time": view.last_accrual_time,
                "vault": view.vault,
                "tvl": self.tvl(pool.pid),
                "accumulators": view.accumulators,
                "reward_rates": view.reward_rates,
                "positions": {
                    user: {
                        "amount": self.state.positions.get(pool.pid, user).amount,
                        "pending": {token: self.pending(pool.pid, user, token) for token in pool.tokens},
                    }
                    for user in self.state.positions.participants(pool.pid)
                },
            })
        return {
            "time": self.clock(),
            "start_time": settings.start_time,
            "bonus_end": settings.bonus_end,
            "total_weight": settings.total_weight,
            "paused": settings.paused,
            "pools": pools,
            "total_paid": dict(self.state.rewards.total_paid),
            "total_shortfall": dict(self.state.rewards.total_shortfall),
        }

    def violations(self) -> List[str]:
        """Ledger invariant violations at this quiescent point (empty when healthy)."""
        return self.state.violations(self.acc_scale)
