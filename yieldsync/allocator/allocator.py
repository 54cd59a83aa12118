"""Multi-pool allocator: pool registry, placement, withdrawal, harvest, rebalance.

The allocator owns the per-pool allocation ledger. Custody of the asset is
the vault's; adapters move funds between vault custody and their pool.

Ledger rules:
- An entry changes only after the adapter call it reflects has returned
- Adapter return values are authoritative (partial deposits/withdrawals);
  a non-integer result falls back to the balance change across the call
- A failing adapter is skipped for the current operation (PoolUnavailable)
"""

import logging
import time
from collections.abc import Callable
from decimal import Decimal

from yieldsync.access import CapabilityGate
from yieldsync.allocator.models import (
    AllocatorConfig,
    DeployResult,
    HarvestReport,
    Placement,
    PoolQuote,
    PoolRecord,
    PoolStatus,
    RebalanceReport,
    RebalanceTransfer,
    WithdrawResult,
)
from yieldsync.allocator.ranking import (
    compute_targets,
    concentration_cap,
    deploy_order,
    market_signal,
    sanitize_apy,
    sanitize_capacity,
    target_weights,
    withdraw_order,
)
from yieldsync.errors import (
    InsufficientLiquidityError,
    InvalidAmountError,
    PoolAlreadyRegisteredError,
    PoolNotFoundError,
    PoolUnavailableError,
    RebalanceNotAllowedError,
)
from yieldsync.interfaces import PoolAdapter, YieldOracle
from yieldsync.schemas import PoolSnapshot

logger = logging.getLogger(__name__)

ADMIN = "admin"
VAULT = "vault"


class Allocator:
    """Allocates vault principal across registered pools by reported APY.

    Capabilities:
    - admin: add_pool, remove_pool, pause_pool, resume_pool, bind_vault
    - vault: deploy, withdraw, harvest_all, rebalance
    """

    def __init__(
        self,
        oracle: YieldOracle,
        config: AllocatorConfig | None = None,
        gate: CapabilityGate | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._oracle = oracle
        self._config = config or AllocatorConfig()
        self._gate = gate or CapabilityGate()
        self._gate.grant(ADMIN, *self._config.admins)
        self._clock = clock
        self._pools: dict[str, PoolRecord] = {}
        self._vault: str | None = None
        self._target_weights: dict[str, Decimal] = {}
        self._last_rebalance_at: float | None = None

    # Wiring
    def bind_vault(self, caller: str, vault_address: str) -> None:
        """Authorize the vault as the only caller of the custody operations."""
        self._gate.require(ADMIN, caller)
        self._gate.replace(VAULT, [vault_address])
        self._vault = vault_address
        logger.info(f"Allocator bound to vault {vault_address}")

    def require_admin(self, caller: str) -> None:
        """Raise UnauthorizedCallerError unless caller is an admin."""
        self._gate.require(ADMIN, caller)

    # Read-only views
    @property
    def config(self) -> AllocatorConfig:
        return self._config

    @property
    def vault(self) -> str | None:
        return self._vault

    @property
    def total_allocated(self) -> int:
        """Principal held across all non-removed pools."""
        return sum(p.allocated for p in self._pools.values() if p.holds_principal)

    @property
    def target_weights(self) -> dict[str, Decimal]:
        """Weights computed by the most recent rebalance."""
        return dict(self._target_weights)

    def get_pool(self, pool_id: str) -> PoolRecord:
        """Registry entry for a pool.

        Raises:
            PoolNotFoundError: pool_id is not registered
        """
        record = self._pools.get(pool_id)
        if record is None:
            raise PoolNotFoundError(f"Pool {pool_id!r} is not registered", pool_id=pool_id)
        return record

    def allocation_of(self, pool_id: str) -> int:
        """Allocated principal for a pool."""
        return self.get_pool(pool_id).allocated

    def active_pools(self) -> list[PoolRecord]:
        """Active pools in deploy order, by last accepted APY."""
        quotes = [
            PoolQuote(p.pool_id, p.reported_apy_bps)
            for p in self._pools.values()
            if p.status == PoolStatus.ACTIVE
        ]
        return [self._pools[q.pool_id] for q in deploy_order(quotes)]

    def best_pool(self) -> tuple[str, int] | None:
        """(pool_id, apy_bps) of the top-ranked active pool, or None."""
        active = self.active_pools()
        if not active:
            return None
        return active[0].pool_id, active[0].reported_apy_bps

    def pools_snapshot(self) -> list[PoolSnapshot]:
        """Read-only view of every registered pool."""
        return [
            PoolSnapshot(
                pool_id=p.pool_id,
                status=p.status.value,
                reported_apy_bps=p.reported_apy_bps,
                allocated=p.allocated,
                target_weight=self._target_weights.get(p.pool_id),
            )
            for p in sorted(self._pools.values(), key=lambda p: p.pool_id)
        ]

    # Pool administration
    def add_pool(self, caller: str, pool_id: str, adapter: PoolAdapter, reported_apy_bps: int) -> PoolRecord:
        """Register a pool with zero allocated principal.

        Raises:
            UnauthorizedCallerError: caller is not an admin
            PoolAlreadyRegisteredError: pool_id already registered (removed pools included)
            ValueError: reported APY outside [0, max_apy_bps]
        """
        self._gate.require(ADMIN, caller)
        if pool_id in self._pools:
            raise PoolAlreadyRegisteredError(f"Pool {pool_id!r} already registered", pool_id=pool_id)

        apy, accepted = sanitize_apy(reported_apy_bps, 0, self._config.max_apy_bps)
        if not accepted:
            raise ValueError(
                f"Reported APY {reported_apy_bps} for {pool_id!r} outside [0, {self._config.max_apy_bps}]"
            )

        record = PoolRecord(pool_id=pool_id, adapter=adapter, reported_apy_bps=apy)
        self._pools[pool_id] = record
        logger.info(f"Pool {pool_id} added at {apy} bps")
        return record

    async def remove_pool(self, caller: str, pool_id: str) -> int:
        """Withdraw a pool's allocated principal and retire it.

        Unharvested yield is not collected; harvest first. If the pool cannot
        return its full principal, whatever it did return is redeposited and
        the removal fails with no ledger change.

        Returns:
            Principal returned to vault custody

        Raises:
            UnauthorizedCallerError: caller is not an admin
            PoolNotFoundError: unknown or already removed pool
            PoolUnavailableError: the adapter reverted
            InsufficientLiquidityError: the pool returned less than its principal
        """
        self._gate.require(ADMIN, caller)
        record = self.get_pool(pool_id)
        if record.status == PoolStatus.REMOVED:
            raise PoolNotFoundError(f"Pool {pool_id!r} already removed", pool_id=pool_id)

        principal = record.allocated
        returned = 0
        if principal > 0:
            try:
                returned = await self._adapter_move(record, "withdraw", principal)
            except Exception as e:
                logger.warning(f"Pool {pool_id} withdraw failed during removal: {e}")
                raise PoolUnavailableError(f"Pool {pool_id!r} withdraw failed: {e}", pool_id=pool_id) from e

            record.allocated -= returned
            if returned < principal:
                stranded = await self._compensate([Placement(pool_id, returned)])
                raise InsufficientLiquidityError(
                    f"Pool {pool_id!r} returned {returned} of {principal} principal",
                    requested=principal,
                    available=returned,
                    stranded=stranded,
                )

        record.status = PoolStatus.REMOVED
        self._target_weights.pop(pool_id, None)
        logger.info(f"Pool {pool_id} removed, {returned} principal returned")
        return returned

    def pause_pool(self, caller: str, pool_id: str) -> None:
        """Stop new deposits into a pool. Withdrawals and harvest continue."""
        self._gate.require(ADMIN, caller)
        record = self._require_status(pool_id, PoolStatus.ACTIVE)
        record.status = PoolStatus.PAUSED
        logger.info(f"Pool {pool_id} paused")

    def resume_pool(self, caller: str, pool_id: str) -> None:
        """Return a paused pool to the deploy ranking."""
        self._gate.require(ADMIN, caller)
        record = self._require_status(pool_id, PoolStatus.PAUSED)
        record.status = PoolStatus.ACTIVE
        logger.info(f"Pool {pool_id} resumed")

    # Custody operations (vault only)
    async def deploy(self, caller: str, amount: int) -> DeployResult:
        """Place principal into active pools, best APY first.

        Each pool takes at most its headroom (oracle capacity minus current
        allocation, further limited by the concentration cap). Whatever no
        pool accepts is reported as unplaced and stays in vault custody.

        Raises:
            InsufficientLiquidityError: every pool with headroom reverted
        """
        self._gate.require(VAULT, caller)
        if amount <= 0:
            raise InvalidAmountError(f"Deploy amount must be positive, got {amount}", amount=amount)

        quotes = await self._quote_pools({PoolStatus.ACTIVE})
        cap = concentration_cap(self.total_allocated + amount, self._config.max_pool_allocation_bps)

        remaining = amount
        placements: list[Placement] = []
        skipped: list[str] = []
        attempted = 0
        for quote in deploy_order(quotes):
            if remaining == 0:
                break
            record = self._pools[quote.pool_id]
            headroom = min(quote.capacity, cap) - record.allocated
            size = min(remaining, headroom)
            if size <= 0:
                continue
            attempted += 1

            try:
                accepted = await self._adapter_move(record, "deposit", size)
            except Exception as e:
                logger.warning(f"Pool {quote.pool_id} deposit failed, skipping: {e}")
                skipped.append(quote.pool_id)
                continue

            if accepted == 0:
                continue
            record.allocated += accepted
            placements.append(Placement(quote.pool_id, accepted))
            remaining -= accepted

        if attempted and len(skipped) == attempted:
            logger.warning(f"Deploy of {amount} failed: all {attempted} candidate pools reverted")
            raise InsufficientLiquidityError(
                f"No pool accepted any of {amount}; reverted: {', '.join(skipped)}",
                requested=amount,
                available=0,
            )

        result = DeployResult(requested=amount, placements=tuple(placements), skipped=tuple(skipped))
        if result.unplaced:
            logger.info(f"Deploy left {result.unplaced} of {amount} unplaced")
        return result

    async def withdraw(self, caller: str, amount: int) -> WithdrawResult:
        """Source principal from pools, lowest APY first.

        Phase 1 reads balances and fails fast when the pools cannot cover
        ``amount``. Phase 2 withdraws; if partial returns leave a shortfall,
        completed withdrawals are redeposited and the call fails.

        Raises:
            InsufficientLiquidityError: pools exhausted before ``amount``
        """
        self._gate.require(VAULT, caller)
        if amount <= 0:
            raise InvalidAmountError(f"Withdraw amount must be positive, got {amount}", amount=amount)

        quotes = await self._quote_pools({PoolStatus.ACTIVE, PoolStatus.PAUSED}, with_capacity=False)

        # Phase 1: withdrawable principal per pool
        withdrawable: dict[str, int] = {}
        skipped: list[str] = []
        for quote in withdraw_order(quotes):
            record = self._pools[quote.pool_id]
            if record.allocated == 0:
                continue
            try:
                balance = await record.adapter.balance()
            except Exception as e:
                logger.warning(f"Pool {quote.pool_id} balance failed, skipping: {e}")
                skipped.append(quote.pool_id)
                continue
            if not isinstance(balance, int) or balance < 0:
                logger.warning(f"Pool {quote.pool_id} reported inconsistent balance {balance!r}, skipping")
                skipped.append(quote.pool_id)
                continue
            withdrawable[quote.pool_id] = min(balance, record.allocated)

        available = sum(withdrawable.values())
        if available < amount:
            logger.warning(f"Insufficient liquidity: requested {amount}, available {available}")
            raise InsufficientLiquidityError(
                f"Pools can return {available} of requested {amount}",
                requested=amount,
                available=available,
            )

        # Phase 2: withdraw in order, spilling on partial returns
        remaining = amount
        withdrawals: list[Placement] = []
        for pool_id, limit in withdrawable.items():
            if remaining <= 0:
                break
            take = min(remaining, limit)
            if take <= 0:
                continue
            record = self._pools[pool_id]
            try:
                got = await self._adapter_move(record, "withdraw", take)
            except Exception as e:
                logger.warning(f"Pool {pool_id} withdraw failed, skipping: {e}")
                skipped.append(pool_id)
                continue
            if got == 0:
                continue
            record.allocated -= got
            withdrawals.append(Placement(pool_id, got))
            remaining -= got

        if remaining > 0:
            stranded = await self._compensate(withdrawals)
            sourced = amount - remaining
            logger.warning(
                f"Withdraw of {amount} failed after sourcing {sourced}; stranded {stranded}"
            )
            raise InsufficientLiquidityError(
                f"Pools returned {sourced} of requested {amount}",
                requested=amount,
                available=sourced,
                stranded=stranded,
            )

        return WithdrawResult(requested=amount, withdrawals=tuple(withdrawals), skipped=tuple(skipped))

    async def harvest_all(self, caller: str) -> HarvestReport:
        """Extract accrued yield from every pool and detect losses.

        Phase 1 stages balances and withdraws positive accrual (principal is
        left in place). Phase 2 writes off losses: a pool whose balance is
        below its allocation has the allocation reduced to the balance.
        """
        self._gate.require(VAULT, caller)
        quotes = await self._quote_pools({PoolStatus.ACTIVE, PoolStatus.PAUSED})

        # Phase 1: stage
        yields: dict[str, int] = {}
        losses: dict[str, int] = {}
        written_down: dict[str, int] = {}
        skipped: list[str] = []
        for quote in deploy_order(quotes):
            record = self._pools[quote.pool_id]
            try:
                balance = await record.adapter.balance()
            except Exception as e:
                logger.warning(f"Pool {quote.pool_id} balance failed during harvest: {e}")
                skipped.append(quote.pool_id)
                continue
            if not isinstance(balance, int) or balance < 0:
                logger.warning(f"Pool {quote.pool_id} reported inconsistent balance {balance!r}")
                skipped.append(quote.pool_id)
                continue

            accrued = balance - record.allocated
            if accrued > 0:
                try:
                    got = await self._adapter_move(record, "withdraw", accrued)
                except Exception as e:
                    logger.warning(f"Pool {quote.pool_id} yield withdraw failed: {e}")
                    skipped.append(quote.pool_id)
                    continue
                if got > 0:
                    yields[quote.pool_id] = got
            elif accrued < 0:
                losses[quote.pool_id] = -accrued
                written_down[quote.pool_id] = balance

        # Phase 2: commit
        for pool_id, balance in written_down.items():
            record = self._pools[pool_id]
            logger.warning(
                f"Realized loss of {losses[pool_id]} in pool {pool_id} "
                f"(allocated {record.allocated}, balance {balance})"
            )
            record.allocated = balance

        allocations = {q.pool_id: self._pools[q.pool_id].allocated for q in quotes}
        report = HarvestReport(
            gross_yield=sum(yields.values()),
            yields=yields,
            losses=losses,
            skipped=tuple(skipped),
            signal=market_signal(quotes, allocations),
        )
        logger.info(
            f"Harvested {report.gross_yield} from {len(yields)} pools, "
            f"losses {report.total_loss}, skipped {len(skipped)}"
        )
        return report

    async def rebalance(self, caller: str) -> RebalanceReport:
        """Move principal from over-allocated to under-allocated active pools.

        Targets are a greedy fill of current active principal by APY ranking.
        A source pool is drained only toward pools whose APY beats it by at
        least rebalance_threshold_bps. Execution stops at the first failing
        adapter call; transfers completed up to that point stand. Only a
        completed rebalance starts the min_rebalance_interval_seconds window,
        so a stopped one can be retried immediately.

        Raises:
            RebalanceNotAllowedError: called before min_rebalance_interval_seconds elapsed
        """
        self._gate.require(VAULT, caller)
        now = self._clock()
        interval = self._config.min_rebalance_interval_seconds
        if self._last_rebalance_at is not None and now - self._last_rebalance_at < interval:
            retry_after = interval - (now - self._last_rebalance_at)
            raise RebalanceNotAllowedError(
                f"Rebalance allowed again in {retry_after:.1f}s", retry_after_seconds=retry_after
            )

        quotes = await self._quote_pools({PoolStatus.ACTIVE})
        apys = {q.pool_id: q.apy_bps for q in quotes}
        total = sum(self._pools[q.pool_id].allocated for q in quotes)
        targets = compute_targets(quotes, total, self._config.max_pool_allocation_bps)
        self._target_weights = target_weights(targets)

        deficits = {
            q.pool_id: targets[q.pool_id] - self._pools[q.pool_id].allocated
            for q in deploy_order(quotes)
            if targets[q.pool_id] > self._pools[q.pool_id].allocated
        }

        transfers: list[RebalanceTransfer] = []
        unplaced = 0
        for quote in withdraw_order(quotes):
            source = self._pools[quote.pool_id]
            excess = source.allocated - targets[quote.pool_id]
            if excess <= 0:
                continue
            # Destinations worth moving to from this source
            eligible = [
                pool_id
                for pool_id, deficit in deficits.items()
                if deficit > 0
                and pool_id != quote.pool_id
                and apys[pool_id] - quote.apy_bps >= self._config.rebalance_threshold_bps
            ]
            if not eligible:
                continue
            size = min(excess, sum(deficits[pool_id] for pool_id in eligible))

            try:
                in_flight = await self._adapter_move(source, "withdraw", size)
            except Exception as e:
                logger.warning(f"Rebalance stopped: withdraw from {quote.pool_id} failed: {e}")
                return self._rebalance_report(transfers, quote.pool_id, str(e), unplaced)
            source.allocated -= in_flight

            for pool_id in eligible:
                if in_flight == 0:
                    break
                destination = self._pools[pool_id]
                chunk = min(in_flight, deficits[pool_id])
                if chunk <= 0:
                    continue
                try:
                    accepted = await self._adapter_move(destination, "deposit", chunk)
                except Exception as e:
                    logger.warning(f"Rebalance stopped: deposit into {pool_id} failed: {e}")
                    return self._rebalance_report(transfers, pool_id, str(e), unplaced + in_flight)
                destination.allocated += accepted
                deficits[pool_id] -= accepted
                in_flight -= accepted
                if accepted:
                    transfers.append(RebalanceTransfer(quote.pool_id, pool_id, accepted))
            unplaced += in_flight

        self._last_rebalance_at = now
        report = RebalanceReport(
            transfers=tuple(transfers),
            unplaced=unplaced,
            target_weights=self.target_weights,
        )
        logger.info(f"Rebalance moved {report.moved} in {len(transfers)} transfers, unplaced {unplaced}")
        return report

    # Internals
    async def _quote_pools(self, statuses: set[PoolStatus], with_capacity: bool = True) -> list[PoolQuote]:
        """Sanitized oracle quotes for pools in the given statuses.

        An APY the oracle cannot supply or that is out of bounds falls back
        to the last accepted value. Accepted values refresh the registry.
        """
        quotes: list[PoolQuote] = []
        for record in self._pools.values():
            if record.status not in statuses:
                continue
            try:
                raw_apy = await self._oracle.get_apy(record.pool_id)
            except Exception as e:
                logger.warning(f"Oracle APY unavailable for {record.pool_id}, using last value: {e}")
                raw_apy = None
            apy, accepted = sanitize_apy(raw_apy, record.reported_apy_bps, self._config.max_apy_bps)
            if accepted:
                record.reported_apy_bps = apy
            elif raw_apy is not None:
                logger.warning(
                    f"Rejected oracle APY {raw_apy!r} for {record.pool_id}, using {apy} bps"
                )

            capacity = 0
            if with_capacity:
                try:
                    capacity = sanitize_capacity(await self._oracle.get_capacity(record.pool_id))
                except Exception as e:
                    logger.warning(f"Oracle capacity unavailable for {record.pool_id}: {e}")
            quotes.append(PoolQuote(record.pool_id, apy, capacity))
        return quotes

    async def _compensate(self, withdrawals: list[Placement]) -> int:
        """Redeposit withdrawn principal into its source pools, newest first.

        Returns:
            Amount that could not be redeposited (left in vault custody)
        """
        stranded = 0
        for placement in reversed(withdrawals):
            if placement.amount == 0:
                continue
            record = self._pools[placement.pool_id]
            try:
                accepted = await self._adapter_move(record, "deposit", placement.amount)
            except Exception as e:
                logger.error(f"Could not restore {placement.amount} to pool {placement.pool_id}: {e}")
                accepted = 0
            record.allocated += accepted
            stranded += placement.amount - accepted
        return stranded

    def _require_status(self, pool_id: str, status: PoolStatus) -> PoolRecord:
        record = self.get_pool(pool_id)
        if record.status != status:
            raise ValueError(f"Pool {pool_id!r} is {record.status.value}, expected {status.value}")
        return record

    def _rebalance_report(
        self, transfers: list[RebalanceTransfer], failed_pool: str, reason: str, unplaced: int
    ) -> RebalanceReport:
        return RebalanceReport(
            transfers=tuple(transfers),
            completed=False,
            failed_pool=failed_pool,
            reason=reason,
            unplaced=unplaced,
            target_weights=self.target_weights,
        )

    async def _adapter_move(self, record: PoolRecord, direction: str, amount: int) -> int:
        """Run an adapter deposit/withdraw and return the amount actually moved.

        An integer result is authoritative. Anything else is replaced by the
        change in the pool's balance across the call, so funds that moved are
        never dropped from the ledger. Either way the result is clamped to
        [0, amount].

        Raises:
            PoolUnavailableError: the pool's balance could not be read
        """
        before = await self._read_balance(record)
        if direction == "deposit":
            result = await record.adapter.deposit(amount)
        else:
            result = await record.adapter.withdraw(amount)

        if isinstance(result, int) and not isinstance(result, bool):
            moved = result
        else:
            after = await self._read_balance(record)
            moved = after - before if direction == "deposit" else before - after
            logger.warning(
                f"Pool {record.pool_id} returned inconsistent {direction} result {result!r}, "
                f"using balance change {moved}"
            )
        return max(0, min(moved, amount))

    @staticmethod
    async def _read_balance(record: PoolRecord) -> int:
        balance = await record.adapter.balance()
        if isinstance(balance, bool) or not isinstance(balance, int) or balance < 0:
            raise PoolUnavailableError(
                f"Pool {record.pool_id!r} reported inconsistent balance {balance!r}",
                pool_id=record.pool_id,
            )
        return balance
