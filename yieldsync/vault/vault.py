"""Yield vault: share accounting, deposits, withdrawals and harvest settlement.

Accounting state:
- total_assets: principal + net yield owned by shareholders
- idle_assets: part of total_assets held in vault custody, not in pools
- pending_fees: fee owed to the collector, held in custody, not in NAV

Every state-mutating entry point runs under a non-blocking reentrancy
guard; a collaborator that calls back in while the vault is suspended on
it gets ReentrancyError. Share counts are computed from the NAV observed
before any await, and the guard keeps that NAV fixed until the commit.
"""

import logging
from decimal import Decimal

from yieldsync.access import CapabilityGate, ReentrancyGuard
from yieldsync.allocator.allocator import Allocator
from yieldsync.allocator.models import RebalanceReport
from yieldsync.errors import (
    DepositCapExceededError,
    EmergencyModeError,
    InsufficientLiquidityError,
    InsufficientSharesError,
    InvalidAmountError,
    TransferFailedError,
    YieldSyncError,
)
from yieldsync.events import (
    Deposited,
    EmergencyModeChanged,
    EmergencyWithdrawn,
    EventLog,
    FeeCollected,
    LossRealized,
    PoolAdded,
    PoolRemoved,
    Rebalanced,
    SharesConverted,
    SharesTransferred,
    Withdrawn,
    YieldHarvested,
)
from yieldsync.fees.optimizer import FeeOptimizer
from yieldsync.interfaces import AssetToken, GovernanceBridge, PoolAdapter
from yieldsync.schemas import HolderPosition, VaultSnapshot
from yieldsync.vault.models import ConservationReport, HarvestPhase, HarvestResult, VaultConfig
from yieldsync.vault.shares import ShareLedger, assets_for_shares, share_price, shares_for_deposit

logger = logging.getLogger(__name__)

HARVEST = "harvest"
REBALANCE = "rebalance"
COLLECT_FEES = "collect_fees"
EMERGENCY = "emergency"


class Vault:
    """Issues shares against a single asset and settles pool yield into NAV."""

    def __init__(
        self,
        asset: AssetToken,
        allocator: Allocator,
        fee_optimizer: FeeOptimizer | None = None,
        config: VaultConfig | None = None,
        events: EventLog | None = None,
        governance: GovernanceBridge | None = None,
        gate: CapabilityGate | None = None,
    ):
        self._asset = asset
        self._allocator = allocator
        self._fees = fee_optimizer or FeeOptimizer()
        self._config = config or VaultConfig()
        self._events = events or EventLog()
        self._governance = governance
        self._gate = gate or CapabilityGate()
        self._gate.grant(HARVEST, *self._config.harvest_roles)
        self._gate.grant(REBALANCE, *self._config.rebalance_roles)
        self._gate.grant(COLLECT_FEES, *self._config.fee_collect_roles)
        self._gate.grant(EMERGENCY, *self._config.emergency_roles)
        self._guard = ReentrancyGuard()

        self._shares = ShareLedger()
        self._total_assets = 0
        self._idle_assets = 0
        self._pending_fees = 0
        self._cumulative_fees = 0
        self._cumulative_losses = 0
        self._phase = HarvestPhase.IDLE
        self._emergency_mode = self._config.emergency_mode

    # Read-only views
    @property
    def address(self) -> str:
        return self._config.address

    @property
    def config(self) -> VaultConfig:
        return self._config

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def allocator(self) -> Allocator:
        return self._allocator

    @property
    def total_assets(self) -> int:
        return self._total_assets

    @property
    def total_shares(self) -> int:
        return self._shares.total_shares

    @property
    def idle_assets(self) -> int:
        return self._idle_assets

    @property
    def pending_fees(self) -> int:
        return self._pending_fees

    @property
    def cumulative_fees(self) -> int:
        return self._cumulative_fees

    @property
    def cumulative_losses(self) -> int:
        return self._cumulative_losses

    @property
    def harvest_phase(self) -> HarvestPhase:
        return self._phase

    @property
    def emergency_mode(self) -> bool:
        return self._emergency_mode

    @property
    def share_price(self) -> Decimal:
        return share_price(self._total_assets, self._shares.total_shares)

    def balance_of(self, holder: str) -> int:
        """Shares held by ``holder``."""
        return self._shares.balance_of(holder)

    def asset_balance_of(self, holder: str) -> int:
        """Asset value of ``holder``'s shares at the current NAV."""
        return self.convert_to_assets(self._shares.balance_of(holder))

    def convert_to_shares(self, assets: int) -> int:
        """Shares a deposit of ``assets`` would mint now (0 if deposits are blocked)."""
        if assets <= 0 or (self.total_shares > 0 and self._total_assets <= 0):
            return 0
        return shares_for_deposit(assets, self._total_assets, self.total_shares)

    def convert_to_assets(self, shares: int) -> int:
        """Assets ``shares`` redeem for now."""
        if shares <= 0:
            return 0
        return assets_for_shares(shares, self._total_assets, self.total_shares)

    def preview_deposit(self, amount: int) -> int:
        return self.convert_to_shares(amount)

    def preview_withdraw(self, shares: int) -> int:
        return self.convert_to_assets(shares)

    def position_of(self, holder: str) -> HolderPosition:
        shares = self._shares.balance_of(holder)
        return HolderPosition(holder=holder, shares=shares, asset_value=self.convert_to_assets(shares))

    def snapshot(self) -> VaultSnapshot:
        """Read-only view of vault and pool ledger state."""
        return VaultSnapshot(
            address=self.address,
            total_assets=self._total_assets,
            total_shares=self.total_shares,
            share_price=self.share_price,
            idle_assets=self._idle_assets,
            total_allocated=self._allocator.total_allocated,
            pending_fees=self._pending_fees,
            cumulative_fees=self._cumulative_fees,
            cumulative_losses=self._cumulative_losses,
            harvest_phase=self._phase.value,
            emergency_mode=self._emergency_mode,
            holders=self._shares.holder_count,
            pools=self._allocator.pools_snapshot(),
        )

    async def check_conservation(self) -> ConservationReport:
        """Compare the vault ledger with the allocator ledger and custody balance."""
        allocated = self._allocator.total_allocated
        custody = await self._asset.balance_of(self.address)
        discrepancies = []
        if self._total_assets != allocated + self._idle_assets:
            discrepancies.append(
                f"total_assets {self._total_assets} != allocated {allocated} + idle {self._idle_assets}"
            )
        if custody != self._idle_assets + self._pending_fees:
            discrepancies.append(
                f"custody {custody} != idle {self._idle_assets} + pending fees {self._pending_fees}"
            )
        return ConservationReport(
            total_assets=self._total_assets,
            total_allocated=allocated,
            idle_assets=self._idle_assets,
            pending_fees=self._pending_fees,
            custody_balance=custody,
            discrepancies=discrepancies,
        )

    # Depositor operations
    async def deposit(self, user: str, amount: int) -> int:
        """Pull ``amount`` from ``user``, mint shares at the current NAV and deploy.

        Returns:
            Shares minted

        Raises:
            InvalidAmountError: amount below minimum, or would mint zero shares
            DepositCapExceededError: total assets would exceed max_total_assets
            VaultInsolventError: shares outstanding with zero assets
            TransferFailedError: the asset pull failed
            InsufficientLiquidityError: every pool with headroom reverted (deposit refunded)
            EmergencyModeError: emergency mode is set
            ReentrancyError: another vault operation is in progress
        """
        self._validate_amount(amount)
        if amount < self._config.min_deposit:
            raise InvalidAmountError(
                f"Deposit {amount} below minimum {self._config.min_deposit}", amount=amount
            )

        async with self._guard.enter("deposit"):
            if self._emergency_mode:
                raise EmergencyModeError("Deposits are disabled in emergency mode", emergency_mode=True)
            cap = self._config.max_total_assets
            if cap is not None and self._total_assets + amount > cap:
                raise DepositCapExceededError(
                    f"Deposit of {amount} exceeds cap {cap}", cap=cap, attempted=self._total_assets + amount
                )

            shares = shares_for_deposit(amount, self._total_assets, self.total_shares)
            if shares == 0:
                raise InvalidAmountError(f"Deposit of {amount} would mint zero shares", amount=amount)

            if not await self._asset.transfer_from(user, self.address, amount):
                raise TransferFailedError(
                    f"Could not pull {amount} from {user}", sender=user, recipient=self.address, amount=amount
                )

            self._shares.mint(user, shares)
            self._total_assets += amount
            self._idle_assets += amount

            try:
                result = await self._allocator.deploy(self.address, amount)
            except YieldSyncError:
                await self._revert_deposit(user, amount, shares)
                raise
            self._idle_assets -= result.placed

            self._events.emit(Deposited(user=user, amount=amount, shares=shares))
            logger.info(f"Deposit: {user} {amount} -> {shares} shares ({result.placed} deployed)")
            return shares

    async def withdraw(self, user: str, shares: int) -> int:
        """Burn ``shares`` and pay out their value at the current NAV.

        Idle assets are used first; the allocator sources the remainder.
        Nothing is burned or paid unless the full amount can be paid.

        Returns:
            Assets paid to ``user``

        Raises:
            InvalidAmountError: non-positive shares, or shares worth zero assets
            InsufficientSharesError: user holds fewer shares
            InsufficientLiquidityError: pools cannot source the amount
            TransferFailedError: the payout transfer failed
            ReentrancyError: another vault operation is in progress
        """
        self._validate_amount(shares)

        async with self._guard.enter("withdraw"):
            amount = await self._redeem(user, shares)
            self._events.emit(Withdrawn(user=user, amount=amount, shares=shares))
            logger.info(f"Withdraw: {user} {shares} shares -> {amount}")
            return amount

    async def emergency_withdraw(self, user: str, shares: int) -> int:
        """Exit path while emergency mode is set.

        Same burn-and-source rules as withdraw: nothing is burned or paid
        unless the full amount is paid. No harvest runs first, so the payout
        is at the last settled NAV.

        Raises:
            EmergencyModeError: emergency mode is not set
        """
        self._validate_amount(shares)

        async with self._guard.enter("emergency_withdraw"):
            if not self._emergency_mode:
                raise EmergencyModeError("Emergency withdraw requires emergency mode", emergency_mode=False)
            amount = await self._redeem(user, shares)
            self._events.emit(EmergencyWithdrawn(user=user, amount=amount, shares=shares))
            logger.warning(f"Emergency withdraw: {user} {shares} shares -> {amount}")
            return amount

    async def transfer_shares(self, sender: str, recipient: str, shares: int) -> None:
        """Move shares between holders. NAV is unaffected."""
        self._validate_amount(shares)
        async with self._guard.enter("transfer_shares"):
            self._shares.transfer(sender, recipient, shares)
            self._events.emit(SharesTransferred(sender=sender, recipient=recipient, shares=shares))

    async def convert_to_governance(self, holder: str, shares: int) -> None:
        """Hand shares to the governance bridge in exchange for voting credit.

        The shares move to the bridge's address; if the bridge rejects the
        credit the transfer is undone.
        """
        self._validate_amount(shares)
        bridge_address = self._config.governance_bridge
        if self._governance is None or bridge_address is None:
            raise YieldSyncError("No governance bridge configured")

        async with self._guard.enter("convert_to_governance"):
            self._shares.transfer(holder, bridge_address, shares)
            try:
                await self._governance.credit(holder, shares)
            except Exception:
                self._shares.transfer(bridge_address, holder, shares)
                raise
            self._events.emit(SharesConverted(holder=holder, shares=shares))
            logger.info(f"Converted {shares} shares of {holder} to governance credit")

    # Keeper operations
    async def harvest(self, caller: str) -> HarvestResult:
        """Collect pool yield, take the fee and settle the rest into NAV.

        Realized losses reduce total_assets by exactly the lost principal and
        are emitted as LossRealized, separately from YieldHarvested.
        """
        self._gate.require(HARVEST, caller)
        async with self._guard.enter("harvest"):
            return await self._harvest_locked()

    async def rebalance(self, caller: str) -> RebalanceReport:
        """Rebalance pool allocations; principal left unplaced becomes idle."""
        self._gate.require(REBALANCE, caller)
        async with self._guard.enter("rebalance"):
            if self._emergency_mode:
                raise EmergencyModeError("Rebalance is disabled in emergency mode", emergency_mode=True)
            report = await self._allocator.rebalance(self.address)
            self._idle_assets += report.unplaced
            self._events.emit(
                Rebalanced(moved=report.moved, transfers=len(report.transfers), completed=report.completed)
            )
            if not report.completed:
                logger.warning(f"Rebalance stopped at {report.failed_pool}: {report.reason}")
            return report

    async def collect_fees(self, caller: str) -> int:
        """Retry transfer of fees parked by an earlier failed harvest transfer.

        Returns:
            Amount transferred (0 if nothing is pending)
        """
        self._gate.require(COLLECT_FEES, caller)
        async with self._guard.enter("collect_fees"):
            amount = self._pending_fees
            if amount == 0:
                return 0
            if not await self._try_transfer(self._config.fee_collector, amount):
                raise TransferFailedError(
                    f"Could not pay {amount} fees to {self._config.fee_collector}",
                    sender=self.address,
                    recipient=self._config.fee_collector,
                    amount=amount,
                )
            self._pending_fees = 0
            self._cumulative_fees += amount
            self._events.emit(FeeCollected(collector=self._config.fee_collector, amount=amount))
            return amount

    async def set_emergency_mode(self, caller: str, enabled: bool) -> None:
        """Enter or leave emergency mode.

        While set: deposits and rebalance raise EmergencyModeError, harvest
        settles yield without redeploying idle assets, and emergency_withdraw
        is open. Withdraw keeps working.
        """
        self._gate.require(EMERGENCY, caller)
        async with self._guard.enter("set_emergency_mode"):
            if self._emergency_mode == enabled:
                return
            self._emergency_mode = enabled
            self._events.emit(EmergencyModeChanged(enabled=enabled, caller=caller))
            logger.warning(f"Emergency mode {'enabled' if enabled else 'disabled'} by {caller}")

    async def add_pool(self, caller: str, pool_id: str, adapter: PoolAdapter, reported_apy_bps: int) -> None:
        """Register a pool with the allocator. New deposits may be placed there."""
        async with self._guard.enter("add_pool"):
            record = self._allocator.add_pool(caller, pool_id, adapter, reported_apy_bps)
            self._events.emit(PoolAdded(pool_id=pool_id, apy_bps=record.reported_apy_bps))

    async def remove_pool(self, caller: str, pool_id: str) -> int:
        """Harvest, then retire a pool and take its principal into custody.

        Returns:
            Principal returned to custody
        """
        self._allocator.require_admin(caller)
        async with self._guard.enter("remove_pool"):
            await self._harvest_locked()
            returned = 0
            try:
                returned = await self._allocator.remove_pool(caller, pool_id)
            except InsufficientLiquidityError as e:
                self._idle_assets += e.stranded
                raise
            self._idle_assets += returned
            self._events.emit(PoolRemoved(pool_id=pool_id, withdrawn=returned))
            return returned

    # Internals
    async def _harvest_locked(self) -> HarvestResult:
        """Harvest cycle body. Caller must hold the guard."""
        price_before = self.share_price
        self._phase = HarvestPhase.COLLECTING
        try:
            report = await self._allocator.harvest_all(self.address)

            self._phase = HarvestPhase.FEE_COMPUTED
            quote = self._fees.compute_fee(report.gross_yield, report.signal)
            fee_paid = 0
            if quote.fee > 0 and await self._try_transfer(self._config.fee_collector, quote.fee):
                fee_paid = quote.fee
            fee_pending = quote.fee - fee_paid

            # Commit
            self._total_assets += quote.net_yield - report.total_loss
            self._idle_assets += quote.net_yield
            self._pending_fees += fee_pending
            self._cumulative_fees += fee_paid
            self._cumulative_losses += report.total_loss
            self._phase = HarvestPhase.SETTLED

            for pool_id, loss in report.losses.items():
                self._events.emit(LossRealized(pool_id=pool_id, amount=loss))
            if fee_paid:
                self._events.emit(FeeCollected(collector=self._config.fee_collector, amount=fee_paid))
            self._events.emit(YieldHarvested(total_yield=report.gross_yield, fee=quote.fee))
            if fee_pending:
                logger.warning(f"Fee transfer of {fee_pending} failed; parked as pending")
            logger.info(
                f"Harvest settled: gross {report.gross_yield}, fee {quote.fee} "
                f"({quote.rate_bps} bps), loss {report.total_loss}"
            )

            compounded = 0
            if self._config.auto_compound and not self._emergency_mode and self._idle_assets > 0:
                try:
                    result = await self._allocator.deploy(self.address, self._idle_assets)
                except InsufficientLiquidityError as e:
                    # Settlement stands; idle waits for the next harvest
                    logger.warning(f"Compounding skipped, no pool accepted idle assets: {e}")
                else:
                    compounded = result.placed
                    self._idle_assets -= compounded

            return HarvestResult(
                report=report,
                quote=quote,
                fee_paid=fee_paid,
                fee_pending=fee_pending,
                compounded=compounded,
                price_before=price_before,
                price_after=self.share_price,
            )
        finally:
            self._phase = HarvestPhase.IDLE

    async def _redeem(self, user: str, shares: int) -> int:
        """Burn, source and pay. Caller must hold the guard."""
        held = self._shares.balance_of(user)
        if held < shares:
            raise InsufficientSharesError(
                f"{user!r} holds {held} shares, requested {shares}",
                holder=user,
                requested=shares,
                available=held,
            )
        amount = assets_for_shares(shares, self._total_assets, self.total_shares)
        if amount == 0:
            raise InvalidAmountError(f"{shares} shares redeem for zero assets", amount=shares)

        self._shares.burn(user, shares)
        self._total_assets -= amount

        try:
            shortfall = amount - self._idle_assets
            if shortfall > 0:
                result = await self._allocator.withdraw(self.address, shortfall)
                self._idle_assets += result.sourced
            if not await self._asset.transfer(self.address, user, amount):
                raise TransferFailedError(
                    f"Could not pay {amount} to {user}", sender=self.address, recipient=user, amount=amount
                )
        except Exception as e:
            if isinstance(e, InsufficientLiquidityError):
                self._idle_assets += e.stranded
            self._shares.mint(user, shares)
            self._total_assets += amount
            raise

        self._idle_assets -= amount
        return amount

    async def _try_transfer(self, recipient: str, amount: int) -> bool:
        try:
            return bool(await self._asset.transfer(self.address, recipient, amount))
        except Exception as e:
            logger.warning(f"Transfer of {amount} to {recipient} raised: {e}")
            return False

    async def _revert_deposit(self, user: str, amount: int, shares: int) -> None:
        self._shares.burn(user, shares)
        self._total_assets -= amount
        self._idle_assets -= amount
        if not await self._asset.transfer(self.address, user, amount):
            # Refund failed: the funds stay in custody as idle assets with no shares
            logger.error(f"Refund of {amount} to {user} failed after deploy error")
            self._idle_assets += amount
            self._total_assets += amount

    @staticmethod
    def _validate_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(f"Amount must be a positive integer, got {amount!r}", amount=None)
