"""End-to-end: two depositors, one harvest, full exit."""

from decimal import Decimal

import pytest
from yieldsync.events import EventType


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_deposit_harvest_withdraw(self, vault, fund, pools, asset):
        fund("alice", 1_000)
        fund("bob", 500)

        assert await vault.deposit("alice", 1_000) == 1_000
        assert await vault.deposit("bob", 500) == 500
        assert vault.total_assets == 1_500

        pools["A"].accrue(150)
        result = await vault.harvest("keeper")

        assert result.quote.fee == 15
        assert vault.total_assets == 1_635
        assert vault.share_price == Decimal(1_635) / Decimal(1_500)
        assert result.price_before == Decimal("1")
        assert result.price_after == vault.share_price

        # 1000 * 1635 // 1500 and 500 * 1635 // 1500
        assert await vault.withdraw("alice", 1_000) == 1_090
        assert await vault.withdraw("bob", 500) == 545

        assert await asset.balance_of("alice") == 1_090
        assert await asset.balance_of("bob") == 545
        assert await asset.balance_of("fee-collector") == 15
        assert vault.total_shares == 0
        assert vault.total_assets == 0
        assert (await vault.check_conservation()).holds

        kinds = [e.event_type for e in vault.events.events]
        assert kinds.count(EventType.DEPOSITED) == 2
        assert kinds.count(EventType.WITHDRAWN) == 2
        assert kinds.count(EventType.YIELD_HARVESTED) == 1

    @pytest.mark.asyncio
    async def test_spread_across_pools(self, vault, oracle, fund, pools):
        """Capacity limits spread principal; withdrawals drain the lowest APY first."""
        oracle.set_capacity("A", 500)
        oracle.set_capacity("B", 300)
        fund("alice", 1_000)
        await vault.deposit("alice", 1_000)

        assert [vault.allocator.allocation_of(p) for p in ("A", "B", "C")] == [500, 300, 200]

        pools["A"].accrue(50)
        pools["B"].accrue(24)
        pools["C"].accrue(8)
        result = await vault.harvest("keeper")

        assert result.gross_yield == 82
        assert result.quote.fee == 8
        assert vault.total_assets == 1_074

        await vault.withdraw("alice", 300)

        # 300 * 1074 // 1000 = 322 sourced from C first (200 + 74 compounded) then B
        assert vault.allocator.allocation_of("C") == 0
        assert vault.allocator.allocation_of("A") == 500
        assert (await vault.check_conservation()).holds
