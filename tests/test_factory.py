import pytest
from yieldsync.allocator import AllocatorConfig
from yieldsync.config import YieldSyncConfig
from yieldsync.errors import RebalanceNotAllowedError, UnauthorizedCallerError
from yieldsync.factory import build_vault
from yieldsync.fees import FeeConfig
from yieldsync.vault import VaultConfig


class TestBuildVault:
    def test_binds_allocator_to_vault(self, asset, oracle):
        vault = build_vault(asset, oracle)

        assert vault.allocator.vault == vault.address == "vault"

    def test_uses_configured_identities(self, asset, oracle):
        config = YieldSyncConfig(
            vault=VaultConfig(address="yield-vault"),
            allocator=AllocatorConfig(admins=("ops",)),
            fees=FeeConfig(policy="liquidity_risk"),
        )

        vault = build_vault(asset, oracle, config)

        assert vault.allocator.vault == "yield-vault"
        vault.allocator.require_admin("ops")
        with pytest.raises(UnauthorizedCallerError):
            vault.allocator.require_admin("admin")

    @pytest.mark.asyncio
    async def test_clock_reaches_allocator(self, asset, oracle):
        now = [100.0]
        config = YieldSyncConfig(allocator=AllocatorConfig(min_rebalance_interval_seconds=60))
        vault = build_vault(asset, oracle, config, clock=lambda: now[0])

        await vault.rebalance("admin")
        now[0] += 10
        with pytest.raises(RebalanceNotAllowedError) as exc_info:
            await vault.rebalance("admin")

        assert exc_info.value.retry_after_seconds == pytest.approx(50)
        now[0] += 50
        report = await vault.rebalance("admin")
        assert report.completed is True
