import pytest
import pytest_asyncio
from yieldsync.allocator import Allocator
from yieldsync.config import YieldSyncConfig
from yieldsync.factory import build_vault
from yieldsync.simulation import InMemoryAsset, SimulatedPool, StaticYieldOracle
from yieldsync.vault import VaultConfig

VAULT = "vault"
ADMIN = "admin"

POOL_APYS = {"A": 1500, "B": 1200, "C": 800}


class SilentPool(SimulatedPool):
    """Adapter that moves funds but returns None instead of the amount moved."""

    async def deposit(self, amount):
        await super().deposit(amount)
        return None

    async def withdraw(self, amount):
        await super().withdraw(amount)
        return None


@pytest.fixture
def asset():
    return InMemoryAsset()


@pytest.fixture
def oracle():
    return StaticYieldOracle(dict(POOL_APYS))


@pytest.fixture
def pools(asset):
    """Three fully liquid pools custodied by the vault: A 15%, B 12%, C 8%."""
    return {pool_id: SimulatedPool(pool_id, asset, VAULT, apy_bps=apy) for pool_id, apy in POOL_APYS.items()}


@pytest.fixture
def fund(asset):
    """Mint to a user and approve the vault to pull it."""

    def _fund(user: str, amount: int) -> None:
        asset.mint(user, amount)
        asset.approve(user, VAULT, asset.allowance(user, VAULT) + amount)

    return _fund


@pytest_asyncio.fixture
async def vault(asset, oracle, pools):
    """Vault with pools A, B and C registered and a 10% flat fee."""
    vault = build_vault(asset, oracle)
    for pool_id, pool in pools.items():
        await vault.add_pool(ADMIN, pool_id, pool, POOL_APYS[pool_id])
    return vault


@pytest.fixture
def allocator(oracle, pools):
    """Standalone allocator bound to the vault address, pools A, B and C registered."""
    allocator = Allocator(oracle)
    allocator.bind_vault(ADMIN, VAULT)
    for pool_id, pool in pools.items():
        allocator.add_pool(ADMIN, pool_id, pool, POOL_APYS[pool_id])
    return allocator


@pytest.fixture
def make_vault(asset, oracle, pools):
    """Build a vault with custom vault config; pools A, B and C registered."""

    async def _make(governance=None, **vault_config):
        config = YieldSyncConfig(vault=VaultConfig(**vault_config))
        vault = build_vault(asset, oracle, config, governance=governance)
        for pool_id, pool in pools.items():
            await vault.add_pool(ADMIN, pool_id, pool, POOL_APYS[pool_id])
        return vault

    return _make


@pytest.fixture
def silent_pool(asset):
    """Factory for pools whose deposit/withdraw return None."""

    def _make(pool_id: str, **kwargs) -> SilentPool:
        return SilentPool(pool_id, asset, VAULT, **kwargs)

    return _make
