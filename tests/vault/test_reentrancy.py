import pytest
import pytest_asyncio
from yieldsync.errors import InsufficientLiquidityError, ReentrancyError
from yieldsync.simulation import SimulatedPool
from yieldsync.vault import HarvestPhase


class ReentrantPool(SimulatedPool):
    """Pool adapter that calls back into the vault from inside its own calls."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.on_deposit = None
        self.on_balance = None
        self.errors = []
        self.observed_phases = []

    async def deposit(self, amount):
        await self._reenter(self.on_deposit)
        return await super().deposit(amount)

    async def balance(self):
        await self._reenter(self.on_balance)
        return await super().balance()

    async def _reenter(self, callback):
        if callback is None:
            return
        try:
            await callback()
        except ReentrancyError as e:
            self.errors.append(e)


@pytest_asyncio.fixture
async def attacker(vault, oracle, asset, fund):
    """Highest-APY pool D that re-enters; alice holds 1000 shares placed in D."""
    oracle.set_apy("D", 2_000)
    pool = ReentrantPool("D", asset, "vault", apy_bps=2_000)
    await vault.add_pool("admin", "D", pool, 2_000)
    fund("alice", 1_000)
    await vault.deposit("alice", 1_000)
    return pool


class TestReentrancy:
    @pytest.mark.asyncio
    async def test_withdraw_during_harvest_rejected(self, vault, attacker):
        """A pool cannot withdraw while the harvest is suspended on it."""

        async def withdraw():
            attacker.observed_phases.append(vault.harvest_phase)
            await vault.withdraw("alice", 100)

        attacker.on_balance = withdraw
        attacker.accrue(100)

        await vault.harvest("keeper")

        # Each balance read re-enters, compounding included
        assert {e.active_operation for e in attacker.errors} == {"harvest"}
        assert attacker.observed_phases[0] == HarvestPhase.COLLECTING
        assert HarvestPhase.IDLE not in attacker.observed_phases
        assert vault.balance_of("alice") == 1_000
        assert vault.total_assets == 1_090

    @pytest.mark.asyncio
    async def test_harvest_during_deposit_rejected(self, vault, attacker, fund):
        attacker.on_deposit = lambda: vault.harvest("keeper")
        fund("bob", 500)

        await vault.deposit("bob", 500)

        assert [e.active_operation for e in attacker.errors] == ["deposit"]
        assert vault.balance_of("bob") == 500

    @pytest.mark.asyncio
    async def test_deposit_during_withdraw_rejected(self, vault, attacker, fund):
        fund("bob", 500)
        attacker.on_balance = lambda: vault.deposit("bob", 500)

        await vault.withdraw("alice", 400)

        assert attacker.errors
        assert {e.active_operation for e in attacker.errors} == {"withdraw"}
        assert vault.balance_of("bob") == 0

    @pytest.mark.asyncio
    async def test_guard_released_after_operation(self, vault, attacker):
        attacker.on_balance = lambda: vault.withdraw("alice", 100)
        await vault.harvest("keeper")
        attacker.on_balance = None

        paid = await vault.withdraw("alice", 100)

        assert paid == 100

    @pytest.mark.asyncio
    async def test_guard_released_after_failure(self, vault, attacker):
        attacker.failing = True

        with pytest.raises(InsufficientLiquidityError):
            await vault.withdraw("alice", 1_000)
        attacker.failing = False

        assert await vault.withdraw("alice", 1_000) == 1_000
