"""Simulated yield pool."""

from yieldsync.simulation.asset import InMemoryAsset

DAYS_PER_YEAR = 365


class PoolRejectedError(Exception):
    """Simulated adapter revert."""
    pass


class SimulatedPool:
    """
    Pool adapter backed by an InMemoryAsset account.

    Features:
    - Deposits move funds from the custodian into the pool account
    - Withdrawals are limited by ``liquidity`` (None = fully liquid)
    - ``max_deposit`` caps what a single deposit call accepts
    - accrue()/accrue_days() mint yield, lose() burns principal
    - ``failing`` makes every adapter call raise
    """

    def __init__(
        self,
        pool_id: str,
        asset: InMemoryAsset,
        custodian: str,
        apy_bps: int = 0,
        liquidity: int | None = None,
        max_deposit: int | None = None,
    ):
        self.pool_id = pool_id
        self.account = f"pool:{pool_id}"
        self.apy_bps = apy_bps
        self.liquidity = liquidity
        self.max_deposit = max_deposit
        self.failing = False
        self._asset = asset
        self._custodian = custodian
        self.deposit_calls: list[int] = []
        self.withdraw_calls: list[int] = []

    async def deposit(self, amount: int) -> int:
        self._check()
        self.deposit_calls.append(amount)
        accepted = amount if self.max_deposit is None else min(amount, self.max_deposit)
        if not await self._asset.transfer(self._custodian, self.account, accepted):
            raise PoolRejectedError(f"{self.pool_id}: custodian cannot fund {accepted}")
        return accepted

    async def withdraw(self, amount: int) -> int:
        self._check()
        self.withdraw_calls.append(amount)
        available = await self._asset.balance_of(self.account)
        if self.liquidity is not None:
            available = min(available, self.liquidity)
        actual = min(amount, available)
        if actual > 0:
            await self._asset.transfer(self.account, self._custodian, actual)
            if self.liquidity is not None:
                self.liquidity -= actual
        return actual

    async def balance(self) -> int:
        self._check()
        return await self._asset.balance_of(self.account)

    def accrue(self, amount: int) -> None:
        """Add yield to the pool."""
        self._asset.mint(self.account, amount)

    async def accrue_days(self, days: int) -> int:
        """Accrue simple interest at ``apy_bps`` for ``days``; returns the yield."""
        balance = await self._asset.balance_of(self.account)
        earned = balance * self.apy_bps * days // (10_000 * DAYS_PER_YEAR)
        self.accrue(earned)
        return earned

    def lose(self, amount: int) -> None:
        """Destroy pool funds (default, exploit, slashing)."""
        self._asset.burn(self.account, amount)

    def _check(self) -> None:
        if self.failing:
            raise PoolRejectedError(f"{self.pool_id} is unavailable")
