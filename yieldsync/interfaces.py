# yieldsync/interfaces.py
"""Collaborator interfaces the vault and allocator depend on.

Implementations:
- simulation.InMemoryAsset / SimulatedPool / StaticYieldOracle: in-memory
  collaborators for tests and scenario runs
- Production adapters wrap real pools and feeds behind the same methods
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class AssetToken(Protocol):
    """Fungible asset with explicit-sender transfers.

    All amounts are integers in the asset's smallest unit.
    """

    async def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        """Move pre-approved funds from sender to recipient."""
        ...

    async def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Move funds owned by sender (the calling component) to recipient."""
        ...

    async def balance_of(self, account: str) -> int:
        """Current balance of an account."""
        ...


@runtime_checkable
class PoolAdapter(Protocol):
    """Uniform interface exposed by each yield source."""

    async def deposit(self, amount: int) -> int:
        """
        Place amount into the pool.

        Returns:
            Amount the pool actually accepted, which may be less than offered

        Raises:
            Any exception if the pool rejects the deposit
        """
        ...

    async def withdraw(self, amount: int) -> int:
        """
        Withdraw up to amount from the pool.

        Returns:
            Amount actually returned, which may be less than requested
        """
        ...

    async def balance(self) -> int:
        """Current value of the position held in the pool, including accrual."""
        ...


@runtime_checkable
class YieldOracle(Protocol):
    """Per-pool rate and capacity feed. Freshness is the oracle's concern."""

    async def get_apy(self, pool_id: str) -> int:
        """Annualized yield in basis points."""
        ...

    async def get_capacity(self, pool_id: str) -> int:
        """Maximum principal the pool accepts from this allocator."""
        ...


@runtime_checkable
class GovernanceBridge(Protocol):
    """Receives vault shares in exchange for voting credit."""

    async def credit(self, holder: str, shares: int) -> None:
        """Record that holder converted shares into governance credit."""
        ...
