"""In-memory collaborators for tests and scenario runs.

Features:
- InMemoryAsset: balances, allowances, mint/burn, blockable recipients
- SimulatedPool: custody-moving pool with accrual, losses, liquidity limits
- StaticYieldOracle: settable APY/capacity with per-pool failure injection
- GovernanceCreditLedger: records shares converted into voting credit
"""

from yieldsync.simulation.asset import InMemoryAsset
from yieldsync.simulation.governance import GovernanceCreditLedger
from yieldsync.simulation.oracle import UNLIMITED_CAPACITY, OracleUnavailableError, StaticYieldOracle
from yieldsync.simulation.pool import PoolRejectedError, SimulatedPool

__all__ = [
    "InMemoryAsset",
    "SimulatedPool",
    "PoolRejectedError",
    "StaticYieldOracle",
    "OracleUnavailableError",
    "UNLIMITED_CAPACITY",
    "GovernanceCreditLedger",
]
