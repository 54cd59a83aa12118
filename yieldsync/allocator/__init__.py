"""Pool registry, APY-ranked placement and rebalancing."""

from yieldsync.allocator.allocator import Allocator
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

__all__ = [
    "Allocator",
    "AllocatorConfig",
    "DeployResult",
    "HarvestReport",
    "Placement",
    "PoolQuote",
    "PoolRecord",
    "PoolStatus",
    "RebalanceReport",
    "RebalanceTransfer",
    "WithdrawResult",
]
