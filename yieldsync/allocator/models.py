"""Allocator data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path

import yaml

from yieldsync.fees.models import MarketSignal
from yieldsync.interfaces import PoolAdapter


class PoolStatus(str, Enum):
    """Pool lifecycle status.

    ACTIVE: receives deposits, serves withdrawals, harvested
    PAUSED: no new deposits; still serves withdrawals and is harvested
    REMOVED: terminal, holds no allocated principal
    """

    ACTIVE = "active"
    PAUSED = "paused"
    REMOVED = "removed"


@dataclass
class PoolRecord:
    """Registry entry for one pool.

    ``allocated`` is principal the allocator has placed in the pool and not
    yet withdrawn or written off. Yield is never added to it.
    """

    pool_id: str
    adapter: PoolAdapter
    reported_apy_bps: int
    allocated: int = 0
    status: PoolStatus = PoolStatus.ACTIVE
    added_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    @property
    def holds_principal(self) -> bool:
        """Pool is still part of the allocation ledger."""
        return self.status != PoolStatus.REMOVED


@dataclass(frozen=True)
class PoolQuote:
    """Sanitized oracle view of one pool for a single operation."""

    pool_id: str
    apy_bps: int
    capacity: int = 0


@dataclass(frozen=True)
class Placement:
    """Principal moved into (deploy) or out of (withdraw) one pool."""

    pool_id: str
    amount: int


@dataclass(frozen=True)
class DeployResult:
    """Outcome of Allocator.deploy."""

    requested: int
    placements: tuple[Placement, ...] = ()
    skipped: tuple[str, ...] = ()

    @property
    def placed(self) -> int:
        return sum(p.amount for p in self.placements)

    @property
    def unplaced(self) -> int:
        """Principal no pool had headroom for; stays in vault custody."""
        return self.requested - self.placed


@dataclass(frozen=True)
class WithdrawResult:
    """Outcome of a fully satisfied Allocator.withdraw."""

    requested: int
    withdrawals: tuple[Placement, ...] = ()
    skipped: tuple[str, ...] = ()

    @property
    def sourced(self) -> int:
        """Total returned to custody, never more than ``requested``."""
        return sum(w.amount for w in self.withdrawals)


@dataclass(frozen=True)
class HarvestReport:
    """Staged and committed results of Allocator.harvest_all.

    Attributes:
        gross_yield: Yield withdrawn from pools into custody
        yields: Per-pool yield actually withdrawn
        losses: Per-pool principal written off (balance below allocation)
        skipped: Pools whose adapter failed during harvest
        signal: Market conditions for the fee policy
    """

    gross_yield: int
    yields: dict[str, int] = field(default_factory=dict)
    losses: dict[str, int] = field(default_factory=dict)
    skipped: tuple[str, ...] = ()
    signal: MarketSignal = field(default_factory=MarketSignal)

    @property
    def total_loss(self) -> int:
        return sum(self.losses.values())


@dataclass(frozen=True)
class RebalanceTransfer:
    """Principal moved from one pool to another during rebalance."""

    source: str
    destination: str
    amount: int


@dataclass(frozen=True)
class RebalanceReport:
    """Outcome of Allocator.rebalance.

    ``unplaced`` is principal withdrawn from a source pool that could not be
    deposited anywhere; it is in vault custody and must be booked as idle.
    """

    transfers: tuple[RebalanceTransfer, ...] = ()
    completed: bool = True
    failed_pool: str | None = None
    reason: str | None = None
    unplaced: int = 0
    target_weights: dict[str, Decimal] = field(default_factory=dict)

    @property
    def moved(self) -> int:
        return sum(t.amount for t in self.transfers)


@dataclass(frozen=True)
class AllocatorConfig:
    """Configuration for pool selection and rebalancing.

    Oracle APY outside [0, max_apy_bps] is rejected and the last accepted
    value is used instead.
    """

    admins: tuple[str, ...] = ("admin",)

    # Untrusted oracle bounds
    max_apy_bps: int = 100_000

    # Single-pool concentration cap as a share of total allocated principal.
    # 10_000 disables the cap.
    max_pool_allocation_bps: int = 10_000

    # Rebalance policy
    rebalance_threshold_bps: int = 100
    min_rebalance_interval_seconds: float = 0.0

    def __post_init__(self) -> None:
        if self.max_apy_bps <= 0:
            raise ValueError("max_apy_bps must be positive")
        if not 0 < self.max_pool_allocation_bps <= 10_000:
            raise ValueError("max_pool_allocation_bps must be in (0, 10000]")
        if self.rebalance_threshold_bps < 0:
            raise ValueError("rebalance_threshold_bps must be non-negative")

    @classmethod
    def from_dict(cls, data: dict) -> "AllocatorConfig":
        """Build from the ``allocator`` section of a config mapping."""
        return cls(
            admins=tuple(data.get("admins", ["admin"])),
            max_apy_bps=int(data.get("max_apy_bps", 100_000)),
            max_pool_allocation_bps=int(data.get("max_pool_allocation_bps", 10_000)),
            rebalance_threshold_bps=int(data.get("rebalance_threshold_bps", 100)),
            min_rebalance_interval_seconds=float(data.get("min_rebalance_interval_seconds", 0)),
        )

    @classmethod
    def from_yaml(cls, path: str) -> "AllocatorConfig":
        """Load configuration from a YAML file."""
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(file_path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data.get("allocator", {}))
