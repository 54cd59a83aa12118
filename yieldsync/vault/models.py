"""Vault configuration and result types."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from pathlib import Path

import yaml

from yieldsync.access import ANYONE
from yieldsync.allocator.models import HarvestReport
from yieldsync.fees.models import FeeQuote


class HarvestPhase(str, Enum):
    """Harvest cycle state.

    IDLE -> COLLECTING -> FEE_COMPUTED -> SETTLED -> IDLE
    """

    IDLE = "idle"
    COLLECTING = "collecting"
    FEE_COMPUTED = "fee_computed"
    SETTLED = "settled"


@dataclass(frozen=True)
class VaultConfig:
    """Configuration for the vault.

    Role tuples hold caller identities; "*" grants the capability to anyone.
    """

    address: str = "vault"
    fee_collector: str = "fee-collector"
    governance_bridge: str | None = None

    # Deposit limits
    min_deposit: int = 1
    max_total_assets: int | None = None

    # Harvest behaviour
    auto_compound: bool = True

    # Initial emergency mode; while set, deposits, rebalance and compounding are blocked
    emergency_mode: bool = False

    # Capabilities
    harvest_roles: tuple[str, ...] = (ANYONE,)
    rebalance_roles: tuple[str, ...] = ("admin",)
    fee_collect_roles: tuple[str, ...] = (ANYONE,)
    emergency_roles: tuple[str, ...] = ("admin",)

    def __post_init__(self) -> None:
        if self.min_deposit < 1:
            raise ValueError("min_deposit must be at least 1")
        if self.max_total_assets is not None and self.max_total_assets <= 0:
            raise ValueError("max_total_assets must be positive when set")

    @classmethod
    def from_dict(cls, data: dict) -> "VaultConfig":
        """Build from the ``vault`` section of a config mapping."""
        max_total = data.get("max_total_assets")
        return cls(
            address=data.get("address", "vault"),
            fee_collector=data.get("fee_collector", "fee-collector"),
            governance_bridge=data.get("governance_bridge"),
            min_deposit=int(data.get("min_deposit", 1)),
            max_total_assets=int(max_total) if max_total is not None else None,
            auto_compound=bool(data.get("auto_compound", True)),
            emergency_mode=bool(data.get("emergency_mode", False)),
            harvest_roles=tuple(data.get("harvest_roles", [ANYONE])),
            rebalance_roles=tuple(data.get("rebalance_roles", ["admin"])),
            fee_collect_roles=tuple(data.get("fee_collect_roles", [ANYONE])),
            emergency_roles=tuple(data.get("emergency_roles", ["admin"])),
        )

    @classmethod
    def from_yaml(cls, path: str) -> "VaultConfig":
        """Load configuration from a YAML file."""
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(file_path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data.get("vault", {}))


@dataclass(frozen=True)
class HarvestResult:
    """Outcome of one harvest cycle.

    Attributes:
        report: Allocator staging results (per-pool yields and losses)
        quote: Fee split of the gross yield
        fee_paid: Fee transferred to the collector during this harvest
        fee_pending: Fee parked because the transfer failed
        compounded: Idle assets redeployed after settlement
        price_before / price_after: Share price around the commit
    """

    report: HarvestReport
    quote: FeeQuote
    fee_paid: int
    fee_pending: int
    compounded: int
    price_before: Decimal
    price_after: Decimal

    @property
    def gross_yield(self) -> int:
        return self.report.gross_yield

    @property
    def net_yield(self) -> int:
        return self.quote.net_yield

    @property
    def loss(self) -> int:
        return self.report.total_loss


@dataclass(frozen=True)
class ConservationReport:
    """Ledger conservation check.

    - total_assets == total_allocated + idle_assets
    - custody_balance == idle_assets + pending_fees
    """

    total_assets: int
    total_allocated: int
    idle_assets: int
    pending_fees: int
    custody_balance: int
    discrepancies: list[str] = field(default_factory=list)

    @property
    def holds(self) -> bool:
        return not self.discrepancies
