"""Read-only snapshots for external observers."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class PoolSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    pool_id: str
    status: str
    reported_apy_bps: int
    allocated: int
    target_weight: Decimal | None = None


class VaultSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    total_assets: int
    total_shares: int
    share_price: Decimal
    idle_assets: int
    total_allocated: int
    pending_fees: int
    cumulative_fees: int
    cumulative_losses: int
    harvest_phase: str
    emergency_mode: bool = False
    holders: int
    pools: list[PoolSnapshot] = []


class HolderPosition(BaseModel):
    model_config = ConfigDict(frozen=True)

    holder: str
    shares: int
    asset_value: int
