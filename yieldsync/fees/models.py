"""Fee configuration and value types."""

from dataclasses import dataclass
from pathlib import Path

import yaml

BPS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class MarketSignal:
    """Oracle-derived inputs to the fee policy.

    Attributes:
        aggregate_apy_bps: Allocation-weighted APY across active pools
        utilization_bps: Allocated principal as a fraction of total pool capacity
        pool_count: Number of pools contributing to the aggregate
    """

    aggregate_apy_bps: int = 0
    utilization_bps: int = 0
    pool_count: int = 0


@dataclass(frozen=True)
class FeeQuote:
    """Result of a fee computation."""

    gross_yield: int
    rate_bps: int
    fee: int

    @property
    def net_yield(self) -> int:
        """Yield left for depositors after the fee."""
        return self.gross_yield - self.fee


@dataclass(frozen=True)
class FeeConfig:
    """Configuration for the fee optimizer.

    The policy output is always clamped to [min_rate_bps, max_rate_bps].
    """

    base_rate_bps: int = 1000
    min_rate_bps: int = 0
    max_rate_bps: int = 2000
    policy: str = "flat"

    # YieldScaledFeePolicy band
    apy_low_bps: int = 500
    apy_high_bps: int = 2000

    def __post_init__(self) -> None:
        if not 0 <= self.min_rate_bps <= self.max_rate_bps <= BPS_DENOMINATOR:
            raise ValueError(
                f"Fee bounds must satisfy 0 <= min <= max <= {BPS_DENOMINATOR}, "
                f"got min={self.min_rate_bps} max={self.max_rate_bps}"
            )
        if not self.min_rate_bps <= self.base_rate_bps <= self.max_rate_bps:
            raise ValueError(
                f"base_rate_bps={self.base_rate_bps} outside "
                f"[{self.min_rate_bps}, {self.max_rate_bps}]"
            )
        if self.apy_high_bps <= self.apy_low_bps:
            raise ValueError("apy_high_bps must be greater than apy_low_bps")

    @classmethod
    def from_dict(cls, data: dict) -> "FeeConfig":
        """Build from the ``fees`` section of a config mapping."""
        return cls(
            base_rate_bps=int(data.get("base_rate_bps", 1000)),
            min_rate_bps=int(data.get("min_rate_bps", 0)),
            max_rate_bps=int(data.get("max_rate_bps", 2000)),
            policy=data.get("policy", "flat"),
            apy_low_bps=int(data.get("apy_low_bps", 500)),
            apy_high_bps=int(data.get("apy_high_bps", 2000)),
        )

    @classmethod
    def from_yaml(cls, path: str) -> "FeeConfig":
        """Load configuration from a YAML file."""
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(file_path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data.get("fees", {}))
