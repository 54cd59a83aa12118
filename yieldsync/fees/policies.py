"""Pluggable fee-rate policies.

A policy maps a MarketSignal to a raw rate in basis points. It does not
need to respect the configured bounds; FeeOptimizer clamps the result.
Policies must be pure: identical inputs give identical outputs.
"""

from typing import Protocol

from yieldsync.fees.models import BPS_DENOMINATOR, FeeConfig, MarketSignal


class FeePolicy(Protocol):
    """Maps market conditions to a fee rate (bps)."""

    def rate_bps(self, signal: MarketSignal, config: FeeConfig) -> int: ...


class FlatFeePolicy:
    """Always the configured base rate."""

    def rate_bps(self, signal: MarketSignal, config: FeeConfig) -> int:
        return config.base_rate_bps


class YieldScaledFeePolicy:
    """Scale the rate with the aggregate APY.

    Below apy_low_bps the minimum rate applies, above apy_high_bps the
    maximum; in between the rate is interpolated linearly (rounded down).
    """

    def rate_bps(self, signal: MarketSignal, config: FeeConfig) -> int:
        apy = signal.aggregate_apy_bps
        if apy <= config.apy_low_bps:
            return config.min_rate_bps
        if apy >= config.apy_high_bps:
            return config.max_rate_bps

        span = config.max_rate_bps - config.min_rate_bps
        position = apy - config.apy_low_bps
        band = config.apy_high_bps - config.apy_low_bps
        return config.min_rate_bps + span * position // band


class LiquidityRiskFeePolicy:
    """Discount the base rate as pool utilization approaches capacity.

    At zero utilization the base rate applies; at full utilization the
    minimum rate applies. Utilization above 100% is treated as 100%.
    """

    def rate_bps(self, signal: MarketSignal, config: FeeConfig) -> int:
        utilization = max(0, min(signal.utilization_bps, BPS_DENOMINATOR))
        discount = (config.base_rate_bps - config.min_rate_bps) * utilization // BPS_DENOMINATOR
        return config.base_rate_bps - discount


_POLICIES: dict[str, type] = {
    "flat": FlatFeePolicy,
    "yield_scaled": YieldScaledFeePolicy,
    "liquidity_risk": LiquidityRiskFeePolicy,
}


def build_policy(name: str) -> FeePolicy:
    """Instantiate a policy by its configuration name.

    Raises:
        ValueError: Unknown policy name
    """
    try:
        return _POLICIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown fee policy {name!r}, expected one of {sorted(_POLICIES)}"
        ) from None
