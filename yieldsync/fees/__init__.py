"""Harvest fee computation."""

from yieldsync.fees.models import BPS_DENOMINATOR, FeeConfig, FeeQuote, MarketSignal
from yieldsync.fees.optimizer import FeeOptimizer
from yieldsync.fees.policies import (
    FeePolicy,
    FlatFeePolicy,
    LiquidityRiskFeePolicy,
    YieldScaledFeePolicy,
    build_policy,
)

__all__ = [
    "BPS_DENOMINATOR",
    "FeeConfig",
    "FeeQuote",
    "MarketSignal",
    "FeeOptimizer",
    "FeePolicy",
    "FlatFeePolicy",
    "YieldScaledFeePolicy",
    "LiquidityRiskFeePolicy",
    "build_policy",
]
