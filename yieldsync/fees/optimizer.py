"""Fee optimizer: harvested yield -> protocol fee."""

import logging

from yieldsync.fees.models import BPS_DENOMINATOR, FeeConfig, FeeQuote, MarketSignal
from yieldsync.fees.policies import FeePolicy, build_policy

logger = logging.getLogger(__name__)


class FeeOptimizer:
    """Computes the fee retained from harvested yield.

    Guarantees for every input:
    - min_rate_bps <= rate_bps <= max_rate_bps
    - 0 <= fee <= gross_yield
    - Same inputs give the same quote (no state is read or written)
    """

    def __init__(self, config: FeeConfig | None = None, policy: FeePolicy | None = None):
        self._config = config or FeeConfig()
        self._policy = policy or build_policy(self._config.policy)

    @property
    def config(self) -> FeeConfig:
        return self._config

    def current_rate(self, signal: MarketSignal) -> int:
        """Fee rate (bps) that would apply under the given conditions."""
        raw = self._policy.rate_bps(signal, self._config)
        rate = max(self._config.min_rate_bps, min(int(raw), self._config.max_rate_bps))
        if rate != raw:
            logger.debug(f"Fee policy rate {raw} clamped to {rate} bps")
        return rate

    def compute_fee(self, gross_yield: int, signal: MarketSignal) -> FeeQuote:
        """Split gross yield into fee and net yield.

        Fee is rounded down, so rounding favors depositors. Non-positive
        yield produces a zero fee.
        """
        rate = self.current_rate(signal)
        if gross_yield <= 0:
            return FeeQuote(gross_yield=max(gross_yield, 0), rate_bps=rate, fee=0)

        fee = gross_yield * rate // BPS_DENOMINATOR
        return FeeQuote(gross_yield=gross_yield, rate_bps=rate, fee=fee)

    def preview_fee(self, amount: int, signal: MarketSignal | None = None) -> int:
        """Fee that would be taken from ``amount`` of yield."""
        return self.compute_fee(amount, signal or MarketSignal()).fee
