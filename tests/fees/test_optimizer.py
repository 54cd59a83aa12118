import pytest
from yieldsync.fees import FeeConfig, FeeOptimizer, MarketSignal


class ConstantPolicy:
    """Policy returning a fixed raw rate, bounds ignored."""

    def __init__(self, rate):
        self.rate = rate

    def rate_bps(self, signal, config):
        return self.rate


class TestComputeFee:
    def test_default_flat_ten_percent(self):
        """150 gross at the default 10% yields a 15 fee."""
        quote = FeeOptimizer().compute_fee(150, MarketSignal())

        assert quote.rate_bps == 1000
        assert quote.fee == 15
        assert quote.net_yield == 135

    def test_fee_rounds_down(self):
        quote = FeeOptimizer().compute_fee(19, MarketSignal())
        assert quote.fee == 1
        assert quote.net_yield == 18

    def test_zero_yield_has_zero_fee(self):
        quote = FeeOptimizer().compute_fee(0, MarketSignal())
        assert quote.fee == 0
        assert quote.net_yield == 0

    def test_negative_yield_has_zero_fee(self):
        quote = FeeOptimizer().compute_fee(-50, MarketSignal())
        assert quote.fee == 0
        assert quote.gross_yield == 0

    @pytest.mark.parametrize("gross", [1, 7, 99, 1_000, 123_456_789])
    @pytest.mark.parametrize("utilization", [0, 3_333, 10_000])
    def test_fee_never_exceeds_yield(self, gross, utilization):
        optimizer = FeeOptimizer(FeeConfig(policy="liquidity_risk", max_rate_bps=10_000))
        quote = optimizer.compute_fee(gross, MarketSignal(utilization_bps=utilization))
        assert 0 <= quote.fee <= gross

    def test_deterministic(self):
        """Same inputs produce the same quote."""
        optimizer = FeeOptimizer(FeeConfig(policy="yield_scaled"))
        signal = MarketSignal(aggregate_apy_bps=1337, utilization_bps=4200, pool_count=3)

        quotes = {optimizer.compute_fee(98_765, signal) for _ in range(5)}
        assert len(quotes) == 1


class TestRateClamping:
    def test_policy_above_maximum_is_clamped(self):
        optimizer = FeeOptimizer(FeeConfig(max_rate_bps=2000), policy=ConstantPolicy(9_000))
        assert optimizer.current_rate(MarketSignal()) == 2000

    def test_policy_below_minimum_is_clamped(self):
        optimizer = FeeOptimizer(FeeConfig(min_rate_bps=200), policy=ConstantPolicy(-40))
        assert optimizer.current_rate(MarketSignal()) == 200

    def test_clamped_rate_applies_to_fee(self):
        optimizer = FeeOptimizer(FeeConfig(max_rate_bps=2000), policy=ConstantPolicy(50_000))
        assert optimizer.compute_fee(1_000, MarketSignal()).fee == 200


class TestPreviewFee:
    def test_preview_without_signal(self):
        assert FeeOptimizer().preview_fee(1_000) == 100

    def test_preview_matches_compute(self):
        optimizer = FeeOptimizer(FeeConfig(policy="yield_scaled"))
        signal = MarketSignal(aggregate_apy_bps=1200)
        assert optimizer.preview_fee(5_000, signal) == optimizer.compute_fee(5_000, signal).fee


class TestFeeConfig:
    def test_min_above_max_rejected(self):
        with pytest.raises(ValueError):
            FeeConfig(min_rate_bps=3000, max_rate_bps=2000)

    def test_base_outside_bounds_rejected(self):
        with pytest.raises(ValueError):
            FeeConfig(base_rate_bps=2500, max_rate_bps=2000)

    def test_max_above_denominator_rejected(self):
        with pytest.raises(ValueError):
            FeeConfig(max_rate_bps=10_001)

    def test_from_dict_defaults(self):
        assert FeeConfig.from_dict({}) == FeeConfig()

    def test_unknown_policy_rejected_by_optimizer(self):
        with pytest.raises(ValueError):
            FeeOptimizer(FeeConfig(policy="nope"))
