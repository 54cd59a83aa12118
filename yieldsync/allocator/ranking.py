"""Pool ranking, oracle sanitization and target computation.

Pure functions; no adapter or oracle calls happen here.

Ordering rules:
- Deploy: APY descending, ties broken by lowest pool_id
- Withdraw: exact reverse of deploy order (lowest APY first)
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal

from yieldsync.allocator.models import PoolQuote
from yieldsync.fees.models import BPS_DENOMINATOR, MarketSignal


def sanitize_apy(raw: object, fallback: int, max_apy_bps: int) -> tuple[int, bool]:
    """Bound an oracle APY.

    Args:
        raw: Value reported by the oracle
        fallback: Last accepted APY for the pool
        max_apy_bps: Largest plausible APY

    Returns:
        (apy_bps, accepted). When the raw value is not an integer in
        [0, max_apy_bps] the fallback is returned with accepted=False.
    """
    if isinstance(raw, bool) or not isinstance(raw, int):
        return fallback, False
    if raw < 0 or raw > max_apy_bps:
        return fallback, False
    return raw, True


def sanitize_capacity(raw: object) -> int:
    """Bound an oracle capacity. Non-integer or negative values mean no capacity."""
    if isinstance(raw, bool) or not isinstance(raw, int):
        return 0
    return max(raw, 0)


def deploy_order(quotes: Iterable[PoolQuote]) -> list[PoolQuote]:
    """Highest APY first; equal APY by lowest pool_id."""
    return sorted(quotes, key=lambda q: (-q.apy_bps, q.pool_id))


def withdraw_order(quotes: Iterable[PoolQuote]) -> list[PoolQuote]:
    """Lowest APY first; the exact reverse of deploy_order."""
    return list(reversed(deploy_order(quotes)))


def concentration_cap(total: int, max_pool_allocation_bps: int) -> int:
    """Largest principal a single pool may hold out of ``total``."""
    return total * max_pool_allocation_bps // BPS_DENOMINATOR


def compute_targets(
    quotes: Iterable[PoolQuote],
    total: int,
    max_pool_allocation_bps: int = BPS_DENOMINATOR,
) -> dict[str, int]:
    """Greedy target allocation of ``total`` across pools.

    Fills pools in deploy order up to min(capacity, concentration cap).
    If capacity is short the remainder is left unassigned, so the targets
    can sum to less than ``total``.
    """
    cap = concentration_cap(total, max_pool_allocation_bps)
    remaining = total
    targets: dict[str, int] = {}
    for quote in deploy_order(quotes):
        take = min(remaining, quote.capacity, cap)
        targets[quote.pool_id] = max(take, 0)
        remaining -= targets[quote.pool_id]
    return targets


def target_weights(targets: Mapping[str, int]) -> dict[str, Decimal]:
    """Targets as fractions of their sum (all zero when nothing is targeted)."""
    total = sum(targets.values())
    if total == 0:
        return {pool_id: Decimal("0") for pool_id in targets}
    return {pool_id: Decimal(amount) / Decimal(total) for pool_id, amount in targets.items()}


def market_signal(
    quotes: Iterable[PoolQuote],
    allocations: Mapping[str, int],
) -> MarketSignal:
    """Allocation-weighted APY and capacity utilization across pools."""
    quotes = list(quotes)
    total_allocated = sum(allocations.get(q.pool_id, 0) for q in quotes)
    total_capacity = sum(q.capacity for q in quotes)

    if total_allocated > 0:
        weighted = sum(q.apy_bps * allocations.get(q.pool_id, 0) for q in quotes)
        aggregate_apy = weighted // total_allocated
    elif quotes:
        aggregate_apy = sum(q.apy_bps for q in quotes) // len(quotes)
    else:
        aggregate_apy = 0

    utilization = (
        total_allocated * BPS_DENOMINATOR // total_capacity if total_capacity > 0 else 0
    )
    return MarketSignal(
        aggregate_apy_bps=aggregate_apy,
        utilization_bps=utilization,
        pool_count=len(quotes),
    )
