"""Settable yield oracle."""

UNLIMITED_CAPACITY = 10**30


class OracleUnavailableError(Exception):
    """Simulated feed outage."""
    pass


class StaticYieldOracle:
    """Returns whatever APY and capacity were last set for a pool.

    Values are returned as set, without validation, so tests can feed the
    allocator absurd data.
    """

    def __init__(
        self,
        apys: dict[str, int] | None = None,
        capacities: dict[str, int] | None = None,
        default_capacity: int = UNLIMITED_CAPACITY,
    ):
        self._apys: dict[str, object] = dict(apys or {})
        self._capacities: dict[str, object] = dict(capacities or {})
        self._default_capacity = default_capacity
        self._failing: set[str] = set()

    def set_apy(self, pool_id: str, apy_bps: object) -> None:
        self._apys[pool_id] = apy_bps

    def set_capacity(self, pool_id: str, capacity: object) -> None:
        self._capacities[pool_id] = capacity

    def fail(self, pool_id: str) -> None:
        """Make every query for ``pool_id`` raise."""
        self._failing.add(pool_id)

    def recover(self, pool_id: str) -> None:
        self._failing.discard(pool_id)

    async def get_apy(self, pool_id: str) -> int:
        self._check(pool_id)
        if pool_id not in self._apys:
            raise OracleUnavailableError(f"No APY feed for {pool_id}")
        return self._apys[pool_id]

    async def get_capacity(self, pool_id: str) -> int:
        self._check(pool_id)
        return self._capacities.get(pool_id, self._default_capacity)

    def _check(self, pool_id: str) -> None:
        if pool_id in self._failing:
            raise OracleUnavailableError(f"Feed for {pool_id} unavailable")
