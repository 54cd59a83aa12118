"""Governance bridge that records voting credit."""


class GovernanceCreditLedger:
    """Credits one unit of voting power per converted share."""

    def __init__(self, reject: bool = False):
        self._credits: dict[str, int] = {}
        self._reject = reject

    async def credit(self, holder: str, shares: int) -> None:
        if self._reject:
            raise RuntimeError("Governance bridge rejected credit")
        self._credits[holder] = self._credits.get(holder, 0) + shares

    def voting_power(self, holder: str) -> int:
        return self._credits.get(holder, 0)

    @property
    def total_credit(self) -> int:
        return sum(self._credits.values())
