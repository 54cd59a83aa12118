"""In-memory fungible asset."""

import logging

logger = logging.getLogger(__name__)


class InMemoryAsset:
    """
    Simulated token ledger.

    transfer_from(sender, recipient) requires sender to have approved
    recipient for at least ``amount`` unless ``require_approval`` is False.
    Failed transfers return False and change nothing.
    """

    def __init__(self, symbol: str = "BDAG", require_approval: bool = True):
        self.symbol = symbol
        self._require_approval = require_approval
        self._balances: dict[str, int] = {}
        self._allowances: dict[tuple[str, str], int] = {}
        self._blocked: set[str] = set()
        self._total_supply = 0

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def mint(self, account: str, amount: int) -> None:
        """Create ``amount`` new units in ``account``."""
        if amount < 0:
            raise ValueError(f"Cannot mint negative amount {amount}")
        self._balances[account] = self._balances.get(account, 0) + amount
        self._total_supply += amount

    def burn(self, account: str, amount: int) -> None:
        """Destroy up to ``amount`` units held by ``account``."""
        burned = min(amount, self._balances.get(account, 0))
        self._balances[account] = self._balances.get(account, 0) - burned
        self._total_supply -= burned

    def approve(self, owner: str, spender: str, amount: int) -> None:
        self._allowances[(owner, spender)] = amount

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def block(self, account: str) -> None:
        """Make every transfer to ``account`` fail."""
        self._blocked.add(account)

    def unblock(self, account: str) -> None:
        self._blocked.discard(account)

    async def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        if self._require_approval and self.allowance(sender, recipient) < amount:
            logger.debug(f"transfer_from {sender} -> {recipient}: allowance too low")
            return False
        if not self._move(sender, recipient, amount):
            return False
        if self._require_approval:
            self._allowances[(sender, recipient)] -= amount
        return True

    async def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        return self._move(sender, recipient, amount)

    async def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def _move(self, sender: str, recipient: str, amount: int) -> bool:
        if amount < 0 or recipient in self._blocked:
            return False
        if self._balances.get(sender, 0) < amount:
            return False
        self._balances[sender] -= amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount
        return True
