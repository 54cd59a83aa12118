"""Share ledger and NAV conversions.

Rounding always favors the holders who are not acting:
- deposit: shares granted are rounded down
- withdraw: assets paid out are rounded down
"""

from decimal import Decimal

from yieldsync.errors import InsufficientSharesError, InvalidAmountError, VaultInsolventError


def share_price(total_assets: int, total_shares: int) -> Decimal:
    """Assets per share; 1 when no shares exist."""
    if total_shares == 0:
        return Decimal("1")
    return Decimal(total_assets) / Decimal(total_shares)


def shares_for_deposit(amount: int, total_assets: int, total_shares: int) -> int:
    """Shares minted for depositing ``amount`` at the current NAV.

    Raises:
        VaultInsolventError: shares outstanding but no assets back them
    """
    if total_shares == 0:
        return amount
    if total_assets <= 0:
        raise VaultInsolventError(
            f"{total_shares} shares outstanding with {total_assets} assets; deposits are blocked"
        )
    return amount * total_shares // total_assets


def assets_for_shares(shares: int, total_assets: int, total_shares: int) -> int:
    """Assets redeemed for ``shares`` at the current NAV."""
    if total_shares == 0:
        return 0
    return shares * total_assets // total_shares


class ShareLedger:
    """Holder balances and total supply.

    Invariant: total_shares == sum(balances). Zero balances are removed.
    """

    def __init__(self) -> None:
        self._balances: dict[str, int] = {}
        self._total_shares = 0

    @property
    def total_shares(self) -> int:
        return self._total_shares

    @property
    def holder_count(self) -> int:
        return len(self._balances)

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def holders(self) -> dict[str, int]:
        """Copy of all non-zero balances."""
        return dict(self._balances)

    def mint(self, holder: str, shares: int) -> None:
        if shares <= 0:
            raise InvalidAmountError(f"Cannot mint {shares} shares", amount=shares)
        self._balances[holder] = self._balances.get(holder, 0) + shares
        self._total_shares += shares

    def burn(self, holder: str, shares: int) -> None:
        self._debit(holder, shares)
        self._total_shares -= shares

    def transfer(self, sender: str, recipient: str, shares: int) -> None:
        self._debit(sender, shares)
        self._balances[recipient] = self._balances.get(recipient, 0) + shares

    def _debit(self, holder: str, shares: int) -> None:
        if shares <= 0:
            raise InvalidAmountError(f"Share amount must be positive, got {shares}", amount=shares)
        held = self._balances.get(holder, 0)
        if held < shares:
            raise InsufficientSharesError(
                f"{holder!r} holds {held} shares, requested {shares}",
                holder=holder,
                requested=shares,
                available=held,
            )
        remaining = held - shares
        if remaining:
            self._balances[holder] = remaining
        else:
            del self._balances[holder]
