"""Share accounting and harvest settlement."""

from yieldsync.vault.models import ConservationReport, HarvestPhase, HarvestResult, VaultConfig
from yieldsync.vault.shares import ShareLedger, assets_for_shares, share_price, shares_for_deposit
from yieldsync.vault.vault import Vault

__all__ = [
    "Vault",
    "VaultConfig",
    "HarvestPhase",
    "HarvestResult",
    "ConservationReport",
    "ShareLedger",
    "share_price",
    "shares_for_deposit",
    "assets_for_shares",
]
