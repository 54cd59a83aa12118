"""Wiring of allocator, fee optimizer and vault.

Functions:
    build_vault: Construct the three components from one config bundle and
        bind the allocator's custody capability to the vault
"""

from collections.abc import Callable

from yieldsync.access import CapabilityGate
from yieldsync.allocator.allocator import Allocator
from yieldsync.config import YieldSyncConfig
from yieldsync.events import EventLog
from yieldsync.fees.optimizer import FeeOptimizer
from yieldsync.interfaces import AssetToken, GovernanceBridge, YieldOracle
from yieldsync.vault.vault import Vault


def build_vault(
    asset: AssetToken,
    oracle: YieldOracle,
    config: YieldSyncConfig | None = None,
    governance: GovernanceBridge | None = None,
    events: EventLog | None = None,
    clock: Callable[[], float] | None = None,
) -> Vault:
    """Create a vault with its allocator and fee optimizer.

    The first configured allocator admin performs the vault binding.

    Example:
        >>> vault = build_vault(asset, oracle, load_config("vault.yaml"))
        >>> vault.allocator.add_pool("admin", "lending", adapter, 1230)
    """
    config = config or YieldSyncConfig()
    allocator_kwargs = {"clock": clock} if clock is not None else {}
    allocator = Allocator(oracle, config.allocator, gate=CapabilityGate(), **allocator_kwargs)
    vault = Vault(
        asset,
        allocator,
        fee_optimizer=FeeOptimizer(config.fees),
        config=config.vault,
        events=events,
        governance=governance,
    )
    allocator.bind_vault(config.allocator.admins[0], vault.address)
    return vault
