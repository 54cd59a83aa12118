# yieldsync/errors.py
"""Vault and allocator error types."""


class YieldSyncError(Exception):
    """Base exception for vault, allocator and fee errors."""
    pass


class InvalidAmountError(YieldSyncError):
    """Zero, negative or dust amount supplied to a vault operation."""

    def __init__(self, message: str, amount: int | None = None):
        super().__init__(message)
        self.amount = amount


class InsufficientSharesError(YieldSyncError):
    """Withdrawal or transfer exceeds the holder's share balance."""

    def __init__(self, message: str, holder: str = None, requested: int = 0, available: int = 0):
        super().__init__(message)
        self.holder = holder
        self.requested = requested
        self.available = available


class InsufficientLiquidityError(YieldSyncError):
    """Active pools cannot source the requested amount.

    ``stranded`` is principal that was pulled out of pools during the attempt
    and could not be put back; it sits in vault custody and must be
    accounted for as idle assets by the caller.
    """

    def __init__(self, message: str, requested: int = 0, available: int = 0, stranded: int = 0):
        super().__init__(message)
        self.requested = requested
        self.available = available
        self.stranded = stranded


class PoolUnavailableError(YieldSyncError):
    """A pool adapter call reverted or reported an inconsistent balance."""

    def __init__(self, message: str, pool_id: str = None):
        super().__init__(message)
        self.pool_id = pool_id


class PoolAlreadyRegisteredError(YieldSyncError):
    """Pool id is already present in the registry."""

    def __init__(self, message: str, pool_id: str = None):
        super().__init__(message)
        self.pool_id = pool_id


class PoolNotFoundError(YieldSyncError):
    """Pool id is not registered."""

    def __init__(self, message: str, pool_id: str = None):
        super().__init__(message)
        self.pool_id = pool_id


class UnauthorizedCallerError(YieldSyncError):
    """Gated operation invoked by a caller without the capability."""

    def __init__(self, message: str, caller: str = None, capability: str = None):
        super().__init__(message)
        self.caller = caller
        self.capability = capability


class ReentrancyError(YieldSyncError):
    """State-mutating entry point called while another one is in progress."""

    def __init__(self, message: str, active_operation: str = None):
        super().__init__(message)
        self.active_operation = active_operation


class TransferFailedError(YieldSyncError):
    """Asset transfer returned failure."""

    def __init__(self, message: str, sender: str = None, recipient: str = None, amount: int = 0):
        super().__init__(message)
        self.sender = sender
        self.recipient = recipient
        self.amount = amount


class VaultInsolventError(YieldSyncError):
    """Shares are outstanding but the vault holds no assets."""
    pass


class DepositCapExceededError(YieldSyncError):
    """Deposit would push total assets above the configured cap."""

    def __init__(self, message: str, cap: int = 0, attempted: int = 0):
        super().__init__(message)
        self.cap = cap
        self.attempted = attempted


class RebalanceNotAllowedError(YieldSyncError):
    """Rebalance requested before the configured minimum interval elapsed."""

    def __init__(self, message: str, retry_after_seconds: float = 0.0):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class EmergencyModeError(YieldSyncError):
    """Operation not permitted in the vault's current emergency mode state."""

    def __init__(self, message: str, emergency_mode: bool = False):
        super().__init__(message)
        self.emergency_mode = emergency_mode
