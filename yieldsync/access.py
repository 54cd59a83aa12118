# yieldsync/access.py
"""Capability gates and the non-blocking reentrancy guard.

Capabilities are keyed on caller identity and configured once, when the
components are wired together. The guard rejects re-entry instead of
waiting: a collaborator that calls back into the vault while an operation
is suspended on it gets ReentrancyError.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from yieldsync.errors import ReentrancyError, UnauthorizedCallerError

logger = logging.getLogger(__name__)

# Wildcard identity: any caller holds the capability
ANYONE = "*"


@dataclass
class CapabilityGate:
    """Maps capability names to the set of caller identities holding them.

    Example:
        gate = CapabilityGate()
        gate.grant("admin", "ops-multisig")
        gate.require("admin", caller)  # raises UnauthorizedCallerError
    """

    grants: dict[str, set[str]] = field(default_factory=dict)

    def grant(self, capability: str, *callers: str) -> None:
        """Give callers the capability."""
        self.grants.setdefault(capability, set()).update(callers)

    def revoke(self, capability: str, caller: str) -> None:
        """Remove one caller from a capability."""
        self.grants.get(capability, set()).discard(caller)

    def replace(self, capability: str, callers: Iterable[str]) -> None:
        """Set the exact holder set of a capability."""
        self.grants[capability] = set(callers)

    def holds(self, capability: str, caller: str) -> bool:
        """Check whether caller holds the capability."""
        holders = self.grants.get(capability, set())
        return ANYONE in holders or caller in holders

    def require(self, capability: str, caller: str) -> None:
        """Raise UnauthorizedCallerError unless caller holds the capability."""
        if not self.holds(capability, caller):
            logger.warning(f"Rejected {caller!r}: missing capability {capability!r}")
            raise UnauthorizedCallerError(
                f"Caller {caller!r} lacks capability {capability!r}",
                caller=caller,
                capability=capability,
            )


class ReentrancyGuard:
    """Single-entry guard around state-mutating operations.

    Attributes:
        active_operation: Name of the operation currently holding the guard
        locked: Whether an operation is in progress
    """

    def __init__(self) -> None:
        self._active: str | None = None

    @property
    def active_operation(self) -> str | None:
        return self._active

    @property
    def locked(self) -> bool:
        return self._active is not None

    @asynccontextmanager
    async def enter(self, operation: str) -> AsyncIterator[None]:
        """Hold the guard for the duration of the block.

        Raises:
            ReentrancyError: another operation already holds the guard
        """
        if self._active is not None:
            logger.warning(f"Reentrant {operation} rejected while {self._active} is in progress")
            raise ReentrancyError(
                f"{operation} called while {self._active} is in progress",
                active_operation=self._active,
            )
        self._active = operation
        try:
            yield
        finally:
            self._active = None
