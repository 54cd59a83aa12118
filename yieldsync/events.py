# yieldsync/events.py
"""Accounting event records and the in-process event log.

Events are immutable records appended after a state change commits.
Subscribers are called synchronously in registration order; a failing
subscriber is logged and never rolls back the committed operation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Types of vault and allocator events."""

    DEPOSITED = "deposited"
    WITHDRAWN = "withdrawn"
    YIELD_HARVESTED = "yield_harvested"
    LOSS_REALIZED = "loss_realized"
    FEE_COLLECTED = "fee_collected"
    SHARES_TRANSFERRED = "shares_transferred"
    SHARES_CONVERTED = "shares_converted"
    POOL_ADDED = "pool_added"
    POOL_REMOVED = "pool_removed"
    REBALANCED = "rebalanced"
    EMERGENCY_MODE_CHANGED = "emergency_mode_changed"
    EMERGENCY_WITHDRAWN = "emergency_withdrawn"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True)
class VaultEvent:
    """Base record. ``timestamp`` is wall-clock UTC at emission."""

    timestamp: datetime = field(default_factory=_utcnow, kw_only=True)

    @property
    def event_type(self) -> EventType:
        raise NotImplementedError


@dataclass(frozen=True)
class Deposited(VaultEvent):
    user: str
    amount: int
    shares: int

    @property
    def event_type(self) -> EventType:
        return EventType.DEPOSITED


@dataclass(frozen=True)
class Withdrawn(VaultEvent):
    user: str
    amount: int
    shares: int

    @property
    def event_type(self) -> EventType:
        return EventType.WITHDRAWN


@dataclass(frozen=True)
class YieldHarvested(VaultEvent):
    """Net-of-loss harvest outcome. ``total_yield`` is gross yield collected."""

    total_yield: int
    fee: int = 0

    @property
    def event_type(self) -> EventType:
        return EventType.YIELD_HARVESTED


@dataclass(frozen=True)
class LossRealized(VaultEvent):
    """A pool's balance fell below its allocated principal."""

    pool_id: str
    amount: int

    @property
    def event_type(self) -> EventType:
        return EventType.LOSS_REALIZED


@dataclass(frozen=True)
class FeeCollected(VaultEvent):
    collector: str
    amount: int

    @property
    def event_type(self) -> EventType:
        return EventType.FEE_COLLECTED


@dataclass(frozen=True)
class SharesTransferred(VaultEvent):
    sender: str
    recipient: str
    shares: int

    @property
    def event_type(self) -> EventType:
        return EventType.SHARES_TRANSFERRED


@dataclass(frozen=True)
class SharesConverted(VaultEvent):
    """Shares moved to the governance bridge for voting credit."""

    holder: str
    shares: int

    @property
    def event_type(self) -> EventType:
        return EventType.SHARES_CONVERTED


@dataclass(frozen=True)
class PoolAdded(VaultEvent):
    pool_id: str
    apy_bps: int

    @property
    def event_type(self) -> EventType:
        return EventType.POOL_ADDED


@dataclass(frozen=True)
class PoolRemoved(VaultEvent):
    pool_id: str
    withdrawn: int

    @property
    def event_type(self) -> EventType:
        return EventType.POOL_REMOVED


@dataclass(frozen=True)
class Rebalanced(VaultEvent):
    moved: int
    transfers: int
    completed: bool

    @property
    def event_type(self) -> EventType:
        return EventType.REBALANCED


@dataclass(frozen=True)
class EmergencyModeChanged(VaultEvent):
    enabled: bool
    caller: str

    @property
    def event_type(self) -> EventType:
        return EventType.EMERGENCY_MODE_CHANGED


@dataclass(frozen=True)
class EmergencyWithdrawn(VaultEvent):
    user: str
    amount: int
    shares: int

    @property
    def event_type(self) -> EventType:
        return EventType.EMERGENCY_WITHDRAWN


EventHandler = Callable[[VaultEvent], None]


class EventLog:
    """Append-only event record with synchronous fan-out.

    Attributes:
        events: All events emitted so far, oldest first
        subscriber_count: Number of registered subscribers
    """

    def __init__(self) -> None:
        self._events: list[VaultEvent] = []
        self._subscribers: list[EventHandler] = []

    @property
    def events(self) -> list[VaultEvent]:
        return list(self._events)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, handler: EventHandler) -> None:
        """Register a handler to receive every subsequent event."""
        self._subscribers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        """Remove a handler. Unknown handlers are ignored."""
        if handler in self._subscribers:
            self._subscribers.remove(handler)

    def emit(self, event: VaultEvent) -> None:
        """Record the event and notify subscribers."""
        self._events.append(event)
        for handler in self._subscribers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Event subscriber failed for {event.event_type.value}")

    def of_type(self, event_type: EventType) -> list[VaultEvent]:
        """Events of one type, oldest first."""
        return [e for e in self._events if e.event_type == event_type]

    def clear(self) -> None:
        """Drop recorded events (subscribers are kept)."""
        self._events.clear()
