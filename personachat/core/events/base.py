"""
Base Event System - foundation for message lifecycle events.

Core Concepts:
- BaseEvent: Immutable event with id, timestamp and metadata
- Listener: Plain or async callable receiving one event
- Unsubscribe: Idempotent handle returned by every subscription

Design Principles:
- Events are immutable (frozen dataclass)
- Listeners never see each other; the bus isolates their failures
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TypeVar
from uuid import UUID, uuid4

EventT = TypeVar("EventT", bound="BaseEvent")
Listener = Callable[[EventT], Awaitable[None] | None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True, kw_only=True)
class BaseEvent(ABC):
    """
    Base class for all events in the system.

    Events are immutable records of something that happened.
    They contain all necessary context for listeners to process them.

    Attributes:
        event_id: Unique identifier for this event instance
        timestamp: When the event occurred
        metadata: Additional context (debugging, tracing)
    """

    event_id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    @abstractmethod
    def event_type(self) -> str:
        """
        Event type identifier (e.g., 'message.created').
        Used for listener registration and routing.
        """

    def to_log_data(self) -> dict[str, Any]:
        """Flat representation for structured log lines."""
        return {
            "event_id": str(self.event_id),
            "event_type": self.event_type,
            "timestamp": self.timestamp.isoformat(),
            **self.metadata,
        }


__all__ = [
    "BaseEvent",
    "EventT",
    "Listener",
    "Unsubscribe",
]
