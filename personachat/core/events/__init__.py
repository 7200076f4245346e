"""
Event System - message lifecycle events for personachat.

Core Components:
- BaseEvent: Immutable event records
- MessageCreatedEvent / MessageUpdatedEvent / MessageDeletedEvent
- MessageEventBus: Process-wide synchronous dispatcher

Quick Start:
    from personachat.core.events import get_event_bus

    bus = get_event_bus()

    async def on_created(event):
        print(f"{event.conversation_ref}: {event.message.content}")

    unsubscribe = bus.on_created(on_created)
"""

from .base import BaseEvent, EventT, Listener, Unsubscribe
from .bus import MessageEventBus, get_event_bus, reset_event_bus, set_event_bus
from .messages import (
    DirectScope,
    EventScope,
    GroupScope,
    MessageCreatedEvent,
    MessageDeletedEvent,
    MessageEvent,
    MessageEventType,
    MessageUpdatedEvent,
    scope_for,
)

__all__ = [
    "BaseEvent",
    "DirectScope",
    "EventScope",
    "EventT",
    "GroupScope",
    "Listener",
    "MessageCreatedEvent",
    "MessageDeletedEvent",
    "MessageEvent",
    "MessageEventBus",
    "MessageEventType",
    "MessageUpdatedEvent",
    "Unsubscribe",
    "get_event_bus",
    "reset_event_bus",
    "scope_for",
    "set_event_bus",
]
