"""
MessageEventBus - process-wide dispatcher for message lifecycle events.

Responsibilities:
- Register/unregister listeners per event name
- Fan an event out to general and DM-only / group-only listeners
- Isolate listener failures from the emitter and from each other
- Keep one instance per process, even across module reloads

Architecture:
- In-memory, synchronous fan-out in registration order
- Async listeners are scheduled as tasks on the running loop;
  their failures are logged by a done-callback
- Emission never raises because of a listener
"""

import asyncio
from collections import defaultdict
from collections.abc import Awaitable
import inspect
import logging
from typing import Any

from personachat.core import slots
from personachat.core.models import ConversationRef

from .base import Listener, Unsubscribe
from .messages import (
    MessageCreatedEvent,
    MessageDeletedEvent,
    MessageEvent,
    MessageEventType,
    MessageUpdatedEvent,
)

logger = logging.getLogger(__name__)

_SLOT = "event_bus"


class _Registration:
    """One listener attached to one event name."""

    __slots__ = ("listener", "name")

    def __init__(self, listener: Listener, name: str) -> None:
        self.listener = listener
        self.name = name


class MessageEventBus:
    """
    Typed publish/subscribe hub for message events.

    Features:
    - Synchronous, ordered fan-out (no queueing, no retries)
    - Error isolation (one listener failure doesn't affect others)
    - Conversation-scoped subscriptions with error guarding
    - Idempotent unsubscribe handles

    Usage:
        bus = get_event_bus()
        unsubscribe = bus.on_created(lambda event: print(event.message.content))
        bus.emit_created(MessageCreatedEvent(message=msg, scope=scope))
        unsubscribe()
    """

    def __init__(self, max_listeners: int = 50):
        """
        Initialize MessageEventBus.

        Args:
            max_listeners: Per-event listener count above which a leak warning is logged
        """
        self._listeners: dict[str, list[_Registration]] = defaultdict(list)
        self._pending: set[asyncio.Future[Any]] = set()
        self._max_listeners = max_listeners

    def on(self, event_type: MessageEventType | str, listener: Listener) -> Unsubscribe:
        """
        Register a listener for one event name.

        Args:
            event_type: Event name to listen for
            listener: Plain or async callable taking the event

        Returns:
            Idempotent unsubscribe function
        """
        key = event_type.value if isinstance(event_type, MessageEventType) else event_type
        registration = _Registration(listener, getattr(listener, "__qualname__", repr(listener)))
        registrations = self._listeners[key]
        registrations.append(registration)

        if len(registrations) > self._max_listeners:
            logger.warning(
                "Possible listener leak: %d listeners on '%s' (max %d)",
                len(registrations),
                key,
                self._max_listeners,
            )

        def unsubscribe() -> None:
            current = self._listeners.get(key)
            if current is None or registration not in current:
                return
            current.remove(registration)
            if not current:
                del self._listeners[key]

        return unsubscribe

    def on_created(self, listener: Listener) -> Unsubscribe:
        """Listen for every created message."""
        return self.on(MessageEventType.MESSAGE_CREATED, listener)

    def on_updated(self, listener: Listener) -> Unsubscribe:
        """Listen for every edited message."""
        return self.on(MessageEventType.MESSAGE_UPDATED, listener)

    def on_deleted(self, listener: Listener) -> Unsubscribe:
        """Listen for every deleted message."""
        return self.on(MessageEventType.MESSAGE_DELETED, listener)

    def on_dm_created(self, listener: Listener) -> Unsubscribe:
        """Listen for messages created in any direct conversation."""
        return self.on(MessageEventType.DM_MESSAGE_CREATED, listener)

    def on_group_created(self, listener: Listener) -> Unsubscribe:
        """Listen for messages created in any group chat."""
        return self.on(MessageEventType.GROUP_MESSAGE_CREATED, listener)

    def on_conversation_created(self, ref: ConversationRef, listener: Listener) -> Unsubscribe:
        """
        Listen for messages created in one conversation.

        The listener is wrapped so that it only sees events for ``ref`` and
        so that its exceptions, including those of the coroutine it returns,
        are logged here instead of reaching the emitter.

        Args:
            ref: Conversation to filter on
            listener: Plain or async callable taking a MessageCreatedEvent

        Returns:
            Idempotent unsubscribe function
        """
        return self._on_conversation(ref, MessageEventType.MESSAGE_CREATED, listener)

    def on_conversation(
        self,
        ref: ConversationRef,
        on_create: Listener | None = None,
        on_update: Listener | None = None,
        on_delete: Listener | None = None,
    ) -> Unsubscribe:
        """
        Listen for all events in one conversation.

        Returns:
            A single unsubscribe function removing every listener given
        """
        unsubscribers: list[Unsubscribe] = []
        if on_create is not None:
            unsubscribers.append(
                self._on_conversation(ref, MessageEventType.MESSAGE_CREATED, on_create)
            )
        if on_update is not None:
            unsubscribers.append(
                self._on_conversation(ref, MessageEventType.MESSAGE_UPDATED, on_update)
            )
        if on_delete is not None:
            unsubscribers.append(
                self._on_conversation(ref, MessageEventType.MESSAGE_DELETED, on_delete)
            )

        def unsubscribe_all() -> None:
            for unsubscribe in unsubscribers:
                unsubscribe()

        return unsubscribe_all

    def _on_conversation(
        self,
        ref: ConversationRef,
        general: MessageEventType,
        listener: Listener,
    ) -> Unsubscribe:
        label = f"{getattr(listener, '__qualname__', repr(listener))}@{ref}"

        def conversation_listener(event: MessageEvent) -> Awaitable[None] | None:
            if event.conversation_ref != ref:
                return None
            try:
                result = listener(event)
            except Exception:
                logger.exception("Unhandled error in listener for %s", ref)
                return None
            if inspect.isawaitable(result):
                return self._guarded(result, label)
            return None

        conversation_listener.__qualname__ = label
        return self.on(MessageEventType.scoped(ref.kind, general), conversation_listener)

    @staticmethod
    async def _guarded(awaitable: Awaitable[Any], label: str) -> None:
        try:
            await awaitable
        except Exception:
            logger.exception("Unhandled error in async listener %s", label)

    def emit_created(self, event: MessageCreatedEvent) -> None:
        """Notify 'message.created' listeners, then the DM-only or group-only ones."""
        self._emit(event)

    def emit_updated(self, event: MessageUpdatedEvent) -> None:
        """Notify 'message.updated' listeners, then the DM-only or group-only ones."""
        self._emit(event)

    def emit_deleted(self, event: MessageDeletedEvent) -> None:
        """Notify 'message.deleted' listeners, then the DM-only or group-only ones."""
        self._emit(event)

    def _emit(self, event: MessageEvent) -> None:
        logger.debug(
            "Emitting %s for %s: %s", event.event_type, event.conversation_ref, event.to_log_data()
        )
        self._dispatch(event.event_type, event)
        self._dispatch(event.scoped_event_type, event)

    def _dispatch(self, event_type: str, event: MessageEvent) -> None:
        registrations = list(self._listeners.get(event_type, ()))
        if not registrations:
            logger.debug("No listeners registered for '%s'", event_type)
            return

        for registration in registrations:
            try:
                result = registration.listener(event)
            except Exception:
                logger.exception(
                    "Listener %s failed on '%s' (%s)",
                    registration.name,
                    event_type,
                    event.event_id,
                )
                continue

            if inspect.isawaitable(result):
                self._schedule(result, f"{registration.name}:{event_type}")

    def _schedule(self, awaitable: Awaitable[Any], label: str) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.error("Async listener %s dropped: no running event loop", label)
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        task = asyncio.ensure_future(awaitable)
        if isinstance(task, asyncio.Task):
            task.set_name(label)
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Future[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Async listener failed: %s", error, exc_info=error)

    async def drain(self) -> None:
        """
        Wait until every scheduled async listener has finished.

        Listeners may trigger further emissions (a reply is itself a new
        message), so this loops until no task is left.
        """
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending_count(self) -> int:
        """Async listener tasks still running."""
        return len(self._pending)

    def listener_count(self, event_type: MessageEventType | str | None = None) -> int:
        """Number of listeners for one event name, or in total."""
        if event_type is None:
            return sum(len(registrations) for registrations in self._listeners.values())
        key = event_type.value if isinstance(event_type, MessageEventType) else event_type
        return len(self._listeners.get(key, ()))

    def clear(self) -> None:
        """Remove every listener."""
        self._listeners.clear()

    def get_stats(self) -> dict[str, Any]:
        """Bus statistics for monitoring."""
        return {
            "total_event_types": len(self._listeners),
            "total_listeners": self.listener_count(),
            "pending_tasks": self.pending_count,
            "listeners_by_type": {
                event_type: len(registrations)
                for event_type, registrations in self._listeners.items()
            },
        }


def get_event_bus() -> MessageEventBus:
    """
    Get the process-wide MessageEventBus.

    Creates it on first call; later calls, including calls from a
    reloaded copy of this module, return the same instance.
    """
    return slots.get_or_create(_SLOT, MessageEventBus)


def set_event_bus(bus: MessageEventBus) -> None:
    """
    Set the process-wide MessageEventBus.

    Args:
        bus: MessageEventBus instance to use globally
    """
    slots.put(_SLOT, bus)


def reset_event_bus() -> None:
    """Drop the process-wide bus; the next get_event_bus() creates a fresh one."""
    slots.clear(_SLOT)


__all__ = [
    "MessageEventBus",
    "get_event_bus",
    "reset_event_bus",
    "set_event_bus",
]
