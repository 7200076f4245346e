"""
Broadcast hub - per-channel subscriber registry with a short replay buffer.

The hub is driven by explicit ``broadcast`` calls from the message service,
not by the event bus, so transport delivery stays independent of business
event fan-out.

Channels are namespaced: the DM manager and the group manager keep separate
state, so ``dm:42`` and ``group:42`` never share subscribers or replay.

Replay:
    Each channel keeps the last ``max_replay`` payloads (oldest evicted
    first) whether or not anyone is subscribed. A new subscriber receives
    them immediately, before any live broadcast. This closes the gap between
    a message being stored and a browser's stream being connected; it is not
    a durable log.
"""

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
import logging
from typing import Any

from personachat.core import slots
from personachat.core.events import Unsubscribe
from personachat.core.exceptions import InvalidChannelError
from personachat.core.models import ConversationKind, ConversationRef

logger = logging.getLogger(__name__)

MAX_REPLAY = 10

Payload = dict[str, Any]
SubscriberCallback = Callable[[Payload], None]

_SLOT = "broadcast_hub"


@dataclass(frozen=True)
class Channel:
    """
    A namespaced broadcast target.

    Example:
        >>> Channel.parse("dm:abc")
        Channel(kind=<ConversationKind.DM: 'dm'>, id='abc')
        >>> str(Channel.parse("group:42"))
        'group:42'
    """

    kind: ConversationKind
    id: str

    @classmethod
    def parse(cls, value: str | None) -> "Channel":
        """
        Parse ``"<type>:<id>"``.

        The id is everything after the first colon.

        Raises:
            InvalidChannelError: If the value is missing, has no colon, or
                has an empty or unknown type, or an empty id
        """
        if not value:
            raise InvalidChannelError("Channel parameter required", channel=value)

        channel_type, sep, channel_id = value.partition(":")
        if not sep or not channel_type or not channel_id:
            raise InvalidChannelError("Invalid channel format", channel=value)

        try:
            kind = ConversationKind(channel_type)
        except ValueError as e:
            raise InvalidChannelError(
                f"Unknown channel type: {channel_type}", channel=value
            ) from e

        return cls(kind=kind, id=channel_id)

    @classmethod
    def for_ref(cls, ref: ConversationRef) -> "Channel":
        return cls(kind=ref.kind, id=ref.id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


class ChannelManager:
    """
    Subscribers and replay queues for one channel namespace.

    Usage:
        manager = ChannelManager(ConversationKind.DM)
        unsubscribe = manager.subscribe("abc", callback)
        manager.broadcast("abc", {"id": "m1", "content": "hi"})
        unsubscribe()
    """

    def __init__(self, kind: ConversationKind, max_replay: int = MAX_REPLAY):
        self.kind = kind
        self.max_replay = max_replay
        self._subscribers: dict[str, dict[object, SubscriberCallback]] = {}
        self._replay: dict[str, deque[Payload]] = {}

    def subscribe(self, channel_id: str, callback: SubscriberCallback) -> Unsubscribe:
        """
        Register a callback for one channel.

        Queued replay payloads are delivered to this callback only,
        synchronously, before this method returns.

        Returns:
            Idempotent unsubscribe function
        """
        token = object()
        self._subscribers.setdefault(channel_id, {})[token] = callback

        queued = self._replay.get(channel_id)
        if queued:
            logger.debug(
                "Replaying %d payloads to new subscriber on %s:%s",
                len(queued),
                self.kind.value,
                channel_id,
            )
            self._deliver(channel_id, list(queued), [callback])

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(channel_id)
            if callbacks is None or token not in callbacks:
                return
            del callbacks[token]
            if not callbacks:
                del self._subscribers[channel_id]

        return unsubscribe

    def broadcast(self, channel_id: str, payload: Payload) -> None:
        """
        Queue a payload for replay and deliver it to current subscribers.

        Delivery order per subscriber equals call order. A failing callback
        is logged and skipped.
        """
        self._enqueue(channel_id, payload)

        callbacks = self._subscribers.get(channel_id)
        if not callbacks:
            return

        self._deliver(channel_id, [payload], list(callbacks.values()))

    def _enqueue(self, channel_id: str, payload: Payload) -> None:
        queue = self._replay.get(channel_id)
        if queue is None:
            queue = deque(maxlen=self.max_replay)
            self._replay[channel_id] = queue
        queue.append(payload)

    def _deliver(
        self,
        channel_id: str,
        payloads: list[Payload],
        callbacks: list[SubscriberCallback],
    ) -> None:
        for callback in callbacks:
            for payload in payloads:
                try:
                    callback(payload)
                except Exception:
                    logger.exception(
                        "[%s:%s] Error in subscriber callback", self.kind.value, channel_id
                    )

    def subscriber_count(self, channel_id: str | None = None) -> int:
        if channel_id is None:
            return sum(len(callbacks) for callbacks in self._subscribers.values())
        return len(self._subscribers.get(channel_id, {}))

    def has_channel(self, channel_id: str) -> bool:
        """True while at least one subscriber is attached."""
        return channel_id in self._subscribers

    def replay_snapshot(self, channel_id: str) -> list[Payload]:
        """Copy of the channel's replay queue, oldest first."""
        return list(self._replay.get(channel_id, ()))

    def clear_replay(self, channel_id: str | None = None) -> None:
        if channel_id is None:
            self._replay.clear()
        else:
            self._replay.pop(channel_id, None)

    def get_stats(self) -> dict[str, int]:
        """Subscriber count per channel id."""
        return {channel_id: len(callbacks) for channel_id, callbacks in self._subscribers.items()}


class BroadcastHub:
    """Routes channels to the DM or group ChannelManager."""

    def __init__(self, max_replay: int = MAX_REPLAY):
        self.dm = ChannelManager(ConversationKind.DM, max_replay=max_replay)
        self.group = ChannelManager(ConversationKind.GROUP, max_replay=max_replay)

    def manager(self, kind: ConversationKind) -> ChannelManager:
        return self.dm if kind is ConversationKind.DM else self.group

    def subscribe(self, channel: Channel, callback: SubscriberCallback) -> Unsubscribe:
        return self.manager(channel.kind).subscribe(channel.id, callback)

    def broadcast(self, channel: Channel, payload: Payload) -> None:
        self.manager(channel.kind).broadcast(channel.id, payload)

    def get_stats(self) -> dict[str, dict[str, int]]:
        return {
            "dm_subscriptions": self.dm.get_stats(),
            "group_subscriptions": self.group.get_stats(),
        }


def get_broadcast_hub(max_replay: int = MAX_REPLAY) -> BroadcastHub:
    """
    Get the process-wide BroadcastHub.

    ``max_replay`` only applies when the hub is created by this call.
    """
    return slots.get_or_create(_SLOT, lambda: BroadcastHub(max_replay=max_replay))


def set_broadcast_hub(hub: BroadcastHub) -> None:
    slots.put(_SLOT, hub)


def reset_broadcast_hub() -> None:
    slots.clear(_SLOT)


__all__ = [
    "MAX_REPLAY",
    "BroadcastHub",
    "Channel",
    "ChannelManager",
    "Payload",
    "SubscriberCallback",
    "get_broadcast_hub",
    "reset_broadcast_hub",
    "set_broadcast_hub",
]
