"""
SSE stream for one broadcast channel.

A ChannelStream bridges the hub's synchronous subscriber callbacks to an
async generator of sse-starlette event dicts:

    {"event": "connected", "data": '{"status": "connected"}'}   once, first
    {"data": '<json payload>'}                                    per broadcast

Replayed payloads arrive right after ``connected``, before live ones.
The subscription is released exactly once, when the generator is closed
(client disconnect) or ``close()`` is called.
"""

import asyncio
from collections.abc import AsyncGenerator
import json
import logging
from typing import Any

from sse_starlette.sse import EventSourceResponse

from personachat.core.events import Unsubscribe
from personachat.realtime.broadcast import BroadcastHub, Channel, Payload

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
    "Pragma": "no-cache",
    "Expires": "0",
}

_CLOSED = object()


class ChannelStream:
    """
    One browser connection attached to one channel.

    Example:
        >>> stream = ChannelStream(hub, Channel.parse("dm:abc"))
        >>> async for event in stream.events():
        ...     print(event)
    """

    def __init__(self, hub: BroadcastHub, channel: Channel):
        self.hub = hub
        self.channel = channel
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._unsubscribe: Unsubscribe | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _on_payload(self, payload: Payload) -> None:
        try:
            frame = json.dumps(payload)
        except (TypeError, ValueError):
            logger.exception("[SSE] Failed to serialize payload for %s", self.channel)
            return
        self._queue.put_nowait(frame)

    async def events(self) -> AsyncGenerator[dict[str, str], None]:
        """Yield the connected event, then one frame per broadcast."""
        if self._closed:
            return

        yield {"event": "connected", "data": json.dumps({"status": "connected"})}
        if self._closed:
            return

        self._unsubscribe = self.hub.subscribe(self.channel, self._on_payload)
        logger.info("[SSE] Subscribed to %s", self.channel)

        try:
            while True:
                frame = await self._queue.get()
                if frame is _CLOSED:
                    break
                yield {"data": frame}
        finally:
            self.close()

    def close(self) -> None:
        """Release the subscription. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.info("[SSE] Client disconnected from %s", self.channel)
        self._queue.put_nowait(_CLOSED)


def channel_event_response(hub: BroadcastHub, channel: Channel) -> EventSourceResponse:
    """Wrap a ChannelStream in a streaming HTTP response."""
    stream = ChannelStream(hub, channel)
    return EventSourceResponse(
        stream.events(),
        headers=SSE_HEADERS,
        media_type="text/event-stream",
    )


__all__ = [
    "SSE_HEADERS",
    "ChannelStream",
    "channel_event_response",
]
