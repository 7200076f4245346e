"""Real-time delivery: per-channel broadcast with replay, and SSE streams."""

from personachat.realtime.broadcast import (
    MAX_REPLAY,
    BroadcastHub,
    Channel,
    ChannelManager,
    get_broadcast_hub,
    reset_broadcast_hub,
    set_broadcast_hub,
)
from personachat.realtime.sse import SSE_HEADERS, ChannelStream, channel_event_response

__all__ = [
    "MAX_REPLAY",
    "SSE_HEADERS",
    "BroadcastHub",
    "Channel",
    "ChannelManager",
    "ChannelStream",
    "channel_event_response",
    "get_broadcast_hub",
    "reset_broadcast_hub",
    "set_broadcast_hub",
]
