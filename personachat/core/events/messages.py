"""
Message Events - lifecycle events for chat messages.

Event Flow:
    MessageService.create_message()
        ↓
    MessageCreatedEvent  → "message.created" + "dm.message.created" | "group.message.created"
        ↓
    ConversationListenerManager → PersonaResponder → MessageService.create_message()

Every event carries a scope that is either a DirectScope (with a snapshot of
the DM and its persona, so listeners do not need a lookup) or a GroupScope.
"""

from dataclasses import dataclass
from enum import Enum

from personachat.core.models import (
    ConversationKind,
    ConversationRef,
    DirectConversation,
    Message,
)

from .base import BaseEvent


class MessageEventType(str, Enum):
    """Event names used for listener registration."""

    MESSAGE_CREATED = "message.created"
    MESSAGE_UPDATED = "message.updated"
    MESSAGE_DELETED = "message.deleted"
    DM_MESSAGE_CREATED = "dm.message.created"
    DM_MESSAGE_UPDATED = "dm.message.updated"
    DM_MESSAGE_DELETED = "dm.message.deleted"
    GROUP_MESSAGE_CREATED = "group.message.created"
    GROUP_MESSAGE_UPDATED = "group.message.updated"
    GROUP_MESSAGE_DELETED = "group.message.deleted"

    @classmethod
    def scoped(cls, kind: ConversationKind, general: "MessageEventType") -> "MessageEventType":
        """Map a general event name to its DM-only or group-only variant."""
        return cls(f"{kind.value}.{general.value}")


@dataclass(frozen=True)
class DirectScope:
    """Event happened in a direct conversation."""

    dm_id: str
    dm: DirectConversation | None = None

    @property
    def kind(self) -> ConversationKind:
        return ConversationKind.DM

    @property
    def conversation_id(self) -> str:
        return self.dm_id


@dataclass(frozen=True)
class GroupScope:
    """Event happened in a group chat."""

    group_id: str

    @property
    def kind(self) -> ConversationKind:
        return ConversationKind.GROUP

    @property
    def conversation_id(self) -> str:
        return self.group_id


EventScope = DirectScope | GroupScope


def scope_for(ref: ConversationRef, dm: DirectConversation | None = None) -> EventScope:
    """Build the scope for a conversation reference."""
    if ref.is_direct:
        return DirectScope(dm_id=ref.id, dm=dm)
    return GroupScope(group_id=ref.id)


@dataclass(frozen=True, kw_only=True)
class MessageEvent(BaseEvent):
    """Common shape of the three message events."""

    scope: EventScope

    @property
    def conversation_id(self) -> str:
        return self.scope.conversation_id

    @property
    def conversation_ref(self) -> ConversationRef:
        return ConversationRef(kind=self.scope.kind, id=self.scope.conversation_id)

    @property
    def scoped_event_type(self) -> str:
        return MessageEventType.scoped(self.scope.kind, MessageEventType(self.event_type)).value


@dataclass(frozen=True, kw_only=True)
class MessageCreatedEvent(MessageEvent):
    """
    Emitted after a message is persisted.

    Attributes:
        message: The stored message
        scope: Conversation the message belongs to
    """

    message: Message

    @property
    def event_type(self) -> str:
        return MessageEventType.MESSAGE_CREATED.value


@dataclass(frozen=True, kw_only=True)
class MessageUpdatedEvent(MessageEvent):
    """Emitted after a message's content is edited."""

    message: Message
    previous_content: str

    @property
    def event_type(self) -> str:
        return MessageEventType.MESSAGE_UPDATED.value


@dataclass(frozen=True, kw_only=True)
class MessageDeletedEvent(MessageEvent):
    """Emitted after a message is removed."""

    message_id: str

    @property
    def event_type(self) -> str:
        return MessageEventType.MESSAGE_DELETED.value


__all__ = [
    "DirectScope",
    "EventScope",
    "GroupScope",
    "MessageCreatedEvent",
    "MessageDeletedEvent",
    "MessageEvent",
    "MessageEventType",
    "MessageUpdatedEvent",
    "scope_for",
]
