"""
MessageService - the single entrypoint for creating, editing and deleting messages.

Every mutation goes through here so that persistence, event emission and
broadcast stay in lockstep:

    create: validate → persist → emit created → broadcast message
    update: validate → persist → emit updated
    delete: persist → emit deleted → broadcast deletion marker

Validation happens before anything is stored, emitted or broadcast.
"""

import logging

from personachat.core.events import (
    MessageCreatedEvent,
    MessageDeletedEvent,
    MessageEventBus,
    MessageUpdatedEvent,
    scope_for,
)
from personachat.core.exceptions import NotFoundError, ValidationError
from personachat.core.models import (
    ConversationKind,
    ConversationRef,
    DeletionMarker,
    DirectConversation,
    Message,
    NewMessage,
)
from personachat.realtime.broadcast import BroadcastHub, Channel
from personachat.storage.base import ChatRepository

logger = logging.getLogger(__name__)


class MessageService:
    """
    Message CRUD with events and broadcast.

    Example:
        >>> service = MessageService(repository, get_event_bus(), get_broadcast_hub())
        >>> message = await service.create_message(
        ...     NewMessage(content="hi", direct_message_id=dm.id)
        ... )
    """

    def __init__(self, repository: ChatRepository, bus: MessageEventBus, hub: BroadcastHub):
        self.repository = repository
        self.bus = bus
        self.hub = hub

    async def create_message(self, data: NewMessage) -> Message:
        """
        Create a message, notify listeners and push it to stream subscribers.

        Raises:
            ValidationError: Empty content, or not exactly one conversation id
            NotFoundError: The conversation does not exist
        """
        content = data.content.strip() if data.content else ""
        if not content:
            raise ValidationError("Message content cannot be empty")

        ref = data.resolve_ref()
        dm = await self._require_conversation(ref)

        message = Message(
            content=content,
            author_kind=data.author_kind,
            author_id=data.author_id,
            conversation_ref=ref,
        )
        message = await self.repository.create_message(message)
        logger.info(
            "Message %s created in %s by %s:%s",
            message.id,
            ref,
            message.author_kind.value,
            message.author_id,
        )

        self.bus.emit_created(MessageCreatedEvent(message=message, scope=scope_for(ref, dm)))
        self.hub.broadcast(Channel.for_ref(ref), message.to_payload())

        return message

    async def update_message(self, message_id: str, content: str) -> Message:
        """
        Edit a message's content.

        Stream subscribers are not notified of edits.
        """
        if not content or not content.strip():
            raise ValidationError("Message content cannot be empty")

        existing = await self.get_message(message_id)
        message = await self.repository.update_message(message_id, content.strip())

        dm = await self._direct_snapshot(message.conversation_ref)
        self.bus.emit_updated(
            MessageUpdatedEvent(
                message=message,
                previous_content=existing.content,
                scope=scope_for(message.conversation_ref, dm),
            )
        )
        return message

    async def delete_message(self, message_id: str) -> Message:
        """Delete a message and broadcast a deletion marker on its channel."""
        message = await self.repository.delete_message(message_id)
        ref = message.conversation_ref
        logger.info("Message %s deleted from %s", message_id, ref)

        dm = await self._direct_snapshot(ref)
        self.bus.emit_deleted(MessageDeletedEvent(message_id=message.id, scope=scope_for(ref, dm)))
        self.hub.broadcast(Channel.for_ref(ref), DeletionMarker(message_id=message.id).to_payload())

        return message

    async def get_message(self, message_id: str) -> Message:
        message = await self.repository.get_message(message_id)
        if message is None:
            raise NotFoundError(f"Message with ID {message_id} not found", entity_id=message_id)
        return message

    async def list_messages(self, ref: ConversationRef, limit: int = 50) -> list[Message]:
        return await self.repository.list_recent_messages(ref, limit)

    async def _require_conversation(self, ref: ConversationRef) -> DirectConversation | None:
        """Return the DM snapshot for DM refs; raise if the conversation is unknown."""
        if ref.kind is ConversationKind.DM:
            dm = await self.repository.get_direct_conversation(ref.id)
            if dm is None:
                raise NotFoundError(f"Direct conversation not found: {ref.id}", entity_id=ref.id)
            return dm

        if await self.repository.get_group(ref.id) is None:
            raise NotFoundError(f"Group not found: {ref.id}", entity_id=ref.id)
        return None

    async def _direct_snapshot(self, ref: ConversationRef) -> DirectConversation | None:
        if ref.kind is not ConversationKind.DM:
            return None
        return await self.repository.get_direct_conversation(ref.id)


__all__ = ["MessageService"]
