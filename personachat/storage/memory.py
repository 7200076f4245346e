"""In-memory ChatRepository for development, demos and tests."""

import logging

from personachat.core.exceptions import NotFoundError, ValidationError
from personachat.core.models import (
    ConversationKind,
    ConversationRef,
    DirectConversation,
    GroupConversation,
    Message,
    Persona,
)

logger = logging.getLogger(__name__)

MAX_GROUP_PARTICIPANTS = 9


class InMemoryChatRepository:
    """
    Dict-backed repository.

    Not persistent: everything is lost when the process exits. All methods
    are coroutines so it is interchangeable with I/O-backed implementations.

    Example:
        >>> repo = InMemoryChatRepository()
        >>> alice = await repo.create_persona(Persona(name="Alice"))
        >>> dm = await repo.create_direct_conversation(alice.id)
    """

    def __init__(self, max_group_participants: int = MAX_GROUP_PARTICIPANTS):
        self.max_group_participants = max_group_participants
        self._personas: dict[str, Persona] = {}
        self._dms: dict[str, DirectConversation] = {}
        self._groups: dict[str, GroupConversation] = {}
        self._messages: dict[str, Message] = {}
        self._timeline: dict[ConversationRef, list[str]] = {}

    # Personas

    async def create_persona(self, persona: Persona) -> Persona:
        self._personas[persona.id] = persona
        logger.debug("Created persona %s (%s)", persona.id, persona.name)
        return persona

    async def get_persona(self, persona_id: str) -> Persona | None:
        return self._personas.get(persona_id)

    async def list_personas(self) -> list[Persona]:
        return list(self._personas.values())

    # Direct conversations

    async def create_direct_conversation(self, persona_id: str) -> DirectConversation:
        persona = self._require_persona(persona_id)
        dm = DirectConversation(persona_id=persona.id, persona=persona)
        self._dms[dm.id] = dm
        logger.debug("Created direct conversation %s with %s", dm.id, persona.name)
        return dm

    async def get_direct_conversation(self, dm_id: str) -> DirectConversation | None:
        dm = self._dms.get(dm_id)
        if dm is None:
            return None
        return dm.model_copy(update={"persona": self._personas.get(dm.persona_id)})

    async def list_direct_conversations(self) -> list[DirectConversation]:
        return list(self._dms.values())

    async def delete_direct_conversation(self, dm_id: str) -> DirectConversation:
        dm = self._dms.pop(dm_id, None)
        if dm is None:
            raise NotFoundError(f"Direct conversation not found: {dm_id}", entity_id=dm_id)
        await self.delete_conversation_messages(dm.ref)
        return dm

    # Groups

    async def create_group(self, name: str, participant_persona_ids: list[str]) -> GroupConversation:
        participants = self._validate_participants(participant_persona_ids)

        group = GroupConversation(name=name, participant_persona_ids=participants)
        self._groups[group.id] = group
        logger.debug("Created group %s (%s) with %d personas", group.id, name, len(participants))
        return group

    async def get_group(self, group_id: str) -> GroupConversation | None:
        return self._groups.get(group_id)

    async def list_groups(self) -> list[GroupConversation]:
        return list(self._groups.values())

    async def delete_group(self, group_id: str) -> GroupConversation:
        group = self._groups.pop(group_id, None)
        if group is None:
            raise NotFoundError(f"Group not found: {group_id}", entity_id=group_id)
        await self.delete_conversation_messages(group.ref)
        return group

    async def set_group_participants(
        self, group_id: str, participant_persona_ids: list[str]
    ) -> GroupConversation:
        """Replace a group's participant list; listeners see it on the next message."""
        group = self._groups.get(group_id)
        if group is None:
            raise NotFoundError(f"Group not found: {group_id}", entity_id=group_id)
        participants = self._validate_participants(participant_persona_ids)
        updated = group.model_copy(update={"participant_persona_ids": participants})
        self._groups[group_id] = updated
        return updated

    async def get_conversation_participants(self, ref: ConversationRef) -> list[str]:
        if ref.kind is ConversationKind.DM:
            dm = self._dms.get(ref.id)
            if dm is None:
                raise NotFoundError(f"Direct conversation not found: {ref.id}", entity_id=ref.id)
            return [dm.persona_id]

        group = self._groups.get(ref.id)
        if group is None:
            raise NotFoundError(f"Group not found: {ref.id}", entity_id=ref.id)
        return list(group.participant_persona_ids)

    # Messages

    async def create_message(self, message: Message) -> Message:
        self._messages[message.id] = message
        self._timeline.setdefault(message.conversation_ref, []).append(message.id)
        return message

    async def get_message(self, message_id: str) -> Message | None:
        return self._messages.get(message_id)

    async def update_message(self, message_id: str, content: str) -> Message:
        message = self._require_message(message_id)
        updated = message.model_copy(update={"content": content})
        self._messages[message_id] = updated
        return updated

    async def delete_message(self, message_id: str) -> Message:
        message = self._require_message(message_id)
        del self._messages[message_id]
        timeline = self._timeline.get(message.conversation_ref)
        if timeline is not None and message_id in timeline:
            timeline.remove(message_id)
        return message

    async def list_recent_messages(self, ref: ConversationRef, limit: int) -> list[Message]:
        if limit <= 0:
            return []
        ids = self._timeline.get(ref, [])[-limit:]
        return [self._messages[message_id] for message_id in ids]

    async def delete_conversation_messages(self, ref: ConversationRef) -> int:
        ids = self._timeline.pop(ref, [])
        for message_id in ids:
            self._messages.pop(message_id, None)
        return len(ids)

    def _require_persona(self, persona_id: str) -> Persona:
        persona = self._personas.get(persona_id)
        if persona is None:
            raise NotFoundError(f"Persona not found: {persona_id}", entity_id=persona_id)
        return persona

    def _validate_participants(self, participant_persona_ids: list[str]) -> list[str]:
        participants = list(dict.fromkeys(participant_persona_ids))
        if not participants:
            raise ValidationError("A group needs at least one persona")
        if len(participants) > self.max_group_participants:
            raise ValidationError(
                f"A group can have at most {self.max_group_participants} personas "
                f"(got {len(participants)})"
            )
        for persona_id in participants:
            self._require_persona(persona_id)
        return participants

    def _require_message(self, message_id: str) -> Message:
        message = self._messages.get(message_id)
        if message is None:
            raise NotFoundError(f"Message not found: {message_id}", entity_id=message_id)
        return message


__all__ = ["MAX_GROUP_PARTICIPANTS", "InMemoryChatRepository"]
