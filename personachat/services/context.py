"""
Conversation context gathering for reply generation.

Collects everything a prompt needs for one persona in one conversation:
the persona's character card, recent messages with resolved sender names,
the participant list and a display name for the conversation.
"""

from datetime import datetime
import logging
from typing import Literal

from pydantic import BaseModel, Field

from personachat.core.exceptions import NotFoundError
from personachat.core.models import AuthorKind, ConversationKind, ConversationRef, Persona
from personachat.storage.base import ChatRepository

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_LIMIT = 50

USER_PARTICIPANT_ID = "user"
USER_PARTICIPANT_NAME = "You"
USER_SENDER_NAME = "User"
UNKNOWN_SENDER_NAME = "Unknown"


class CharacterCard(BaseModel):
    """The persona being voiced."""

    id: str
    name: str
    description: str = ""
    avatar_url: str | None = None

    @classmethod
    def from_persona(cls, persona: Persona) -> "CharacterCard":
        return cls(
            id=persona.id,
            name=persona.name,
            description=persona.description or "",
            avatar_url=persona.avatar_url,
        )


class Participant(BaseModel):
    id: str
    name: str
    type: Literal["user", "persona"]
    description: str | None = None


class ContextMessage(BaseModel):
    id: str
    content: str
    sender: Participant
    created_at: datetime


class ConversationContext(BaseModel):
    """Input to PromptBuilder."""

    character_card: CharacterCard
    recent_messages: list[ContextMessage] = Field(default_factory=list)
    participants: list[Participant] = Field(default_factory=list)
    conversation_kind: ConversationKind
    conversation_name: str
    conversation_id: str


class ContextBuilder:
    """
    Builds ConversationContext from the repository.

    Example:
        >>> builder = ContextBuilder(repository)
        >>> context = await builder.build(alice.id, ConversationRef.direct(dm.id))
    """

    def __init__(self, repository: ChatRepository, message_limit: int = DEFAULT_MESSAGE_LIMIT):
        self.repository = repository
        self.message_limit = message_limit

    async def build(
        self,
        persona_id: str,
        ref: ConversationRef,
        limit: int | None = None,
    ) -> ConversationContext:
        """
        Gather context for ``persona_id`` replying in ``ref``.

        Raises:
            NotFoundError: If the persona or the conversation does not exist
        """
        persona = await self.repository.get_persona(persona_id)
        if persona is None:
            raise NotFoundError(f"Persona {persona_id} not found", entity_id=persona_id)

        if ref.kind is ConversationKind.DM:
            dm = await self.repository.get_direct_conversation(ref.id)
            if dm is None:
                raise NotFoundError(f"Direct conversation {ref.id} not found", entity_id=ref.id)
            dm_persona = dm.persona or persona
            participants = [
                self._persona_participant(dm_persona),
                Participant(id=USER_PARTICIPANT_ID, name=USER_PARTICIPANT_NAME, type="user"),
            ]
            conversation_name = dm_persona.name
        else:
            group = await self.repository.get_group(ref.id)
            if group is None:
                raise NotFoundError(f"Group {ref.id} not found", entity_id=ref.id)
            participants = []
            for participant_id in group.participant_persona_ids:
                member = await self.repository.get_persona(participant_id)
                if member is not None:
                    participants.append(self._persona_participant(member))
            conversation_name = group.name

        recent_messages = await self._recent_messages(ref, limit or self.message_limit)

        logger.debug(
            "Context for %s in %s: %d messages, %d participants",
            persona.name,
            ref,
            len(recent_messages),
            len(participants),
        )

        return ConversationContext(
            character_card=CharacterCard.from_persona(persona),
            recent_messages=recent_messages,
            participants=participants,
            conversation_kind=ref.kind,
            conversation_name=conversation_name,
            conversation_id=ref.id,
        )

    async def _recent_messages(self, ref: ConversationRef, limit: int) -> list[ContextMessage]:
        messages = await self.repository.list_recent_messages(ref, limit)
        senders: dict[str, Participant] = {}
        result = []
        for message in messages:
            key = f"{message.author_kind.value}:{message.author_id}"
            sender = senders.get(key)
            if sender is None:
                sender = await self._resolve_sender(message.author_kind, message.author_id)
                senders[key] = sender
            result.append(
                ContextMessage(
                    id=message.id,
                    content=message.content,
                    sender=sender,
                    created_at=message.created_at,
                )
            )
        return result

    async def _resolve_sender(self, author_kind: AuthorKind, author_id: str) -> Participant:
        if author_kind is AuthorKind.USER:
            return Participant(id=author_id, name=USER_SENDER_NAME, type="user")
        persona = await self.repository.get_persona(author_id)
        if persona is None:
            return Participant(id=author_id, name=UNKNOWN_SENDER_NAME, type="persona")
        return self._persona_participant(persona)

    @staticmethod
    def _persona_participant(persona: Persona) -> Participant:
        return Participant(
            id=persona.id,
            name=persona.name,
            type="persona",
            description=persona.description or None,
        )


__all__ = [
    "CharacterCard",
    "ContextBuilder",
    "ContextMessage",
    "ConversationContext",
    "Participant",
]
