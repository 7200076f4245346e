"""
Storage Protocol.

The real-time core never touches a database directly. Everything it needs
from persistence goes through ChatRepository, so any backend (in-memory,
SQL, document store) can be plugged in.

Usage:
    class SqlChatRepository:
        async def get_persona(self, persona_id: str) -> Persona | None:
            ...

    repository: ChatRepository = SqlChatRepository(...)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from personachat.core.models import (
        ConversationRef,
        DirectConversation,
        GroupConversation,
        Message,
        Persona,
    )


@runtime_checkable
class ChatRepository(Protocol):
    """
    Protocol for chat persistence.

    Lookups return None for unknown ids; mutations on unknown ids raise
    NotFoundError. Message lists are chronological (oldest first).
    """

    async def create_persona(self, persona: Persona) -> Persona: ...

    async def get_persona(self, persona_id: str) -> Persona | None: ...

    async def list_personas(self) -> list[Persona]: ...

    async def create_direct_conversation(self, persona_id: str) -> DirectConversation:
        """
        Open a DM with one persona.

        Raises:
            NotFoundError: If the persona does not exist
        """
        ...

    async def get_direct_conversation(self, dm_id: str) -> DirectConversation | None: ...

    async def list_direct_conversations(self) -> list[DirectConversation]: ...

    async def delete_direct_conversation(self, dm_id: str) -> DirectConversation: ...

    async def create_group(self, name: str, participant_persona_ids: list[str]) -> GroupConversation:
        """
        Create a group chat.

        Raises:
            ValidationError: If the participant count is out of bounds
            NotFoundError: If a participant persona does not exist
        """
        ...

    async def get_group(self, group_id: str) -> GroupConversation | None: ...

    async def list_groups(self) -> list[GroupConversation]: ...

    async def delete_group(self, group_id: str) -> GroupConversation: ...

    async def get_conversation_participants(self, ref: ConversationRef) -> list[str]:
        """Persona ids taking part in a conversation, read at call time."""
        ...

    async def create_message(self, message: Message) -> Message: ...

    async def get_message(self, message_id: str) -> Message | None: ...

    async def update_message(self, message_id: str, content: str) -> Message: ...

    async def delete_message(self, message_id: str) -> Message: ...

    async def list_recent_messages(self, ref: ConversationRef, limit: int) -> list[Message]:
        """The last ``limit`` messages of a conversation, oldest first."""
        ...

    async def delete_conversation_messages(self, ref: ConversationRef) -> int: ...


__all__ = ["ChatRepository"]
