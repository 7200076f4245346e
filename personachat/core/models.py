"""Pydantic models for personas, conversations and messages."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from personachat.core.exceptions import ValidationError


def _new_id() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


class ConversationKind(str, Enum):
    """Which kind of conversation a message belongs to."""

    DM = "dm"
    GROUP = "group"


class AuthorKind(str, Enum):
    """Who wrote a message."""

    USER = "user"
    PERSONA = "persona"


class ConversationRef(BaseModel):
    """
    Reference to exactly one conversation.

    Hashable, so it can key registries. ``str(ref)`` gives the namespaced
    form used for channel ids (``dm:<id>`` / ``group:<id>``).
    """

    model_config = ConfigDict(frozen=True)

    kind: ConversationKind
    id: str = Field(..., min_length=1)

    @classmethod
    def direct(cls, dm_id: str) -> "ConversationRef":
        return cls(kind=ConversationKind.DM, id=dm_id)

    @classmethod
    def group(cls, group_id: str) -> "ConversationRef":
        return cls(kind=ConversationKind.GROUP, id=group_id)

    @property
    def is_direct(self) -> bool:
        return self.kind is ConversationKind.DM

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


class Persona(BaseModel):
    """A non-human participant whose replies are generated."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=_new_id, description="Unique persona ID")
    name: str = Field(..., min_length=1, description="Display name")
    description: str = Field(default="", description="Character description used in prompts")
    avatar_url: str | None = Field(default=None, description="Avatar image URL")
    created_at: datetime = Field(default_factory=_now)


class DirectConversation(BaseModel):
    """One user talking to exactly one persona."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    persona_id: str
    persona: Persona | None = Field(default=None, description="Denormalized persona snapshot")
    created_at: datetime = Field(default_factory=_now)

    @property
    def ref(self) -> ConversationRef:
        return ConversationRef.direct(self.id)


class GroupConversation(BaseModel):
    """A named group chat with one to nine personas."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    name: str
    participant_persona_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)

    @property
    def ref(self) -> ConversationRef:
        return ConversationRef.group(self.id)


Conversation = DirectConversation | GroupConversation


class Message(BaseModel):
    """
    A persisted chat message.

    Serialized with camelCase keys for browser clients; see ``to_payload``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    content: str
    author_kind: AuthorKind
    author_id: str
    conversation_ref: ConversationRef
    created_at: datetime = Field(default_factory=_now)

    @property
    def is_from_persona(self) -> bool:
        return self.author_kind is AuthorKind.PERSONA

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict as pushed to streaming clients."""
        return self.model_dump(mode="json", by_alias=True)


class NewMessage(BaseModel):
    """
    Input for message creation.

    Carries the two optional conversation ids exactly as a client sends
    them; ``resolve_ref`` enforces that exactly one is set.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content: str
    author_kind: AuthorKind = AuthorKind.USER
    author_id: str = "user"
    direct_message_id: str | None = None
    group_id: str | None = None

    @classmethod
    def for_ref(
        cls,
        ref: ConversationRef,
        content: str,
        author_kind: AuthorKind,
        author_id: str,
    ) -> "NewMessage":
        if ref.is_direct:
            return cls(
                content=content,
                author_kind=author_kind,
                author_id=author_id,
                direct_message_id=ref.id,
            )
        return cls(content=content, author_kind=author_kind, author_id=author_id, group_id=ref.id)

    def resolve_ref(self) -> ConversationRef:
        """
        Return the single conversation this message targets.

        Raises:
            ValidationError: If both or neither conversation ids are set
        """
        if self.direct_message_id and self.group_id:
            raise ValidationError("Message cannot belong to both a DirectMessage and a Group")
        if self.direct_message_id:
            return ConversationRef.direct(self.direct_message_id)
        if self.group_id:
            return ConversationRef.group(self.group_id)
        raise ValidationError("Message must belong to either a DirectMessage or a Group")


class DeletionMarker(BaseModel):
    """Broadcast in place of a message that was deleted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: Literal["message_deleted"] = "message_deleted"
    message_id: str
    timestamp: datetime = Field(default_factory=_now)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


__all__ = [
    "AuthorKind",
    "Conversation",
    "ConversationKind",
    "ConversationRef",
    "DeletionMarker",
    "DirectConversation",
    "GroupConversation",
    "Message",
    "NewMessage",
    "Persona",
]
