"""Persistence collaborator: repository protocol and in-memory implementation."""

from personachat.storage.base import ChatRepository
from personachat.storage.memory import MAX_GROUP_PARTICIPANTS, InMemoryChatRepository

__all__ = ["MAX_GROUP_PARTICIPANTS", "ChatRepository", "InMemoryChatRepository"]
