"""
personachat - real-time chat with scripted persona bots.

Main Features:
- Direct messages and group chats with generated persona replies
- Process-wide event bus for message lifecycle events
- Per-channel broadcast with a short replay buffer, streamed over SSE
- Exactly one auto-responder per conversation, safe across reloads

Quick Start:
    >>> from personachat import ChatRuntime, PersonaChatConfig
    >>> runtime = ChatRuntime(PersonaChatConfig(llm_provider="echo"))
    >>> await runtime.start()

Architecture:
    MessageService → MessageEventBus → ConversationListenerManager → PersonaResponder
                   ↘ BroadcastHub → ChannelStream (SSE)
"""

__version__ = "0.1.0"

from personachat.core.config import PersonaChatConfig
from personachat.core.exceptions import (
    ConfigurationError,
    GenerationError,
    InvalidChannelError,
    NotFoundError,
    PersonaChatError,
    ValidationError,
)
from personachat.core.models import (
    AuthorKind,
    ConversationKind,
    ConversationRef,
    DirectConversation,
    GroupConversation,
    Message,
    NewMessage,
    Persona,
)
from personachat.runtime import ChatRuntime, get_runtime, reset_runtime

__all__ = [
    "AuthorKind",
    "ChatRuntime",
    "ConfigurationError",
    "ConversationKind",
    "ConversationRef",
    "DirectConversation",
    "GenerationError",
    "GroupConversation",
    "InvalidChannelError",
    "Message",
    "NewMessage",
    "NotFoundError",
    "Persona",
    "PersonaChatConfig",
    "PersonaChatError",
    "ValidationError",
    "__version__",
    "get_runtime",
    "reset_runtime",
]
