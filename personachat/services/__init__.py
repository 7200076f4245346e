"""Services: message entrypoint, reply pipeline and listener lifecycle."""

from personachat.services.cleanser import DEFAULT_HIDDEN_TAGS, MessageCleanser
from personachat.services.context import ContextBuilder, ConversationContext
from personachat.services.listener_manager import ConversationListenerManager
from personachat.services.message_service import MessageService
from personachat.services.prompts import PromptBuilder, RenderedPrompt
from personachat.services.responder import PersonaResponder

__all__ = [
    "DEFAULT_HIDDEN_TAGS",
    "ContextBuilder",
    "ConversationContext",
    "ConversationListenerManager",
    "MessageCleanser",
    "MessageService",
    "PersonaResponder",
    "PromptBuilder",
    "RenderedPrompt",
]
