"""Text-generation providers for personachat."""

from personachat.llm.providers.base import BaseLLMProvider, ChatMessages
from personachat.llm.providers.echo import EchoProvider
from personachat.llm.providers.ollama import OllamaProvider
from personachat.llm.providers.openrouter import OpenRouterProvider

__all__ = [
    "BaseLLMProvider",
    "ChatMessages",
    "EchoProvider",
    "OllamaProvider",
    "OpenRouterProvider",
]
