"""LLM layer for personachat - providers, factory and request log."""

from personachat.llm.factory import LLMProviderFactory, register_llm_provider
from personachat.llm.providers import (
    BaseLLMProvider,
    EchoProvider,
    OllamaProvider,
    OpenRouterProvider,
)
from personachat.llm.request_log import RequestLog, RequestLogEntry

__all__ = [
    "BaseLLMProvider",
    "EchoProvider",
    "LLMProviderFactory",
    "OllamaProvider",
    "OpenRouterProvider",
    "RequestLog",
    "RequestLogEntry",
    "register_llm_provider",
]
