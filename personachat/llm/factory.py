"""
LLM Provider Factory - creation of text-generation providers.

Architecture:
- Provider Registry: add a backend by registering its class
- Factory Pattern: create providers by name or from PersonaChatConfig
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from personachat.core.exceptions import ConfigurationError
from personachat.llm.request_log import RequestLog

if TYPE_CHECKING:
    from personachat.core.config import PersonaChatConfig
    from personachat.llm.providers.base import BaseLLMProvider

logger = logging.getLogger(__name__)


LLM_PROVIDER_REGISTRY: dict[str, type[BaseLLMProvider]] = {}
_providers_loaded = False

PROVIDERS_REQUIRING_KEY = {"openrouter"}


def register_llm_provider(name: str, provider_class: type[BaseLLMProvider]) -> None:
    """
    Register a new LLM provider.

    Args:
        name: Provider name (openrouter, ollama, echo)
        provider_class: Provider class
    """
    LLM_PROVIDER_REGISTRY[name.lower()] = provider_class
    logger.debug("Registered LLM provider: %s", name)


def _lazy_load_providers() -> None:
    """Import the built-in providers on first use; custom registrations win."""
    global _providers_loaded
    if _providers_loaded:
        return

    from personachat.llm.providers.echo import EchoProvider
    from personachat.llm.providers.ollama import OllamaProvider
    from personachat.llm.providers.openrouter import OpenRouterProvider

    builtins = {"echo": EchoProvider, "ollama": OllamaProvider, "openrouter": OpenRouterProvider}
    for name, provider_class in builtins.items():
        if name not in LLM_PROVIDER_REGISTRY:
            register_llm_provider(name, provider_class)
    _providers_loaded = True


def _resolve(provider: str) -> type[BaseLLMProvider]:
    _lazy_load_providers()
    provider_name = provider.lower()
    if provider_name not in LLM_PROVIDER_REGISTRY:
        available = ", ".join(sorted(LLM_PROVIDER_REGISTRY))
        raise ConfigurationError(
            f"Unknown LLM provider: {provider_name}. Available providers: {available}"
        )
    return LLM_PROVIDER_REGISTRY[provider_name]


class LLMProviderFactory:
    """
    Factory for creating LLM providers.

    Uses Provider Registry for extensibility.
    """

    @staticmethod
    def create_from_config(config: PersonaChatConfig) -> BaseLLMProvider:
        """
        Create LLM provider from configuration.

        Args:
            config: PersonaChatConfig with LLM settings

        Returns:
            BaseLLMProvider instance

        Raises:
            ConfigurationError: If provider is unknown or settings are missing
        """
        provider_name = config.llm_provider.lower()
        provider_class = _resolve(provider_name)

        if provider_name in PROVIDERS_REQUIRING_KEY and not config.llm_api_key:
            raise ConfigurationError(
                f"Provider '{provider_name}' requires llm_api_key. "
                f"Set it in config.yaml or via PERSONACHAT_LLM_API_KEY env variable"
            )

        kwargs: dict[str, Any] = {
            "max_tokens": config.llm_max_tokens,
            "timeout": config.llm_timeout,
            "max_retries": config.max_retries,
            "retry_delay": config.retry_delay,
        }
        if config.request_log_dir is not None:
            kwargs["request_log"] = RequestLog(config.request_log_dir)
        if provider_name == "openrouter":
            kwargs["site_url"] = config.site_url
            kwargs["app_title"] = config.app_title

        provider = provider_class(
            model=config.llm_model,
            api_key=config.llm_api_key,
            base_url=config.llm_base_url,
            temperature=config.llm_temperature,
            **kwargs,
        )

        logger.info(
            "Created LLM provider: %s (model=%s, temperature=%s)",
            provider_name,
            config.llm_model,
            config.llm_temperature,
        )

        return provider

    @staticmethod
    def create(
        provider: str,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.7,
        **kwargs: Any,
    ) -> BaseLLMProvider:
        """
        Create LLM provider directly.

        Args:
            provider: Provider name (openrouter, ollama, echo)
            model: Model name
            api_key: API key (for openrouter)
            base_url: Base URL override
            temperature: Generation temperature
            **kwargs: Additional parameters

        Returns:
            BaseLLMProvider instance
        """
        provider_class = _resolve(provider)
        return provider_class(
            model=model,
            api_key=api_key,
            base_url=base_url,
            temperature=temperature,
            **kwargs,
        )


__all__ = ["LLM_PROVIDER_REGISTRY", "LLMProviderFactory", "register_llm_provider"]
