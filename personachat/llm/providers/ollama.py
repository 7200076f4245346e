"""Ollama provider for local models."""

import logging
from typing import Any

import httpx

from personachat.core.exceptions import NonRetryableGenerationError
from personachat.llm.providers.base import BaseLLMProvider, ChatMessages

logger = logging.getLogger(__name__)

OLLAMA_BASE_URL = "http://localhost:11434"


class OllamaProvider(BaseLLMProvider):
    """
    Ollama provider for local models.

    Supports models like gemma, llama3, mistral, etc. The assistant prefill
    is sent as the last chat turn; Ollama continues it like a hosted API.
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.7,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize Ollama provider.

        Args:
            model: Model name (e.g., "gemma2", "llama3.1:8b")
            api_key: Not used for Ollama (kept for interface compatibility)
            base_url: Ollama server URL (default: http://localhost:11434)
            temperature: Default sampling temperature
            transport: Custom httpx transport (tests)
            **kwargs: Passed to BaseLLMProvider
        """
        super().__init__(model, api_key, base_url, temperature, **kwargs)
        if not self.base_url:
            self.base_url = OLLAMA_BASE_URL
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
            logger.info("Ollama client initialized (model=%s, url=%s)", self.model, self.base_url)
        return self._client

    async def _generate_once(
        self,
        system_prompt: str,
        messages: ChatMessages,
        temperature: float,
    ) -> tuple[str, dict[str, Any]]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": self.max_tokens,
            },
        }

        try:
            response = await self.client.post("/api/chat", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            error = self.classify_http_error(e, "Ollama")
            logger.warning("%s", error)
            raise error from e

        try:
            result = response.json()
            content = result["message"]["content"]
        except (ValueError, KeyError, TypeError) as e:
            raise NonRetryableGenerationError("Ollama returned an unexpected response") from e

        metadata = {
            "provider": "ollama",
            "model": self.model,
            "base_url": self.base_url,
            "tokens_prompt": result.get("prompt_eval_count", 0),
            "tokens_completion": result.get("eval_count", 0),
            "total_duration_ms": result.get("total_duration", 0) / 1_000_000,
        }

        logger.debug(
            "Ollama generation complete: %d tokens, %.2fms",
            result.get("eval_count", 0),
            metadata["total_duration_ms"],
        )

        return content, metadata

    async def aclose(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def get_provider_name(self) -> str:
        """Get provider name."""
        return "ollama"


__all__ = ["OLLAMA_BASE_URL", "OllamaProvider"]
