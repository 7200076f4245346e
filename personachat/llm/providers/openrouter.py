"""OpenRouter provider (OpenAI-compatible chat completions over REST)."""

import logging
from typing import Any

import httpx

from personachat.core.exceptions import NonRetryableGenerationError
from personachat.llm.providers.base import BaseLLMProvider, ChatMessages

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterProvider(BaseLLMProvider):
    """
    OpenRouter provider.

    Talks to ``{base_url}/chat/completions`` with bearer auth and the
    ``HTTP-Referer`` / ``X-Title`` attribution headers OpenRouter expects.

    Example:
        >>> provider = OpenRouterProvider(model="anthropic/claude-haiku-4.5", api_key="sk-...")
        >>> text, meta = await provider.generate("You are Alice.", [{"role": "user", "content": "hi"}])
        >>> await provider.aclose()
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.7,
        site_url: str = "http://localhost:8000",
        app_title: str = "personachat",
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize OpenRouter provider.

        Args:
            model: Model id (e.g., "anthropic/claude-haiku-4.5")
            api_key: OpenRouter API key
            base_url: API root (default: https://openrouter.ai/api/v1)
            temperature: Default sampling temperature
            site_url: Sent as HTTP-Referer
            app_title: Sent as X-Title
            transport: Custom httpx transport (tests)
            **kwargs: Passed to BaseLLMProvider (max_tokens, timeout, retries, request_log)
        """
        super().__init__(model, api_key, base_url, temperature, **kwargs)
        if not self.base_url:
            self.base_url = OPENROUTER_BASE_URL
        self.site_url = site_url
        self.app_title = app_title
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self._get_headers(),
                transport=self._transport,
            )
            logger.info("OpenRouter client initialized (model=%s)", self.model)
        return self._client

    def _get_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "HTTP-Referer": self.site_url,
            "X-Title": self.app_title,
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _generate_once(
        self,
        system_prompt: str,
        messages: ChatMessages,
        temperature: float,
    ) -> tuple[str, dict[str, Any]]:
        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "temperature": temperature,
            "max_tokens": self.max_tokens,
        }

        try:
            response = await self.client.post("/chat/completions", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            error = self.classify_http_error(e, "OpenRouter")
            logger.warning("%s", error)
            raise error from e

        try:
            result = response.json()
        except ValueError as e:
            raise NonRetryableGenerationError("OpenRouter returned invalid JSON") from e

        choices = result.get("choices") or []
        if not choices:
            raise NonRetryableGenerationError("No response generated")

        choice = choices[0]
        content = (choice.get("message") or {}).get("content") or ""
        usage = result.get("usage") or {}

        metadata = {
            "provider": "openrouter",
            "model": result.get("model", self.model),
            "finish_reason": choice.get("finish_reason"),
            "tokens_prompt": usage.get("prompt_tokens"),
            "tokens_completion": usage.get("completion_tokens"),
            "tokens_total": usage.get("total_tokens"),
        }

        logger.debug(
            "OpenRouter generation complete: %s tokens (model=%s)",
            usage.get("total_tokens"),
            metadata["model"],
        )

        return content, metadata

    async def aclose(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def get_provider_name(self) -> str:
        """Get provider name."""
        return "openrouter"


__all__ = ["OPENROUTER_BASE_URL", "OpenRouterProvider"]
