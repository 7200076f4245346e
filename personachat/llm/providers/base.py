"""Abstract base class for text-generation providers."""

from abc import ABC, abstractmethod
import logging
import time
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from personachat.core.exceptions import (
    GenerationError,
    NonRetryableGenerationError,
    RetryableGenerationError,
)
from personachat.llm.request_log import RequestLog, RequestLogEntry, RequestUsage

logger = logging.getLogger(__name__)

ChatMessages = list[dict[str, str]]


class BaseLLMProvider(ABC):
    """
    Abstract base class for text-generation providers.

    Subclasses implement ``_generate_once``; ``generate`` wraps it with
    retries for RetryableGenerationError and with the optional request log.
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout: float = 60.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        request_log: RequestLog | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize provider.

        Args:
            model: Model name
            api_key: Optional API key
            base_url: Optional custom base URL
            temperature: Default sampling temperature
            max_tokens: Completion token limit
            timeout: Per-request timeout in seconds
            max_retries: Attempts for retryable failures
            retry_delay: Base delay for exponential backoff
            request_log: Where to record each call, if anywhere
            **kwargs: Additional provider-specific arguments
        """
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.request_log = request_log
        self.kwargs = kwargs

    async def generate(
        self,
        system_prompt: str,
        messages: ChatMessages,
        temperature: float | None = None,
    ) -> tuple[str, dict[str, Any]]:
        """
        Generate a completion.

        Args:
            system_prompt: System message
            messages: Chat turns after the system message (role/content dicts)
            temperature: Overrides the provider default

        Returns:
            Tuple of (response_text, metadata_dict)

        Raises:
            RetryableGenerationError: Retries exhausted
            NonRetryableGenerationError: Client-side error, not retried
        """
        temperature = self.temperature if temperature is None else temperature
        started = time.perf_counter()
        attempts = 0

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(multiplier=self.retry_delay, min=self.retry_delay, max=30),
                retry=retry_if_exception_type(RetryableGenerationError),
                reraise=True,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    if attempts > 1:
                        logger.warning(
                            "%s retry %d/%d (model=%s)",
                            self.get_provider_name(),
                            attempts,
                            self.max_retries,
                            self.model,
                        )
                    text, metadata = await self._generate_once(system_prompt, messages, temperature)
        except GenerationError as e:
            self._log_request(system_prompt, messages, temperature, started, attempts, error=e)
            raise

        self._log_request(
            system_prompt, messages, temperature, started, attempts, text=text, metadata=metadata
        )
        return text, metadata

    @abstractmethod
    async def _generate_once(
        self,
        system_prompt: str,
        messages: ChatMessages,
        temperature: float,
    ) -> tuple[str, dict[str, Any]]:
        """Single backend call, raising a classified GenerationError on failure."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Get the provider name."""

    async def aclose(self) -> None:
        """Release network resources."""

    @staticmethod
    def classify_http_error(error: httpx.HTTPError, provider: str) -> GenerationError:
        """
        Map an httpx error onto the retry classes.

        Network errors, timeouts, 5xx and 429 are retryable; any other
        status is not.
        """
        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            detail = _error_detail(error.response)
            message = f"{provider} HTTP {status}: {detail}"
            if status == 429 or status >= 500:
                return RetryableGenerationError(message, status_code=status)
            return NonRetryableGenerationError(message, status_code=status)
        if isinstance(error, httpx.TimeoutException):
            return RetryableGenerationError(f"{provider} request timeout: {error}")
        return RetryableGenerationError(f"{provider} network error: {error}")

    def _log_request(
        self,
        system_prompt: str,
        messages: ChatMessages,
        temperature: float,
        started: float,
        attempts: int,
        text: str = "",
        metadata: dict[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        if self.request_log is None:
            return

        metadata = metadata or {}
        usage = None
        if "tokens_prompt" in metadata or "tokens_completion" in metadata:
            usage = RequestUsage(
                input_tokens=metadata.get("tokens_prompt"),
                output_tokens=metadata.get("tokens_completion"),
                total_tokens=metadata.get("tokens_total"),
            )

        self.request_log.record(
            RequestLogEntry(
                provider=self.get_provider_name(),
                model=metadata.get("model", self.model),
                temperature=temperature,
                messages=[{"role": "system", "content": system_prompt}, *messages],
                response=text,
                duration_ms=(time.perf_counter() - started) * 1000,
                status="error" if error is not None else "success",
                error=str(error) if error is not None else None,
                finish_reason=metadata.get("finish_reason"),
                usage=usage,
                attempts=max(attempts, 1),
            )
        )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return str(body)


__all__ = ["BaseLLMProvider", "ChatMessages"]
