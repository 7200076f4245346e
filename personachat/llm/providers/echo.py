"""Deterministic offline provider for development and tests."""

import asyncio
from collections.abc import Callable
import logging
from typing import Any

from personachat.llm.providers.base import BaseLLMProvider, ChatMessages

logger = logging.getLogger(__name__)

ReplyFunction = Callable[[str, ChatMessages], str]


class EchoProvider(BaseLLMProvider):
    """
    Provider that never leaves the process.

    Replies come from, in order: queued responses (``set_next_response``;
    an exception instance is raised instead of returned), a ``reply``
    function, or a default that echoes the last history line inside the
    same tag format a real model uses.

    Example:
        >>> provider = EchoProvider()
        >>> provider.set_next_response("<response>Hello!</response>")
        >>> text, _ = await provider.generate("system", [{"role": "user", "content": "hi"}])
        >>> provider.call_count
        1
    """

    def __init__(
        self,
        model: str = "echo",
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.7,
        reply: ReplyFunction | None = None,
        delay: float = 0.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(model, api_key, base_url, temperature, **kwargs)
        self.reply = reply
        self.delay = delay
        self.responses: list[str | Exception] = []
        self.calls: list[tuple[str, ChatMessages]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def _generate_once(
        self,
        system_prompt: str,
        messages: ChatMessages,
        temperature: float,
    ) -> tuple[str, dict[str, Any]]:
        self.calls.append((system_prompt, messages))
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.responses:
            queued = self.responses.pop(0)
            if isinstance(queued, Exception):
                raise queued
            text = queued
        elif self.reply is not None:
            text = self.reply(system_prompt, messages)
        else:
            text = self._default_reply(messages)

        return text, {"provider": "echo", "model": self.model}

    @staticmethod
    def _default_reply(messages: ChatMessages) -> str:
        user_turns = [m["content"] for m in messages if m.get("role") == "user"]
        lines = [line for line in (user_turns[-1] if user_turns else "").splitlines() if line]
        last = lines[-1].split("]: ", 1)[-1] if lines else ""
        return f"Thinking it over.</thinking>\n<response>You said: {last}</response>"

    def set_next_response(self, response: str | Exception) -> None:
        """Queue the next reply, or an error to raise."""
        self.responses.append(response)

    def reset(self) -> None:
        self.responses.clear()
        self.calls.clear()

    def get_provider_name(self) -> str:
        return "echo"


__all__ = ["EchoProvider", "ReplyFunction"]
