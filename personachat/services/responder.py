"""
PersonaResponder - one persona's reply to one conversation turn.

Pipeline (sequential):
    ContextBuilder.build → PromptBuilder.build → provider.generate
        → MessageCleanser.clean → MessageService.create_message

The created message re-enters the event bus like any other; the listener
manager ignores it because it is persona-authored.
"""

import asyncio
import logging

from personachat.core.models import AuthorKind, ConversationRef, Message, NewMessage
from personachat.llm.providers.base import BaseLLMProvider
from personachat.services.cleanser import DEFAULT_HIDDEN_TAGS, MessageCleanser
from personachat.services.context import DEFAULT_MESSAGE_LIMIT, ContextBuilder
from personachat.services.message_service import MessageService
from personachat.services.prompts import PromptBuilder

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE_TIMEOUT = 120.0


class PersonaResponder:
    """
    Generates and posts a persona's reply.

    ``respond`` never raises: any failure (context, generation, cleanup,
    persistence) or a timeout is logged and reported as None, so one
    persona cannot take down its siblings in a group fan-out.

    Example:
        >>> responder = PersonaResponder(message_service, context_builder, provider)
        >>> reply = await responder.respond(alice.id, ConversationRef.direct(dm.id))
    """

    def __init__(
        self,
        message_service: MessageService,
        context_builder: ContextBuilder,
        provider: BaseLLMProvider,
        prompt_builder: PromptBuilder | None = None,
        cleanser: MessageCleanser | None = None,
        temperature: float = 0.7,
        message_limit: int = DEFAULT_MESSAGE_LIMIT,
        hidden_tags: list[str] | tuple[str, ...] = DEFAULT_HIDDEN_TAGS,
        response_timeout: float = DEFAULT_RESPONSE_TIMEOUT,
    ):
        self.message_service = message_service
        self.context_builder = context_builder
        self.provider = provider
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.cleanser = cleanser or MessageCleanser()
        self.temperature = temperature
        self.message_limit = message_limit
        self.hidden_tags = list(hidden_tags)
        self.response_timeout = response_timeout

    async def respond(self, persona_id: str, ref: ConversationRef) -> Message | None:
        """
        Run the full pipeline for one persona.

        Returns:
            The posted message, or None if nothing was posted
        """
        try:
            return await asyncio.wait_for(
                self._run(persona_id, ref),
                timeout=self.response_timeout,
            )
        except TimeoutError:
            logger.error(
                "Reply from persona %s in %s timed out after %.0fs; dropped",
                persona_id,
                ref,
                self.response_timeout,
            )
        except Exception:
            logger.exception("Failed to generate/send reply from persona %s in %s", persona_id, ref)
        return None

    async def generate_text(self, persona_id: str, ref: ConversationRef) -> str:
        """Build the prompt, call the backend and return the cleaned reply text."""
        context = await self.context_builder.build(persona_id, ref, self.message_limit)
        prompt = self.prompt_builder.build(context)

        raw, metadata = await self.provider.generate(
            system_prompt=prompt.system,
            messages=[message.model_dump() for message in prompt.messages],
            temperature=self.temperature,
        )
        logger.debug(
            "Generated %d chars for %s in %s (%s)",
            len(raw),
            context.character_card.name,
            ref,
            metadata.get("model"),
        )

        return self.cleanser.clean(raw, self.hidden_tags)

    async def _run(self, persona_id: str, ref: ConversationRef) -> Message | None:
        text = await self.generate_text(persona_id, ref)
        if not text:
            logger.warning("Reply from persona %s in %s was empty after cleanup", persona_id, ref)
            return None

        message = await self.message_service.create_message(
            NewMessage.for_ref(ref, content=text, author_kind=AuthorKind.PERSONA, author_id=persona_id)
        )
        logger.info("Persona %s replied in %s (%s)", persona_id, ref, message.id)
        return message


__all__ = ["DEFAULT_RESPONSE_TIMEOUT", "PersonaResponder"]
