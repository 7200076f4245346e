"""
ChatRuntime - wires every personachat component from configuration.

One runtime per process. ``get_runtime()`` keeps it in a process slot, so a
reloaded application module reuses the existing runtime (and with it the
listener registry) instead of attaching a second set of responders.
"""

import logging
from typing import Any

from personachat.core import slots
from personachat.core.config import PersonaChatConfig
from personachat.core.events import MessageEventBus, get_event_bus
from personachat.core.models import (
    ConversationRef,
    DirectConversation,
    GroupConversation,
)
from personachat.llm.factory import LLMProviderFactory
from personachat.llm.providers.base import BaseLLMProvider
from personachat.realtime.broadcast import BroadcastHub, get_broadcast_hub
from personachat.services.cleanser import MessageCleanser
from personachat.services.context import ContextBuilder
from personachat.services.listener_manager import ConversationListenerManager
from personachat.services.message_service import MessageService
from personachat.services.prompts import PromptBuilder
from personachat.services.responder import PersonaResponder
from personachat.storage.base import ChatRepository
from personachat.storage.memory import InMemoryChatRepository

logger = logging.getLogger(__name__)

_SLOT = "runtime"


class ChatRuntime:
    """
    Facade over repository, bus, hub, provider and services.

    Any component can be injected; the rest are built from ``config``.

    Example:
        >>> runtime = ChatRuntime(PersonaChatConfig(llm_provider="echo"))
        >>> await runtime.start()
        >>> dm = await runtime.create_direct_conversation(alice.id)
        >>> await runtime.close()
    """

    def __init__(
        self,
        config: PersonaChatConfig | None = None,
        repository: ChatRepository | None = None,
        bus: MessageEventBus | None = None,
        hub: BroadcastHub | None = None,
        provider: BaseLLMProvider | None = None,
    ):
        self.config = config or PersonaChatConfig.load()
        self.repository = repository or InMemoryChatRepository(
            max_group_participants=self.config.max_group_participants
        )
        self.bus = bus or get_event_bus()
        self.hub = hub or get_broadcast_hub(max_replay=self.config.replay_queue_size)
        self.provider = provider or LLMProviderFactory.create_from_config(self.config)

        self.message_service = MessageService(self.repository, self.bus, self.hub)
        self.context_builder = ContextBuilder(
            self.repository, message_limit=self.config.context_message_limit
        )
        self.responder = PersonaResponder(
            message_service=self.message_service,
            context_builder=self.context_builder,
            provider=self.provider,
            prompt_builder=PromptBuilder(),
            cleanser=MessageCleanser(),
            temperature=self.config.llm_temperature,
            message_limit=self.config.context_message_limit,
            hidden_tags=self.config.hidden_content_tags,
            response_timeout=self.config.response_timeout,
        )
        self.listeners = ConversationListenerManager(self.bus, self.repository, self.responder)

    async def start(self) -> None:
        """Attach listeners to every stored conversation."""
        await self.listeners.initialize()

    async def close(self) -> None:
        """Detach listeners, wait for in-flight replies and close the backend client."""
        self.listeners.shutdown()
        await self.bus.drain()
        await self.provider.aclose()

    async def create_direct_conversation(self, persona_id: str) -> DirectConversation:
        dm = await self.repository.create_direct_conversation(persona_id)
        self._notify_listeners(lambda: self.listeners.attach(dm), dm.ref)
        return dm

    async def delete_direct_conversation(self, dm_id: str) -> DirectConversation:
        ref = ConversationRef.direct(dm_id)
        self._notify_listeners(lambda: self.listeners.detach(ref), ref)
        deleted = await self.repository.delete_direct_conversation(dm_id)
        self.hub.manager(ref.kind).clear_replay(ref.id)
        return deleted

    async def create_group(self, name: str, participant_persona_ids: list[str]) -> GroupConversation:
        group = await self.repository.create_group(name, participant_persona_ids)
        self._notify_listeners(lambda: self.listeners.attach(group), group.ref)
        return group

    async def delete_group(self, group_id: str) -> GroupConversation:
        ref = ConversationRef.group(group_id)
        self._notify_listeners(lambda: self.listeners.detach(ref), ref)
        deleted = await self.repository.delete_group(group_id)
        self.hub.manager(ref.kind).clear_replay(ref.id)
        return deleted

    def get_status(self) -> dict[str, Any]:
        return {
            "listeners": self.listeners.get_status(),
            "bus": self.bus.get_stats(),
            "channels": self.hub.get_stats(),
            "provider": self.provider.get_provider_name(),
            "model": self.provider.model,
        }

    @staticmethod
    def _notify_listeners(action, ref: ConversationRef) -> None:
        try:
            action()
        except Exception:
            logger.exception("Listener update failed for %s", ref)


def get_runtime(config: PersonaChatConfig | None = None) -> ChatRuntime:
    """
    Get the process-wide ChatRuntime, creating it on first call.

    ``config`` only applies when the runtime is created by this call.
    """
    return slots.get_or_create(_SLOT, lambda: ChatRuntime(config))


def set_runtime(runtime: ChatRuntime) -> None:
    slots.put(_SLOT, runtime)


def reset_runtime() -> None:
    slots.clear(_SLOT)


__all__ = ["ChatRuntime", "get_runtime", "reset_runtime", "set_runtime"]
