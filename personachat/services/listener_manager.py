"""
ConversationListenerManager - exactly one auto-responder per conversation.

State per conversation:

    UNREGISTERED --attach--> REGISTERED --detach--> UNREGISTERED

The registry (ConversationRef → unsubscribe handle) is the single source of
truth. Attaching a registered conversation and detaching an unregistered
one are silent no-ops; both happen routinely when bootstrap overlaps with
creation notifications or when application code is reloaded.

Triggers:
- initialize(): attach every existing DM and group (service bootstrap)
- attach() / add_conversation_listener(): conversation created at runtime
- detach(): conversation deleted at runtime
- shutdown(): detach everything and allow a later initialize()
"""

import asyncio
import logging
from typing import Any

from personachat.core.events import MessageCreatedEvent, MessageEventBus, Unsubscribe
from personachat.core.models import (
    Conversation,
    ConversationKind,
    ConversationRef,
    DirectConversation,
)
from personachat.services.responder import PersonaResponder
from personachat.storage.base import ChatRepository

logger = logging.getLogger(__name__)


class ConversationListenerManager:
    """
    Attaches and detaches per-conversation responders on the event bus.

    Attached handlers ignore persona-authored messages. A DM gets one reply
    from its persona; a group gets one reply from every current participant
    other than the author, generated concurrently.

    Usage:
        manager = ConversationListenerManager(bus, repository, responder)
        await manager.initialize()
        manager.attach(dm)
        manager.detach(dm.ref)
        manager.shutdown()
    """

    def __init__(
        self,
        bus: MessageEventBus,
        repository: ChatRepository,
        responder: PersonaResponder,
    ):
        self.bus = bus
        self.repository = repository
        self.responder = responder
        self._registry: dict[ConversationRef, Unsubscribe] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def initialize(self) -> None:
        """Attach a listener to every stored conversation. No-op while running."""
        if self._running:
            logger.info("Listener manager already running")
            return

        logger.info("Initializing conversation listeners")

        dms = await self.repository.list_direct_conversations()
        for dm in dms:
            self.attach(dm)

        groups = await self.repository.list_groups()
        for group in groups:
            self.attach(group)

        self._running = True
        logger.info(
            "Conversation listeners ready: %d DMs, %d groups", len(dms), len(groups)
        )

    def attach(self, conversation: Conversation) -> bool:
        """
        Register the responder for a conversation.

        Returns:
            True if a listener was attached, False if one already existed
        """
        ref = conversation.ref
        if ref in self._registry:
            logger.debug("Already listening to %s", ref)
            return False

        if isinstance(conversation, DirectConversation):
            handler = self._direct_handler(ref, conversation.persona_id)
        else:
            handler = self._group_handler(ref)

        self._registry[ref] = self.bus.on_conversation_created(ref, handler)
        logger.info("Started listening to %s", ref)
        return True

    async def add_conversation_listener(self, ref: ConversationRef) -> bool:
        """Load a conversation by reference and attach to it."""
        if ref in self._registry:
            return False

        conversation: Conversation | None
        if ref.kind is ConversationKind.DM:
            conversation = await self.repository.get_direct_conversation(ref.id)
        else:
            conversation = await self.repository.get_group(ref.id)

        if conversation is None:
            logger.warning("Cannot listen to %s: conversation not found", ref)
            return False
        return self.attach(conversation)

    def detach(self, ref: ConversationRef) -> bool:
        """
        Remove a conversation's responder.

        Returns:
            True if a listener was removed, False if none was registered
        """
        unsubscribe = self._registry.pop(ref, None)
        if unsubscribe is None:
            return False
        unsubscribe()
        logger.info("Stopped listening to %s", ref)
        return True

    def shutdown(self) -> None:
        """Detach every listener and mark the manager as stopped."""
        logger.info("Shutting down %d conversation listeners", len(self._registry))
        registrations = list(self._registry.values())
        self._registry.clear()
        for unsubscribe in registrations:
            unsubscribe()
        self._running = False

    def is_registered(self, ref: ConversationRef) -> bool:
        return ref in self._registry

    def registered_refs(self) -> list[ConversationRef]:
        return list(self._registry)

    def get_status(self) -> dict[str, Any]:
        dm_ids = [ref.id for ref in self._registry if ref.kind is ConversationKind.DM]
        group_ids = [ref.id for ref in self._registry if ref.kind is ConversationKind.GROUP]
        return {
            "running": self._running,
            "dm_listeners": len(dm_ids),
            "group_listeners": len(group_ids),
            "dm_ids": dm_ids,
            "group_ids": group_ids,
        }

    def _direct_handler(self, ref: ConversationRef, persona_id: str):
        async def on_direct_message(event: MessageCreatedEvent) -> None:
            if event.message.is_from_persona:
                logger.debug("Skipping persona message %s in %s", event.message.id, ref)
                return
            await self.responder.respond(persona_id, ref)

        return on_direct_message

    def _group_handler(self, ref: ConversationRef):
        async def on_group_message(event: MessageCreatedEvent) -> None:
            if event.message.is_from_persona:
                logger.debug("Skipping persona message %s in %s", event.message.id, ref)
                return

            participants = await self.repository.get_conversation_participants(ref)
            author_id = event.message.author_id
            responders = [persona_id for persona_id in participants if persona_id != author_id]
            logger.info("Generating %d replies in %s", len(responders), ref)

            await asyncio.gather(
                *(self.responder.respond(persona_id, ref) for persona_id in responders)
            )

        return on_group_message


__all__ = ["ConversationListenerManager"]
