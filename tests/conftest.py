"""Shared fixtures: an isolated runtime wired to the in-memory repository and echo provider."""

import pytest

from personachat.core import slots
from personachat.core.config import PersonaChatConfig
from personachat.core.events import MessageEventBus
from personachat.core.models import AuthorKind, ConversationRef, Message, Persona
from personachat.llm.providers.echo import EchoProvider
from personachat.realtime.broadcast import BroadcastHub
from personachat.runtime import ChatRuntime
from personachat.storage.memory import InMemoryChatRepository


@pytest.fixture(autouse=True)
def clean_process_slots():
    slots.clear_all()
    yield
    slots.clear_all()


@pytest.fixture
def config() -> PersonaChatConfig:
    return PersonaChatConfig(llm_provider="echo", llm_model="echo", retry_delay=0.0)


@pytest.fixture
def repository() -> InMemoryChatRepository:
    return InMemoryChatRepository()


@pytest.fixture
def bus() -> MessageEventBus:
    return MessageEventBus()


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub()


@pytest.fixture
def provider() -> EchoProvider:
    return EchoProvider(retry_delay=0.0)


@pytest.fixture
def runtime(config, repository, bus, hub, provider) -> ChatRuntime:
    return ChatRuntime(
        config=config,
        repository=repository,
        bus=bus,
        hub=hub,
        provider=provider,
    )


@pytest.fixture
async def alice(repository) -> Persona:
    return await repository.create_persona(Persona(name="Alice", description="A cheerful barista"))


@pytest.fixture
async def bob(repository) -> Persona:
    return await repository.create_persona(Persona(name="Bob", description="A grumpy mechanic"))


@pytest.fixture
async def cara(repository) -> Persona:
    return await repository.create_persona(Persona(name="Cara", description="A quiet librarian"))


def make_message(
    ref: ConversationRef,
    content: str = "hi",
    author_kind: AuthorKind = AuthorKind.USER,
    author_id: str = "user",
) -> Message:
    return Message(
        content=content,
        author_kind=author_kind,
        author_id=author_id,
        conversation_ref=ref,
    )
