"""Reply pipeline: context gathering, prompt rendering, cleanup and the responder."""

from datetime import datetime

import pytest

from personachat.core.exceptions import NotFoundError
from personachat.core.models import AuthorKind, ConversationKind, ConversationRef, NewMessage
from personachat.llm.providers.echo import EchoProvider
from personachat.services.cleanser import DEFAULT_HIDDEN_TAGS, MessageCleanser
from personachat.services.context import (
    CharacterCard,
    ContextBuilder,
    ContextMessage,
    ConversationContext,
    Participant,
)
from personachat.services.message_service import MessageService
from personachat.services.prompts import PromptBuilder, format_history, format_message_time
from personachat.services.responder import PersonaResponder


class TestMessageCleanser:
    @pytest.mark.parametrize(
        ("raw", "hidden", "expected"),
        [
            ("<test>Hi</test> There", [], "Hi There"),
            ("<test>Hi</test> There", ["test"], "There"),
            ("reasoning...</thinking><response>Yo</response>", ["thinking"], "Yo"),
            ("<thinking>\nhmm\n</thinking>\n<response>Ok</response>", ["thinking"], "Ok"),
            ('<note id="1"/>Hello', ["note"], "Hello"),
            ("a</thinking>b</thinking>c", ["thinking"], "c"),
            ("  plain text  ", DEFAULT_HIDDEN_TAGS, "plain text"),
        ],
    )
    def test_clean(self, raw, hidden, expected):
        assert MessageCleanser().clean(raw, hidden) == expected

    def test_full_model_output(self):
        raw = (
            "I know where I am.\n</initial_understanding>\n"
            "<thinking>\nShort and friendly.\n</thinking>\n"
            "<response>\nHey! Good to see you.\n</response>\n"
            "<post_response>done</post_response>"
        )
        assert MessageCleanser().clean(raw, DEFAULT_HIDDEN_TAGS) == "Hey! Good to see you."

    def test_only_hidden_content_cleans_to_empty(self):
        assert MessageCleanser().clean("all reasoning</thinking>", DEFAULT_HIDDEN_TAGS) == ""


class TestMessageTime:
    def test_same_day_shows_time_only(self):
        now = datetime(2025, 10, 16, 18, 0)
        assert format_message_time(datetime(2025, 10, 16, 13, 5), now) == "01:05 PM"

    def test_other_day_shows_date(self):
        now = datetime(2025, 10, 17, 9, 0)
        assert format_message_time(datetime(2025, 10, 16, 1, 22), now) == "10/16/25, 01:22 AM"


def make_context(kind: ConversationKind, messages=None) -> ConversationContext:
    alice = Participant(id="a", name="Alice", type="persona")
    participants = (
        [alice, Participant(id="user", name="You", type="user")]
        if kind is ConversationKind.DM
        else [
            alice,
            Participant(id="b", name="Bob", type="persona"),
            Participant(id="c", name="Cara", type="persona"),
        ]
    )
    return ConversationContext(
        character_card=CharacterCard(id="a", name="Alice", description="A cheerful barista"),
        recent_messages=messages or [],
        participants=participants,
        conversation_kind=kind,
        conversation_name="Alice" if kind is ConversationKind.DM else "Night Owls",
        conversation_id="c1",
    )


class TestPromptBuilder:
    def test_dm_prompt(self):
        prompt = PromptBuilder().build(make_context(ConversationKind.DM))

        assert "You are currently in a direct message conversation with a user." in prompt.system
        assert "A cheerful barista" in prompt.system
        assert "<response>" in prompt.system
        assert [m.role for m in prompt.messages] == ["user", "assistant"]
        assert prompt.messages[0].content == (
            "Recent conversation history:\n[No previous messages]\n"
        )

    def test_group_prompt_lists_other_participants(self):
        prompt = PromptBuilder().build(make_context(ConversationKind.GROUP))

        assert 'You are currently in a group chat called "Night Owls".' in prompt.system
        assert "Other participants: Bob, Cara" in prompt.system

    def test_prefill_opens_thinking_block(self):
        prompt = PromptBuilder().build(make_context(ConversationKind.GROUP))

        assert prompt.prefill.startswith("<initial_understanding>\n")
        assert "</initial_understanding>\n<thinking>\n" in prompt.prefill
        assert prompt.prefill.endswith(
            "Alright, as Alice lets think about how to respond with all that in mind..."
        )
        assert "[group]" in prompt.prefill

    def test_history_lines(self):
        now = datetime(2025, 10, 16, 18, 0)
        messages = [
            ContextMessage(
                id="m1",
                content="hello",
                sender=Participant(id="user", name="User", type="user"),
                created_at=datetime(2025, 10, 16, 14, 5),
            ),
            ContextMessage(
                id="m2",
                content="hi!",
                sender=Participant(id="a", name="Alice", type="persona"),
                created_at=datetime(2025, 10, 16, 14, 6),
            ),
        ]
        assert format_history(messages, now) == (
            "[User (02:05 PM)]: hello\n[Alice (02:06 PM)]: hi!\n"
        )

    def test_chat_messages_start_with_system(self):
        chat = PromptBuilder().build(make_context(ConversationKind.DM)).to_chat_messages()
        assert [m["role"] for m in chat] == ["system", "user", "assistant"]


class TestContextBuilder:
    async def test_dm_context(self, repository, alice):
        dm = await repository.create_direct_conversation(alice.id)
        service_messages = [
            ("hello", AuthorKind.USER, "user"),
            ("hey there", AuthorKind.PERSONA, alice.id),
            ("from a ghost", AuthorKind.PERSONA, "deleted-persona"),
        ]
        service = MessageService(repository, _NullBus(), _NullHub())
        for content, kind, author in service_messages:
            await service.create_message(
                NewMessage.for_ref(dm.ref, content=content, author_kind=kind, author_id=author)
            )

        context = await ContextBuilder(repository).build(alice.id, dm.ref)

        assert context.character_card.name == "Alice"
        assert context.conversation_name == "Alice"
        assert [p.name for p in context.participants] == ["Alice", "You"]
        assert [m.sender.name for m in context.recent_messages] == ["User", "Alice", "Unknown"]

    async def test_group_context_and_limit(self, repository, alice, bob):
        group = await repository.create_group("Night Owls", [alice.id, bob.id])
        service = MessageService(repository, _NullBus(), _NullHub())
        for n in range(6):
            await service.create_message(NewMessage(content=f"m{n}", group_id=group.id))

        context = await ContextBuilder(repository).build(bob.id, group.ref, limit=4)

        assert context.conversation_name == "Night Owls"
        assert context.conversation_kind is ConversationKind.GROUP
        assert [p.name for p in context.participants] == ["Alice", "Bob"]
        assert [m.content for m in context.recent_messages] == ["m2", "m3", "m4", "m5"]

    async def test_unknown_persona_or_conversation(self, repository, alice):
        builder = ContextBuilder(repository)
        with pytest.raises(NotFoundError):
            await builder.build("nobody", ConversationRef.direct("x"))
        with pytest.raises(NotFoundError):
            await builder.build(alice.id, ConversationRef.group("x"))


class _NullBus:
    def emit_created(self, event):
        pass


class _NullHub:
    def broadcast(self, channel, payload):
        pass


class TestPersonaResponder:
    def make_responder(self, runtime, provider, **kwargs) -> PersonaResponder:
        return PersonaResponder(
            message_service=runtime.message_service,
            context_builder=runtime.context_builder,
            provider=provider,
            **kwargs,
        )

    async def test_posts_cleaned_reply_as_persona(self, runtime, repository, provider, alice):
        dm = await repository.create_direct_conversation(alice.id)
        provider.set_next_response("Hmm.</thinking>\n<response>Coffee time!</response>")

        reply = await self.make_responder(runtime, provider).respond(alice.id, dm.ref)

        assert reply.content == "Coffee time!"
        assert reply.author_kind is AuthorKind.PERSONA
        assert reply.author_id == alice.id
        assert await repository.get_message(reply.id) == reply

    async def test_prompt_is_sent_with_temperature(self, runtime, repository, provider, alice):
        dm = await repository.create_direct_conversation(alice.id)

        await self.make_responder(runtime, provider).respond(alice.id, dm.ref)

        [(system, messages)] = provider.calls
        assert "Context of who Alice is:" in system
        assert [m["role"] for m in messages] == ["user", "assistant"]

    async def test_timeout_drops_reply(self, runtime, repository, alice, caplog):
        dm = await repository.create_direct_conversation(alice.id)
        slow = EchoProvider(delay=1.0, retry_delay=0.0)
        responder = self.make_responder(runtime, slow, response_timeout=0.05)

        assert await responder.respond(alice.id, dm.ref) is None
        assert await repository.list_recent_messages(dm.ref, 10) == []
        assert "timed out" in caplog.text

    async def test_empty_reply_posts_nothing(self, runtime, repository, provider, alice):
        dm = await repository.create_direct_conversation(alice.id)
        provider.set_next_response("only reasoning here</thinking>")

        assert await self.make_responder(runtime, provider).respond(alice.id, dm.ref) is None
        assert await repository.list_recent_messages(dm.ref, 10) == []

    async def test_failures_are_reported_as_none(self, runtime, repository, provider, alice):
        dm = await repository.create_direct_conversation(alice.id)
        responder = self.make_responder(runtime, provider)

        assert await responder.respond("nobody", dm.ref) is None
        assert await responder.respond(alice.id, ConversationRef.direct("gone")) is None
        assert provider.call_count == 0
