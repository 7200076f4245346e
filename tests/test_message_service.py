"""MessageService: validation before side effects, events and broadcast payloads."""

import pytest

from personachat.core.events import DirectScope, GroupScope
from personachat.core.exceptions import NotFoundError, ValidationError
from personachat.core.models import AuthorKind, NewMessage
from personachat.realtime.broadcast import Channel
from personachat.services.message_service import MessageService


@pytest.fixture
def service(repository, bus, hub) -> MessageService:
    return MessageService(repository, bus, hub)


@pytest.fixture
def recorded(bus):
    events = []
    bus.on_created(events.append)
    bus.on_updated(events.append)
    bus.on_deleted(events.append)
    return events


@pytest.fixture
async def dm(repository, alice):
    return await repository.create_direct_conversation(alice.id)


@pytest.mark.parametrize(
    ("data", "error", "match"),
    [
        (
            NewMessage(content="hi", direct_message_id="d1", group_id="g1"),
            ValidationError,
            "both",
        ),
        (NewMessage(content="hi"), ValidationError, "either"),
        (NewMessage(content="   ", direct_message_id="d1"), ValidationError, "empty"),
        (NewMessage(content="hi", direct_message_id="missing"), NotFoundError, "missing"),
        (NewMessage(content="hi", group_id="missing"), NotFoundError, "missing"),
    ],
)
async def test_invalid_input_has_no_side_effects(service, hub, repository, recorded, data, error, match):
    with pytest.raises(error, match=match):
        await service.create_message(data)

    assert recorded == []
    assert hub.dm.replay_snapshot("d1") == []
    assert hub.dm.replay_snapshot("missing") == []
    assert hub.group.replay_snapshot("missing") == []


async def test_create_persists_emits_and_broadcasts(service, hub, repository, recorded, dm, alice):
    frames = []
    hub.subscribe(Channel.for_ref(dm.ref), frames.append)

    message = await service.create_message(
        NewMessage(content="  hello there  ", direct_message_id=dm.id)
    )

    assert message.content == "hello there"
    assert await repository.get_message(message.id) == message

    [event] = recorded
    assert event.message == message
    assert isinstance(event.scope, DirectScope)
    assert event.scope.dm.persona_id == alice.id
    assert event.scope.dm.persona.name == "Alice"

    [frame] = frames
    assert frame["id"] == message.id
    assert frame["content"] == "hello there"
    assert frame["authorKind"] == "user"
    assert frame["authorId"] == "user"
    assert frame["conversationRef"] == {"kind": "dm", "id": dm.id}
    assert "createdAt" in frame


async def test_create_in_group_uses_group_scope(service, hub, repository, recorded, alice):
    group = await repository.create_group("Crew", [alice.id])

    await service.create_message(NewMessage(content="hey all", group_id=group.id))

    [event] = recorded
    assert isinstance(event.scope, GroupScope)
    assert event.scoped_event_type == "group.message.created"
    assert [p["content"] for p in hub.group.replay_snapshot(group.id)] == ["hey all"]
    assert hub.dm.replay_snapshot(group.id) == []


async def test_update_emits_previous_content_without_broadcast(service, hub, recorded, dm):
    message = await service.create_message(NewMessage(content="first", direct_message_id=dm.id))
    recorded.clear()

    updated = await service.update_message(message.id, " second ")

    assert updated.content == "second"
    [event] = recorded
    assert event.previous_content == "first"
    assert event.message.content == "second"
    assert len(hub.dm.replay_snapshot(dm.id)) == 1


async def test_update_rejects_empty_and_unknown(service, dm, recorded):
    message = await service.create_message(NewMessage(content="first", direct_message_id=dm.id))
    recorded.clear()

    with pytest.raises(ValidationError):
        await service.update_message(message.id, "  ")
    with pytest.raises(NotFoundError):
        await service.update_message("nope", "text")
    assert recorded == []


async def test_delete_broadcasts_marker(service, hub, repository, recorded, dm):
    message = await service.create_message(NewMessage(content="bye", direct_message_id=dm.id))
    frames = []
    hub.subscribe(Channel.for_ref(dm.ref), frames.append)
    frames.clear()
    recorded.clear()

    await service.delete_message(message.id)

    assert await repository.get_message(message.id) is None
    [event] = recorded
    assert event.message_id == message.id
    [marker] = frames
    assert marker["type"] == "message_deleted"
    assert marker["messageId"] == message.id
    assert "timestamp" in marker


async def test_delete_unknown_message(service):
    with pytest.raises(NotFoundError):
        await service.delete_message("nope")


async def test_persona_author_is_kept(service, dm, alice):
    message = await service.create_message(
        NewMessage(
            content="hi",
            author_kind=AuthorKind.PERSONA,
            author_id=alice.id,
            direct_message_id=dm.id,
        )
    )
    assert message.is_from_persona
    assert message.author_id == alice.id


async def test_list_messages_returns_latest_in_order(service, dm):
    for n in range(5):
        await service.create_message(NewMessage(content=f"m{n}", direct_message_id=dm.id))

    messages = await service.list_messages(dm.ref, limit=3)

    assert [m.content for m in messages] == ["m2", "m3", "m4"]
