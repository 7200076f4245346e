"""MessageEventBus: fan-out order, scoping, isolation and unsubscribe."""

import importlib
import logging

import pytest

from personachat.core.events import (
    DirectScope,
    GroupScope,
    MessageCreatedEvent,
    MessageDeletedEvent,
    MessageEvent,
    MessageEventBus,
    MessageEventType,
    MessageUpdatedEvent,
    get_event_bus,
)
from personachat.core.models import ConversationRef

from .conftest import make_message

DM = ConversationRef.direct("d1")
GROUP = ConversationRef.group("g1")


def created(ref: ConversationRef) -> MessageCreatedEvent:
    scope = DirectScope(dm_id=ref.id) if ref.is_direct else GroupScope(group_id=ref.id)
    return MessageCreatedEvent(message=make_message(ref), scope=scope)


def test_general_listeners_run_before_scoped_ones():
    bus = MessageEventBus()
    calls = []
    bus.on_dm_created(lambda event: calls.append("dm"))
    bus.on_created(lambda event: calls.append("general"))
    bus.on_group_created(lambda event: calls.append("group"))

    bus.emit_created(created(DM))

    assert calls == ["general", "dm"]


def test_group_events_do_not_reach_dm_listeners():
    bus = MessageEventBus()
    calls = []
    bus.on_dm_created(lambda event: calls.append("dm"))
    bus.on_group_created(lambda event: calls.append(event.conversation_id))

    bus.emit_created(created(GROUP))

    assert calls == ["g1"]


def test_listeners_run_in_registration_order():
    bus = MessageEventBus()
    calls = []
    for i in range(5):
        bus.on_created(lambda event, i=i: calls.append(i))

    bus.emit_created(created(DM))

    assert calls == [0, 1, 2, 3, 4]


def test_failing_listener_does_not_reach_emitter_or_siblings(caplog):
    bus = MessageEventBus()
    calls = []

    def broken(event):
        raise RuntimeError("boom")

    bus.on_created(broken)
    bus.on_created(lambda event: calls.append("after"))

    with caplog.at_level(logging.ERROR):
        bus.emit_created(created(DM))

    assert calls == ["after"]
    assert "failed" in caplog.text


async def test_async_listener_failure_is_logged(caplog):
    bus = MessageEventBus()
    calls = []

    async def broken(event):
        raise RuntimeError("async boom")

    async def healthy(event):
        calls.append(event.message.content)

    bus.on_created(broken)
    bus.on_created(healthy)

    with caplog.at_level(logging.ERROR):
        bus.emit_created(created(DM))
        await bus.drain()

    assert calls == ["hi"]
    assert "async boom" in caplog.text
    assert bus.pending_count == 0


def test_async_listener_without_running_loop_is_dropped(caplog):
    bus = MessageEventBus()

    async def listener(event):
        raise AssertionError("must not run")

    bus.on_created(listener)
    with caplog.at_level(logging.ERROR):
        bus.emit_created(created(DM))

    assert bus.pending_count == 0
    assert "no running event loop" in caplog.text


def test_unsubscribe_is_idempotent():
    bus = MessageEventBus()
    unsubscribe = bus.on_created(lambda event: None)
    other = bus.on_created(lambda event: None)
    assert bus.listener_count(MessageEventType.MESSAGE_CREATED) == 2

    unsubscribe()
    unsubscribe()

    assert bus.listener_count(MessageEventType.MESSAGE_CREATED) == 1
    other()
    assert bus.listener_count() == 0
    assert bus.get_stats()["total_event_types"] == 0


async def test_conversation_listener_only_sees_its_conversation():
    bus = MessageEventBus()
    seen = []

    async def listener(event):
        seen.append(event.conversation_ref)

    bus.on_conversation_created(DM, listener)

    bus.emit_created(created(DM))
    bus.emit_created(created(ConversationRef.direct("other")))
    bus.emit_created(created(ConversationRef.group("d1")))
    await bus.drain()

    assert seen == [DM]


async def test_conversation_listener_errors_are_contained(caplog):
    bus = MessageEventBus()
    after = []

    def sync_broken(event):
        raise ValueError("sync")

    async def async_broken(event):
        raise ValueError("async")

    bus.on_conversation_created(DM, sync_broken)
    bus.on_conversation_created(DM, async_broken)
    bus.on_created(lambda event: after.append(True))

    with caplog.at_level(logging.ERROR):
        bus.emit_created(created(DM))
        await bus.drain()

    assert after == [True]
    assert "Unhandled error in listener" in caplog.text
    assert "Unhandled error in async listener" in caplog.text


def test_on_conversation_returns_one_unsubscribe_for_all_events():
    bus = MessageEventBus()
    calls = []
    message = make_message(DM)
    scope = DirectScope(dm_id="d1")

    unsubscribe = bus.on_conversation(
        DM,
        on_create=lambda event: calls.append("created"),
        on_update=lambda event: calls.append("updated"),
        on_delete=lambda event: calls.append("deleted"),
    )

    bus.emit_created(MessageCreatedEvent(message=message, scope=scope))
    bus.emit_updated(MessageUpdatedEvent(message=message, previous_content="old", scope=scope))
    bus.emit_deleted(MessageDeletedEvent(message_id=message.id, scope=scope))
    assert calls == ["created", "updated", "deleted"]

    unsubscribe()
    unsubscribe()
    assert bus.listener_count() == 0


def test_scoped_event_names():
    assert created(DM).scoped_event_type == "dm.message.created"
    assert created(GROUP).scoped_event_type == "group.message.created"
    event = MessageDeletedEvent(message_id="m1", scope=GroupScope(group_id="g1"))
    assert event.scoped_event_type == "group.message.deleted"
    assert event.to_log_data()["event_type"] == "message.deleted"


def test_message_event_base_is_abstract():
    with pytest.raises(TypeError):
        MessageEvent(scope=DirectScope(dm_id="d1"))


def test_emit_logs_event_data(caplog):
    bus = MessageEventBus()
    event = created(DM)

    with caplog.at_level(logging.DEBUG, logger="personachat.core.events.bus"):
        bus.emit_created(event)

    assert str(event.event_id) in caplog.text
    assert "message.created" in caplog.text


async def test_stats_report_pending_async_listeners():
    bus = MessageEventBus()

    async def listener(event):
        pass

    bus.on_created(listener)
    bus.emit_created(created(DM))

    assert bus.get_stats()["pending_tasks"] == 1
    await bus.drain()
    assert bus.get_stats()["pending_tasks"] == 0


def test_process_bus_survives_module_reload():
    bus = get_event_bus()
    calls = []
    bus.on_created(lambda event: calls.append(True))

    from personachat.core.events import bus as bus_module

    reloaded = importlib.reload(bus_module)
    assert reloaded.get_event_bus() is bus

    reloaded.get_event_bus().emit_created(created(DM))
    assert calls == [True]
