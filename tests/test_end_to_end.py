"""Full flow: user message → event → responder → persona reply on the stream."""

import time

from fastapi.testclient import TestClient

from personachat.api.app import create_app
from personachat.core.models import NewMessage
from personachat.realtime.broadcast import Channel


async def test_dm_reply_reaches_subscriber_once(runtime, provider, alice):
    await runtime.start()
    dm = await runtime.create_direct_conversation(alice.id)
    frames = []
    runtime.hub.subscribe(Channel.for_ref(dm.ref), frames.append)

    await runtime.message_service.create_message(NewMessage(content="hi", direct_message_id=dm.id))
    await runtime.bus.drain()

    assert provider.call_count == 1
    assert [frame["authorKind"] for frame in frames] == ["user", "persona"]
    assert sum(1 for frame in frames if frame["authorId"] == alice.id) == 1

    stored = await runtime.message_service.list_messages(dm.ref)
    assert [m.author_id for m in stored if m.is_from_persona] == [alice.id]

    await runtime.close()
    assert not runtime.listeners.is_running


async def test_late_subscriber_gets_replayed_reply(runtime, alice):
    await runtime.start()
    dm = await runtime.create_direct_conversation(alice.id)

    await runtime.message_service.create_message(NewMessage(content="hi", direct_message_id=dm.id))
    await runtime.bus.drain()

    frames = []
    runtime.hub.subscribe(Channel.for_ref(dm.ref), frames.append)
    assert [frame["content"] for frame in frames] == ["hi", "You said: hi"]
    await runtime.close()


async def test_deleted_conversations_are_not_replayed(runtime, alice, bob):
    await runtime.start()
    dm = await runtime.create_direct_conversation(alice.id)
    group = await runtime.create_group("Crew", [alice.id, bob.id])
    await runtime.message_service.create_message(
        NewMessage(content="secret", direct_message_id=dm.id)
    )
    await runtime.message_service.create_message(NewMessage(content="secret", group_id=group.id))
    await runtime.bus.drain()

    await runtime.delete_direct_conversation(dm.id)
    await runtime.delete_group(group.id)

    for ref in (dm.ref, group.ref):
        frames = []
        runtime.hub.subscribe(Channel.for_ref(ref), frames.append)
        assert frames == []
    await runtime.close()


def wait_for_messages(client: TestClient, dm_id: str, count: int) -> list[dict]:
    deadline = time.monotonic() + 5
    while True:
        messages = client.get("/api/messages", params={"directMessageId": dm_id}).json()
        if len(messages) >= count or time.monotonic() > deadline:
            return messages
        time.sleep(0.02)


def test_http_flow(runtime):
    with TestClient(create_app(runtime)) as client:
        persona = client.post(
            "/api/personas", json={"name": "Alice", "description": "A cheerful barista"}
        )
        assert persona.status_code == 201
        persona_id = persona.json()["id"]

        dm = client.post("/api/direct-messages", json={"personaId": persona_id})
        assert dm.status_code == 201
        dm_id = dm.json()["id"]

        status = client.get("/api/listeners").json()["status"]
        assert status["running"] is True
        assert status["dm_ids"] == [dm_id]

        created = client.post(
            "/api/messages", json={"content": "  hello  ", "directMessageId": dm_id}
        )
        assert created.status_code == 201
        assert created.json()["content"] == "hello"

        messages = wait_for_messages(client, dm_id, 2)
        assert [m["authorKind"] for m in messages] == ["user", "persona"]
        assert messages[1]["authorId"] == persona_id
        assert messages[1]["content"] == "You said: hello"

        edited = client.patch(f"/api/messages/{messages[0]['id']}", json={"content": "edited"})
        assert edited.json()["content"] == "edited"

        deleted = client.delete(f"/api/messages/{messages[1]['id']}")
        assert deleted.status_code == 200
        assert len(wait_for_messages(client, dm_id, 1)) == 1

        assert client.delete(f"/api/direct-messages/{dm_id}").json()["success"] is True
        assert client.get("/api/listeners").json()["status"]["dm_listeners"] == 0


def test_http_errors(runtime):
    with TestClient(create_app(runtime)) as client:
        both = client.post(
            "/api/messages",
            json={"content": "x", "directMessageId": "a", "groupId": "b"},
        )
        assert both.status_code == 400
        assert "both" in both.json()["error"]

        empty = client.post("/api/messages", json={"content": " ", "directMessageId": "a"})
        assert empty.status_code == 400

        missing = client.post("/api/messages", json={"content": "x", "directMessageId": "a"})
        assert missing.status_code == 404

        assert client.get("/api/messages").status_code == 400
        assert client.get("/api/personas/nope").status_code == 404
        assert client.delete("/api/group-chats/nope").status_code == 404

        no_members = client.post("/api/group-chats", json={"name": "Empty", "participantIds": []})
        assert no_members.status_code == 400


def test_listener_admin_actions(runtime):
    with TestClient(create_app(runtime)) as client:
        shutdown = client.post("/api/listeners", params={"action": "shutdown"})
        assert shutdown.json()["success"] is True
        assert runtime.listeners.is_running is False

        initialize = client.post("/api/listeners", params={"action": "initialize"})
        assert initialize.json()["status"]["running"] is True

        invalid = client.post("/api/listeners", params={"action": "restart"})
        assert invalid.status_code == 400
        assert invalid.json() == {
            "error": "Invalid action. Use ?action=initialize or ?action=shutdown"
        }

        health = client.get("/api/health").json()
        assert health["status"] == "ok"
        assert health["provider"] == "echo"
