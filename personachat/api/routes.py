"""
HTTP routes.

Thin glue over ChatRuntime: the SSE endpoint plus CRUD for personas,
conversations and messages, and an admin endpoint for the listener manager.
Domain errors are turned into HTTP responses by the handlers in ``app.py``.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sse_starlette.sse import EventSourceResponse

from personachat.core.exceptions import NotFoundError, ValidationError
from personachat.core.models import (
    ConversationRef,
    DirectConversation,
    GroupConversation,
    NewMessage,
    Persona,
)
from personachat.realtime.broadcast import Channel
from personachat.realtime.sse import channel_event_response
from personachat.runtime import ChatRuntime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PersonaCreate(_CamelModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    avatar_url: str | None = None


class DirectConversationCreate(_CamelModel):
    persona_id: str


class GroupCreate(_CamelModel):
    name: str = Field(..., min_length=1)
    participant_ids: list[str] = Field(default_factory=list)


class MessageUpdate(_CamelModel):
    content: str


def get_chat_runtime(request: Request) -> ChatRuntime:
    return request.app.state.runtime


# Streaming


@router.get("/sse")
async def stream_channel(
    channel: str | None = Query(default=None),
    runtime: ChatRuntime = Depends(get_chat_runtime),
) -> EventSourceResponse:
    """
    Server-Sent Events for one channel (``dm:<id>`` or ``group:<id>``).

    Emits a named ``connected`` event first, then one unnamed event per
    message or deletion marker broadcast on the channel.
    """
    parsed = Channel.parse(channel)
    logger.info("[SSE] New connection on %s", parsed)
    return channel_event_response(runtime.hub, parsed)


# Personas


@router.get("/personas", response_model=list[Persona])
async def list_personas(runtime: ChatRuntime = Depends(get_chat_runtime)) -> list[Persona]:
    return await runtime.repository.list_personas()


@router.post("/personas", response_model=Persona, status_code=status.HTTP_201_CREATED)
async def create_persona(
    body: PersonaCreate,
    runtime: ChatRuntime = Depends(get_chat_runtime),
) -> Persona:
    persona = Persona(name=body.name, description=body.description, avatar_url=body.avatar_url)
    return await runtime.repository.create_persona(persona)


@router.get("/personas/{persona_id}", response_model=Persona)
async def get_persona(
    persona_id: str,
    runtime: ChatRuntime = Depends(get_chat_runtime),
) -> Persona:
    persona = await runtime.repository.get_persona(persona_id)
    if persona is None:
        raise NotFoundError(f"Persona not found: {persona_id}", entity_id=persona_id)
    return persona


# Direct conversations


@router.get("/direct-messages", response_model=list[DirectConversation])
async def list_direct_conversations(
    runtime: ChatRuntime = Depends(get_chat_runtime),
) -> list[DirectConversation]:
    return await runtime.repository.list_direct_conversations()


@router.post(
    "/direct-messages",
    response_model=DirectConversation,
    status_code=status.HTTP_201_CREATED,
)
async def create_direct_conversation(
    body: DirectConversationCreate,
    runtime: ChatRuntime = Depends(get_chat_runtime),
) -> DirectConversation:
    return await runtime.create_direct_conversation(body.persona_id)


@router.delete("/direct-messages/{dm_id}")
async def delete_direct_conversation(
    dm_id: str,
    runtime: ChatRuntime = Depends(get_chat_runtime),
) -> dict[str, Any]:
    await runtime.delete_direct_conversation(dm_id)
    return {"success": True, "id": dm_id}


# Group chats


@router.get("/group-chats", response_model=list[GroupConversation])
async def list_groups(runtime: ChatRuntime = Depends(get_chat_runtime)) -> list[GroupConversation]:
    return await runtime.repository.list_groups()


@router.post(
    "/group-chats",
    response_model=GroupConversation,
    status_code=status.HTTP_201_CREATED,
)
async def create_group(
    body: GroupCreate,
    runtime: ChatRuntime = Depends(get_chat_runtime),
) -> GroupConversation:
    return await runtime.create_group(body.name, body.participant_ids)


@router.delete("/group-chats/{group_id}")
async def delete_group(
    group_id: str,
    runtime: ChatRuntime = Depends(get_chat_runtime),
) -> dict[str, Any]:
    await runtime.delete_group(group_id)
    return {"success": True, "id": group_id}


# Messages


@router.get("/messages")
async def list_messages(
    direct_message_id: str | None = Query(default=None, alias="directMessageId"),
    group_id: str | None = Query(default=None, alias="groupId"),
    limit: int = Query(default=50, ge=1, le=500),
    runtime: ChatRuntime = Depends(get_chat_runtime),
) -> list[dict[str, Any]]:
    if bool(direct_message_id) == bool(group_id):
        raise ValidationError("Provide exactly one of directMessageId or groupId")
    ref = (
        ConversationRef.direct(direct_message_id)
        if direct_message_id
        else ConversationRef.group(group_id)
    )
    messages = await runtime.message_service.list_messages(ref, limit)
    return [message.to_payload() for message in messages]


@router.post("/messages", status_code=status.HTTP_201_CREATED)
async def create_message(
    body: NewMessage,
    runtime: ChatRuntime = Depends(get_chat_runtime),
) -> dict[str, Any]:
    message = await runtime.message_service.create_message(body)
    return message.to_payload()


@router.patch("/messages/{message_id}")
async def update_message(
    message_id: str,
    body: MessageUpdate,
    runtime: ChatRuntime = Depends(get_chat_runtime),
) -> dict[str, Any]:
    message = await runtime.message_service.update_message(message_id, body.content)
    return message.to_payload()


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: str,
    runtime: ChatRuntime = Depends(get_chat_runtime),
) -> dict[str, Any]:
    message = await runtime.message_service.delete_message(message_id)
    return message.to_payload()


# Listener administration


@router.get("/listeners")
async def listener_status(runtime: ChatRuntime = Depends(get_chat_runtime)) -> dict[str, Any]:
    return {"success": True, "status": runtime.listeners.get_status()}


@router.post("/listeners", response_model=None)
async def manage_listeners(
    action: str | None = Query(default=None),
    runtime: ChatRuntime = Depends(get_chat_runtime),
) -> dict[str, Any] | JSONResponse:
    if action == "initialize":
        await runtime.listeners.initialize()
        return {
            "success": True,
            "message": "Conversation listeners initialized",
            "status": runtime.listeners.get_status(),
        }
    if action == "shutdown":
        runtime.listeners.shutdown()
        return {"success": True, "message": "Conversation listeners shut down"}
    if action == "status":
        return {"success": True, "status": runtime.listeners.get_status()}

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid action. Use ?action=initialize or ?action=shutdown"},
    )


@router.get("/health")
async def health(runtime: ChatRuntime = Depends(get_chat_runtime)) -> dict[str, Any]:
    return {"status": "ok", **runtime.get_status()}


__all__ = ["get_chat_runtime", "router"]
