from __future__ import annotations

from fastapi import APIRouter, Query

from ephemeral_service.api.deps import ContextDep, CurrentPrincipal
from ephemeral_service.api.v1.schemas.message import (
    MarkReadResponse,
    MessagePageResponse,
    MessageResponse,
    SendMessageRequest,
)
from ephemeral_service.application.exceptions import NotFoundError
from ephemeral_service.services import message_service

router = APIRouter(prefix="/api/v1", tags=["messages"])


@router.post("/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    ctx: ContextDep,
) -> MessageResponse:
    message_id = await message_service.send_message(
        principal.user_id, body.to_id, body.text, ctx,
    )
    message = await message_service.get_message(message_id, ctx)
    return MessageResponse.from_entity(message, ctx.clock.now())


@router.get("/messages/{message_id}", response_model=MessageResponse)
async def get_message(
    message_id: str,
    principal: CurrentPrincipal,
    ctx: ContextDep,
) -> MessageResponse:
    message = await message_service.get_message(message_id, ctx)
    if not message.has_participant(principal.user_id) and not principal.is_admin:
        raise NotFoundError("Message not found")
    return MessageResponse.from_entity(message, ctx.clock.now())


@router.post("/messages/{message_id}/read", response_model=MessageResponse)
async def mark_message_read(
    message_id: str,
    principal: CurrentPrincipal,
    ctx: ContextDep,
) -> MessageResponse:
    message = await message_service.mark_message_read(message_id, principal.user_id, ctx)
    return MessageResponse.from_entity(message, ctx.clock.now())


@router.get("/conversations/{other_id}/messages", response_model=MessagePageResponse)
async def list_conversation(
    other_id: str,
    principal: CurrentPrincipal,
    ctx: ContextDep,
    cursor: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> MessagePageResponse:
    page = await message_service.list_conversation_page(
        principal.user_id, other_id, ctx, cursor=cursor, limit=limit,
    )
    now = ctx.clock.now()
    return MessagePageResponse(
        messages=[MessageResponse.from_entity(m, now) for m in page.messages],
        next_cursor=page.next_cursor,
    )


@router.post("/conversations/{other_id}/read", response_model=MarkReadResponse)
async def mark_conversation_read(
    other_id: str,
    principal: CurrentPrincipal,
    ctx: ContextDep,
) -> MarkReadResponse:
    updated = await message_service.mark_conversation_read(
        principal.user_id, other_id, principal.user_id, ctx,
    )
    return MarkReadResponse(updated=updated)
