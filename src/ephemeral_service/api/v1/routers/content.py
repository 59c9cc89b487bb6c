from __future__ import annotations

from fastapi import APIRouter, Response, status

from ephemeral_service.api.deps import ContextDep, CurrentPrincipal
from ephemeral_service.api.v1.schemas.content import BroadcastRequest, CreatedResponse, SnapRequest
from ephemeral_service.application.dto.content import BroadcastPayload, SnapPayload
from ephemeral_service.domain.value_objects.enums import ContentKind
from ephemeral_service.services import content_service

router = APIRouter(prefix="/api/v1/content", tags=["content"])


@router.post("/broadcasts", response_model=CreatedResponse, status_code=201)
async def post_broadcast(
    body: BroadcastRequest,
    principal: CurrentPrincipal,
    ctx: ContextDep,
) -> CreatedResponse:
    content_id = await content_service.post_broadcast_content(
        principal.user_id, BroadcastPayload(text=body.text), ctx,
    )
    return CreatedResponse(id=content_id)


@router.post("/snaps", response_model=CreatedResponse, status_code=201)
async def post_snap(
    body: SnapRequest,
    principal: CurrentPrincipal,
    ctx: ContextDep,
) -> CreatedResponse:
    payload = SnapPayload(
        media_url=body.media_url,
        media_type=body.media_type,
        caption=body.caption,
        is_story=body.is_story,
    )
    content_id = await content_service.post_broadcast_content(principal.user_id, payload, ctx)
    return CreatedResponse(id=content_id)


@router.delete("/{kind}/{content_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_content(
    kind: ContentKind,
    content_id: str,
    principal: CurrentPrincipal,
    ctx: ContextDep,
) -> Response:
    await content_service.delete_content(kind, content_id, principal.user_id, ctx)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
