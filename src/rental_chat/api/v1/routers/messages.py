from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query

from rental_chat.api.deps import CurrentPrincipal, UoWDep
from rental_chat.api.v1.schemas.message import MessageResponse, SendMessageRequest
from rental_chat.config import settings
from rental_chat.services import message_service, read_state_service

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


@router.get("/{partner_id}", response_model=list[MessageResponse])
async def conversation_history(
    partner_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    limit: int = Query(settings.MESSAGE_HISTORY_LIMIT, ge=1, le=1000),
) -> list[MessageResponse]:
    messages = await message_service.conversation_history(
        principal, partner_id, uow, limit=limit,
    )
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.post("/{partner_id}", response_model=MessageResponse, status_code=201)
async def send_message(
    partner_id: UUID,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg = await message_service.send_message(principal, partner_id, body.content, uow)
    return MessageResponse.model_validate(msg, from_attributes=True)


@router.post("/{message_id}/read", response_model=MessageResponse)
async def mark_message_read(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg = await read_state_service.mark_message_read(principal, message_id, uow)
    return MessageResponse.model_validate(msg, from_attributes=True)
