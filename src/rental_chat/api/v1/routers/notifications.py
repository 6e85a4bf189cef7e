from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, Response

from rental_chat.api.deps import CurrentPrincipal, UoWDep
from rental_chat.api.v1.schemas.notification import (
    MarkAllReadResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from rental_chat.config import settings
from rental_chat.services import notification_service

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    principal: CurrentPrincipal,
    uow: UoWDep,
    limit: int = Query(settings.NOTIFICATION_LIST_LIMIT, ge=1, le=200),
) -> list[NotificationResponse]:
    items = await notification_service.list_notifications(principal, uow, limit=limit)
    return [NotificationResponse.model_validate(n, from_attributes=True) for n in items]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(principal: CurrentPrincipal, uow: UoWDep) -> UnreadCountResponse:
    return UnreadCountResponse(count=await notification_service.count_unread(principal, uow))


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(principal: CurrentPrincipal, uow: UoWDep) -> MarkAllReadResponse:
    return MarkAllReadResponse(updated=await notification_service.mark_all_read(principal, uow))


@router.post("/{notification_id}/read", status_code=204)
async def mark_read(
    notification_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> Response:
    await notification_service.mark_read(principal, notification_id, uow)
    return Response(status_code=204)
