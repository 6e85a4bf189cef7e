from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query

from rental_chat.api.deps import CurrentPrincipal, UoWDep
from rental_chat.api.v1.schemas.partner import PartnerResponse, PartnersResponse
from rental_chat.services import chat_partner_resolver

router = APIRouter(prefix="/api/v1/partners", tags=["partners"])


@router.get("", response_model=PartnersResponse)
async def list_partners(
    principal: CurrentPrincipal,
    uow: UoWDep,
    partner_id: UUID | None = Query(None),
) -> PartnersResponse:
    partners = await chat_partner_resolver.resolve(
        principal.profile_id, principal.profile_type, uow,
    )
    selected = chat_partner_resolver.select_partner(partners, partner_id)
    return PartnersResponse(
        partners=[PartnerResponse.model_validate(p, from_attributes=True) for p in partners],
        selected_id=selected.id if selected else None,
    )
