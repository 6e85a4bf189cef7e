from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel


class PartnerResponse(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    display_name: str
    profile_type: str
    avatar_url: str | None
    connection_id: UUID | None
    unread_count: int

    model_config = {"from_attributes": True}


class PartnersResponse(BaseModel):
    partners: list[PartnerResponse]
    # Deep-linked partner when valid, else the first one; None without partners.
    selected_id: UUID | None = None
