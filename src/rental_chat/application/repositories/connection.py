from __future__ import annotations

from typing import Protocol
from uuid import UUID

from rental_chat.domain.entities.connection import TenantLandlordConnection
from rental_chat.domain.entities.profile import ProfileRef


class ConnectionReader(Protocol):
    async def landlords_for_tenant(
        self, tenant_id: UUID
    ) -> list[tuple[TenantLandlordConnection, ProfileRef]]:
        """Active connections of a tenant, oldest first."""
        ...

    async def tenants_for_landlord(
        self, landlord_id: UUID
    ) -> list[tuple[TenantLandlordConnection, ProfileRef]]:
        """Active connections of a landlord, oldest first."""
        ...

    async def get_by_id(self, connection_id: UUID) -> TenantLandlordConnection | None: ...

    async def get_between(
        self, profile_a: UUID, profile_b: UUID
    ) -> TenantLandlordConnection | None:
        """Active connection linking the two profiles in either role."""
        ...
