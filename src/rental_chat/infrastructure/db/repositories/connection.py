from __future__ import annotations

from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from rental_chat.domain.entities.connection import TenantLandlordConnection
from rental_chat.domain.entities.profile import ProfileRef
from rental_chat.domain.value_objects.enums import ConnectionStatus
from rental_chat.infrastructure.db.mappers import connection as mapper
from rental_chat.infrastructure.db.models.connection import ConnectionModel
from rental_chat.infrastructure.db.models.profile import ProfileModel


class ConnectionReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def landlords_for_tenant(
        self, tenant_id: UUID
    ) -> list[tuple[TenantLandlordConnection, ProfileRef]]:
        return await self._counterparts(
            ConnectionModel.tenant_id == tenant_id,
            ProfileModel.id == ConnectionModel.landlord_id,
        )

    async def tenants_for_landlord(
        self, landlord_id: UUID
    ) -> list[tuple[TenantLandlordConnection, ProfileRef]]:
        return await self._counterparts(
            ConnectionModel.landlord_id == landlord_id,
            ProfileModel.id == ConnectionModel.tenant_id,
        )

    async def get_by_id(self, connection_id: UUID) -> TenantLandlordConnection | None:
        model = await self._session.get(ConnectionModel, connection_id)
        return mapper.model_to_entity(model) if model else None

    async def get_between(
        self, profile_a: UUID, profile_b: UUID
    ) -> TenantLandlordConnection | None:
        stmt = (
            select(ConnectionModel)
            .where(
                ConnectionModel.status == ConnectionStatus.ACTIVE,
                or_(
                    and_(
                        ConnectionModel.tenant_id == profile_a,
                        ConnectionModel.landlord_id == profile_b,
                    ),
                    and_(
                        ConnectionModel.tenant_id == profile_b,
                        ConnectionModel.landlord_id == profile_a,
                    ),
                ),
            )
            .order_by(ConnectionModel.created_at.asc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def _counterparts(self, owner_clause, join_clause):
        stmt = (
            select(ConnectionModel, ProfileModel)
            .join(ProfileModel, join_clause)
            .where(owner_clause, ConnectionModel.status == ConnectionStatus.ACTIVE)
            .order_by(ConnectionModel.created_at.asc(), ConnectionModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return [
            (mapper.model_to_entity(conn), mapper.profile_to_ref(profile))
            for conn, profile in result.all()
        ]
