from __future__ import annotations

from rental_chat.domain.entities.connection import TenantLandlordConnection
from rental_chat.domain.entities.profile import ProfileRef
from rental_chat.infrastructure.db.models.connection import ConnectionModel
from rental_chat.infrastructure.db.models.profile import ProfileModel


def model_to_entity(model: ConnectionModel) -> TenantLandlordConnection:
    return TenantLandlordConnection(
        id=model.id,
        tenant_id=model.tenant_id,
        landlord_id=model.landlord_id,
        status=model.status,
        created_at=model.created_at,
    )


def profile_to_ref(model: ProfileModel) -> ProfileRef:
    return ProfileRef(
        id=model.id,
        first_name=model.first_name or "",
        last_name=model.last_name or "",
        profile_type=model.user_type,
        avatar_url=model.avatar_url,
    )
