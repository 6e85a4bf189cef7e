"""Seed development data: a landlord, two tenants, messages and notifications."""
from __future__ import annotations

import asyncio
import logging
import uuid

from sqlalchemy.dialects.postgresql import insert as pg_insert

from rental_chat.application.dto.principal import Principal
from rental_chat.domain.value_objects.enums import ConnectionStatus, NotificationType, ProfileType
from rental_chat.infrastructure.db.base import Base
from rental_chat.infrastructure.db.models import ConnectionModel, ProfileModel
from rental_chat.infrastructure.db.session import AsyncSessionLocal, engine
from rental_chat.infrastructure.db.uow import SqlAlchemyUoW
from rental_chat.logging_config import configure_logging
from rental_chat.services import message_service, notification_service

logger = logging.getLogger(__name__)

LANDLORD_ID = uuid.UUID("00000000-0000-0000-0000-00000000000a")
TENANT_IDS = (
    uuid.UUID("00000000-0000-0000-0000-0000000000b1"),
    uuid.UUID("00000000-0000-0000-0000-0000000000b2"),
)


async def seed() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        profiles = [
            {"id": LANDLORD_ID, "first_name": "Lena", "last_name": "Owner", "user_type": ProfileType.LANDLORD},
            {"id": TENANT_IDS[0], "first_name": "Tom", "last_name": "Renter", "user_type": ProfileType.TENANT},
            {"id": TENANT_IDS[1], "first_name": "Tara", "last_name": "Lessee", "user_type": ProfileType.TENANT},
        ]
        await session.execute(pg_insert(ProfileModel).values(profiles).on_conflict_do_nothing())
        await session.execute(
            pg_insert(ConnectionModel)
            .values(
                [
                    {"tenant_id": t, "landlord_id": LANDLORD_ID, "status": ConnectionStatus.ACTIVE}
                    for t in TENANT_IDS
                ]
            )
            .on_conflict_do_nothing(constraint="uq_connection_pair")
        )
        await session.commit()

        uow = SqlAlchemyUoW(session)
        tenant = Principal(profile_id=TENANT_IDS[0], profile_type=ProfileType.TENANT)
        landlord = Principal(profile_id=LANDLORD_ID, profile_type=ProfileType.LANDLORD)
        conversation = [
            (tenant, LANDLORD_ID, "Hi! The kitchen tap is leaking."),
            (landlord, TENANT_IDS[0], "Thanks for letting me know. I'll send someone tomorrow."),
            (tenant, LANDLORD_ID, "Great, I'll be home after 10."),
        ]
        for sender, receiver_id, content in conversation:
            await message_service.send_message(sender, receiver_id, content, uow)

        await notification_service.create_notification(
            TENANT_IDS[0],
            "Rent Due",
            "Your rent payment is due in 3 days",
            NotificationType.WARNING,
            uow,
            related_entity_type="payment",
        )

        logger.info("Seeded %d messages for tenant %s", len(conversation), TENANT_IDS[0])


def main() -> None:
    configure_logging()
    asyncio.run(seed())


if __name__ == "__main__":
    main()
