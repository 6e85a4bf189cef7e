from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class TenantLandlordConnection:
    id: UUID
    tenant_id: UUID
    landlord_id: UUID
    status: str
    created_at: datetime
