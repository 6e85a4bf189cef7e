from __future__ import annotations

from typing import Any
from uuid import UUID

import jwt

from rental_chat.application.dto.principal import Principal
from rental_chat.domain.value_objects.enums import ProfileType


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    """Build a principal from ``sub`` and the profile type claim.

    The type is read from ``profile_type``, then ``user_type``, then
    ``user_metadata.user_type`` as issued at signup.
    """
    metadata = payload.get("user_metadata") or {}
    raw_type = payload.get("profile_type") or payload.get("user_type") or metadata.get("user_type")
    try:
        profile_id = UUID(str(payload["sub"]))
        profile_type = ProfileType(raw_type)
    except (KeyError, ValueError) as exc:
        raise jwt.InvalidTokenError("Token does not identify a tenant or landlord profile") from exc
    return Principal(profile_id=profile_id, profile_type=profile_type)
