from __future__ import annotations

from typing import Protocol

from rental_chat.application.dto.principal import Principal


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Principal:
        """Resolve a bearer token to the tenant or landlord profile it was issued for.

        Raises ``jwt.InvalidTokenError`` when the signature, expiry or profile
        claims do not check out.
        """
        ...
