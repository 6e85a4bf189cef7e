"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import HTTPConnection

from rental_chat.application.dto.principal import Principal
from rental_chat.application.ports.auth import TokenVerifier
from rental_chat.application.ports.live import LiveChannel
from rental_chat.application.uow import UnitOfWorkFactory
from rental_chat.config import settings
from rental_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from rental_chat.infrastructure.auth.jwks_verifier import JWKSVerifier
from rental_chat.infrastructure.db.session import AsyncSessionLocal
from rental_chat.infrastructure.db.uow import SqlAlchemyUoW, uow_factory

_bearer_scheme = HTTPBearer()


async def get_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with AsyncSessionLocal() as session:
        uow = SqlAlchemyUoW(session)
        try:
            yield uow
        finally:
            await session.close()


UoWDep = Annotated[SqlAlchemyUoW, Depends(get_uow)]


def get_uow_factory() -> UnitOfWorkFactory:
    """For socket-scoped components that open a unit of work per call."""
    return uow_factory(AsyncSessionLocal)


UoWFactoryDep = Annotated[UnitOfWorkFactory, Depends(get_uow_factory)]


def get_live_channel(conn: HTTPConnection) -> LiveChannel:
    return conn.app.state.live


LiveDep = Annotated[LiveChannel, Depends(get_live_channel)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
