"""
land_registry.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings, DB sessions and the registry service.
- Encapsulate app.state access patterns (settings/engine/sessionmaker).
- Reject calls addressed to a different registry service id.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.status import HTTP_404_NOT_FOUND

from land_registry.observability.middleware import SERVICE_ID_HEADER
from land_registry.services.registry_service import RegistryService
from land_registry.settings import Settings


def settings_dep(request: Request) -> Settings:
    # The settings object is the one `create_app` was built with.
    return request.app.state.settings  # type: ignore[attr-defined]


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # Created in the app lifespan, see `land_registry.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is managed explicitly by the service layer.
    async with session_factory() as session:
        yield session


def registry_service(session: AsyncSession = Depends(db_session)) -> RegistryService:
    return RegistryService(session=session)


def require_service_id(request: Request, settings: Settings = Depends(settings_dep)) -> None:
    # Absent header is accepted (plain HTTP callers); a mismatched one is not.
    addressed = request.headers.get(SERVICE_ID_HEADER)
    if addressed and addressed != settings.backend_service_id:
        raise HTTPException(
            status_code=HTTP_404_NOT_FOUND,
            detail={"kind": "NotFound", "message": f"unknown registry service {addressed!r}"},
        )
