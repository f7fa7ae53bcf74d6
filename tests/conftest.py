"""
tests.conftest

Shared fixtures: a reference registry app on a temp SQLite file, served in-process through
`httpx.ASGITransport`, plus session managers for seeded identities.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from land_registry.api.app import create_app
from land_registry.auth.jwt import JwtConfig
from land_registry.auth.principal import PrincipalId
from land_registry.auth.provider import DevIdentityProvider
from land_registry.connection.bootstrap import Environment
from land_registry.registry.schemas import (
    Coordinates,
    LandParcel,
    ParcelMetadata,
    ParcelRegistration,
)
from land_registry.results import Ok
from land_registry.session.manager import SessionManager
from land_registry.settings import Settings

ADMIN_SEED = "admin-seed"
HOST = "http://test"


def principal_for(seed: str) -> PrincipalId:
    return PrincipalId.self_authenticating(seed.encode("utf-8"))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        log_level="WARNING",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'registry.db'}",
        registry_host=HOST,
        identity_provider_url=HOST,
        bootstrap_admins=[principal_for(ADMIN_SEED).text],
    )


@pytest.fixture
def jwt_cfg(settings: Settings) -> JwtConfig:
    return JwtConfig.from_settings(settings)


@pytest.fixture
def environment(settings: Settings) -> Environment:
    return Environment.from_settings(settings)


@pytest_asyncio.fixture
async def app(settings: Settings) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings)
    # httpx ASGITransport does not run the lifespan; drive it explicitly.
    async with app.router.lifespan_context(app):
        yield app


@pytest.fixture
def transport(app: FastAPI) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=app)


ManagerFactory = Callable[..., Awaitable[SessionManager]]


@pytest_asyncio.fixture
async def make_manager(
    settings: Settings, jwt_cfg: JwtConfig, transport: httpx.ASGITransport
) -> AsyncIterator[ManagerFactory]:
    managers: list[SessionManager] = []

    async def _make(seed: str, *, login: bool = True) -> SessionManager:
        manager = SessionManager.from_settings(
            settings,
            provider=DevIdentityProvider(cfg=jwt_cfg, seed=seed),
            transport=transport,
        )
        managers.append(manager)
        await manager.initialize()
        if login:
            assert isinstance(await manager.login(), Ok)
        return manager

    yield _make
    for manager in managers:
        await manager.aclose()


@pytest_asyncio.fixture
async def admin(make_manager: ManagerFactory) -> SessionManager:
    return await make_manager(ADMIN_SEED)


def sample_metadata(
    location: str = "12 Harbour Road, Lot 4", size: float = 450.0
) -> ParcelMetadata:
    return ParcelMetadata(
        location=location,
        size_sq_meters=size,
        coordinates=Coordinates(latitude=-1.2921, longitude=36.8219),
        document_hashes=["sha256:deed-0001"],
        zoning_type="residential",
    )


async def register_parcel(
    admin: SessionManager,
    owner: PrincipalId,
    *,
    metadata: ParcelMetadata | None = None,
    approve: bool = True,
) -> LandParcel:
    """Register (and by default approve) a parcel for `owner` through the admin's client."""

    registry = admin.registry()
    registered = await registry.register_parcel(
        ParcelRegistration(metadata=metadata or sample_metadata(), owner=owner)
    )
    assert isinstance(registered, Ok), registered
    if approve:
        assert isinstance(await registry.approve_registration(registered.value), Ok)
    parcel = await registry.get_parcel(registered.value)
    assert parcel is not None
    return parcel
