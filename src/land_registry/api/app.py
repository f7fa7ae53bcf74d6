"""
land_registry.api.app

FastAPI app factory for the reference land registry service.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Initialize and dispose shared infrastructure (settings, DB engine/session factory).
- Seed the bootstrap administrators so a fresh registry can grant further roles.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from land_registry import __version__
from land_registry.api.routers.dev_auth import router as dev_auth_router
from land_registry.api.routers.health import router as health_router
from land_registry.api.routers.parcels import router as parcels_router
from land_registry.api.routers.status import router as status_router
from land_registry.api.routers.transfers import router as transfers_router
from land_registry.api.routers.users import router as users_router
from land_registry.db.init_db import grant_bootstrap_admins, init_db
from land_registry.db.session import create_engine, create_sessionmaker
from land_registry.observability.logging import configure_logging, get_logger
from land_registry.observability.middleware import RequestContextMiddleware
from land_registry.settings import Settings

log = get_logger(__name__)


def create_app(*, settings: Settings) -> FastAPI:
    # Configure structured logging once at process startup (before app serves requests).
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env, service_id=settings.backend_service_id)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        # Schema is created in place (create_all is a no-op for existing tables).
        await init_db(engine)
        await grant_bootstrap_admins(app.state.sessionmaker, settings.bootstrap_admins)
        try:
            yield
        finally:
            # Dispose the engine to close pools/FDs gracefully.
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Land Registry",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    # Dependencies read settings from here, so an injected Settings object wins over env.
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(status_router)
    app.include_router(dev_auth_router)
    app.include_router(parcels_router)
    app.include_router(transfers_router)
    app.include_router(users_router)

    return app


# --- Module Notes -----------------------------------------------------------
# App composition stays here; registry rules live in `land_registry.services`.
