"""
land_registry.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`): registry schema reachable, root key configured.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_503_SERVICE_UNAVAILABLE

from land_registry.api.deps import db_session, settings_dep
from land_registry.db.models import Parcel
from land_registry.settings import Settings

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> dict[str, str | int]:
    if not settings.registry_root_key:
        raise HTTPException(status_code=HTTP_503_SERVICE_UNAVAILABLE, detail="no root key")
    # Touches the parcels table, so a missing schema fails readiness too.
    parcels = (await session.execute(select(func.count()).select_from(Parcel))).scalar_one()
    return {"status": "ready", "parcels": int(parcels)}
