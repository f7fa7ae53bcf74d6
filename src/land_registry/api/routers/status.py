"""
land_registry.api.routers.status

Registry status endpoint used by development clients to fetch the root key.

Production clients pin the root key instead, so the endpoint does not exist in prod.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from starlette.status import HTTP_404_NOT_FOUND

from land_registry.api.deps import settings_dep
from land_registry.registry.schemas import RegistryStatus
from land_registry.settings import Settings

router = APIRouter(prefix="/api/v2", tags=["status"])


@router.get("/status", response_model=RegistryStatus)
async def registry_status(settings: Settings = Depends(settings_dep)) -> RegistryStatus:
    if settings.env == "prod":
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Not found")
    return RegistryStatus(
        service_id=settings.backend_service_id, root_key=settings.registry_root_key
    )
