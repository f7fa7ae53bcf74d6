"""
land_registry.api.routers.parcels

Parcel endpoints of the reference registry.

Responsibilities:
- Certified queries: single parcel, by owner, all parcels (Admin), search, ownership history.
- Updates: register, approve registration, revoke, patch (metadata / Admin owner correction).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from starlette.status import HTTP_201_CREATED

from land_registry.api.deps import registry_service, require_service_id, settings_dep
from land_registry.api.errors import http_error, parse_principal, violations
from land_registry.api.responses import certified
from land_registry.auth.deps import get_caller, require_roles
from land_registry.auth.models import ADMIN_ROLES
from land_registry.errors import BusinessErrorKind
from land_registry.registry.schemas import (
    LandParcel,
    MutationResponse,
    ParcelPatch,
    ParcelRegistration,
    RegistrationStatus,
    RevokeParcelBody,
    SearchFilters,
    TransactionRecord,
)
from land_registry.services.registry_service import Caller, RegistryService
from land_registry.settings import Settings

router = APIRouter(prefix="/v1", tags=["parcels"], dependencies=[Depends(require_service_id)])


# -- queries -------------------------------------------------------------------


@router.get("/parcels", response_model=list[LandParcel])
async def list_all_parcels(
    caller: Caller = Depends(require_roles(*ADMIN_ROLES)),
    service: RegistryService = Depends(registry_service),
    settings: Settings = Depends(settings_dep),
) -> JSONResponse:
    with violations():
        parcels = await service.all_parcels(caller)
    return certified(parcels, settings=settings)


# Declared before `/parcels/{parcel_id}` so "search" is not parsed as an id.
@router.get("/parcels/search", response_model=list[LandParcel])
async def search_parcels(
    location: str | None = Query(default=None),
    owner: str | None = Query(default=None),
    status: RegistrationStatus | None = Query(default=None),
    min_size: float | None = Query(default=None, ge=0),
    max_size: float | None = Query(default=None, ge=0),
    zoning_type: str | None = Query(default=None),
    caller: Caller = Depends(get_caller),
    service: RegistryService = Depends(registry_service),
    settings: Settings = Depends(settings_dep),
) -> JSONResponse:
    filters = SearchFilters(
        location=location,
        owner=parse_principal(owner) if owner else None,
        status=status,
        min_size=min_size,
        max_size=max_size,
        zoning_type=zoning_type,
    )
    return certified(await service.search_parcels(caller, filters), settings=settings)


@router.get("/parcels/{parcel_id}", response_model=LandParcel)
async def get_parcel(
    parcel_id: int,
    service: RegistryService = Depends(registry_service),
    settings: Settings = Depends(settings_dep),
) -> JSONResponse:
    parcel = await service.get_parcel(parcel_id)
    if parcel is None:
        raise http_error(
            BusinessErrorKind.not_found, f"parcel {parcel_id} not found", resource="parcel"
        )
    return certified(parcel, settings=settings)


@router.get("/parcels/{parcel_id}/history", response_model=list[TransactionRecord])
async def get_ownership_history(
    parcel_id: int,
    service: RegistryService = Depends(registry_service),
    settings: Settings = Depends(settings_dep),
) -> JSONResponse:
    history = await service.ownership_history(parcel_id)
    if history is None:
        raise http_error(
            BusinessErrorKind.not_found, f"parcel {parcel_id} not found", resource="parcel"
        )
    return certified(history, settings=settings)


@router.get("/owners/{owner}/parcels", response_model=list[LandParcel])
async def get_parcels_by_owner(
    owner: str,
    service: RegistryService = Depends(registry_service),
    settings: Settings = Depends(settings_dep),
) -> JSONResponse:
    parcels = await service.parcels_by_owner(parse_principal(owner))
    return certified(parcels, settings=settings)


# -- updates -------------------------------------------------------------------


@router.post("/parcels", response_model=MutationResponse, status_code=HTTP_201_CREATED)
async def register_parcel(
    body: ParcelRegistration,
    caller: Caller = Depends(get_caller),
    service: RegistryService = Depends(registry_service),
) -> MutationResponse:
    with violations():
        parcel_id = await service.register_parcel(caller, body)
    return MutationResponse(id=str(parcel_id))


@router.post("/parcels/{parcel_id}/approve", response_model=MutationResponse)
async def approve_registration(
    parcel_id: int,
    caller: Caller = Depends(get_caller),
    service: RegistryService = Depends(registry_service),
) -> MutationResponse:
    with violations():
        await service.approve_registration(caller, parcel_id)
    return MutationResponse(id=str(parcel_id))


@router.post("/parcels/{parcel_id}/revoke", response_model=MutationResponse)
async def revoke_parcel(
    parcel_id: int,
    body: RevokeParcelBody,
    caller: Caller = Depends(get_caller),
    service: RegistryService = Depends(registry_service),
) -> MutationResponse:
    with violations():
        await service.revoke_parcel(caller, parcel_id, body.reason)
    return MutationResponse(id=str(parcel_id))


@router.patch("/parcels/{parcel_id}", response_model=MutationResponse)
async def update_parcel(
    parcel_id: int,
    body: ParcelPatch,
    caller: Caller = Depends(get_caller),
    service: RegistryService = Depends(registry_service),
) -> MutationResponse:
    with violations():
        await service.update_parcel(caller, parcel_id, body)
    return MutationResponse(id=str(parcel_id))
