"""
land_registry.api.routers.transfers

Transfer request endpoints of the reference registry.

Responsibilities:
- Certified listing of transfer requests (all, or pending only) filtered by caller visibility.
- Initiation by the parcel owner; approval/rejection by registrars.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.status import HTTP_201_CREATED

from land_registry.api.deps import registry_service, require_service_id, settings_dep
from land_registry.api.errors import violations
from land_registry.api.responses import certified
from land_registry.auth.deps import get_caller
from land_registry.registry.schemas import (
    ApproveTransferBody,
    MutationResponse,
    NewTransferRequest,
    RejectTransferBody,
    TransferRequest,
)
from land_registry.services.registry_service import Caller, RegistryService
from land_registry.settings import Settings

router = APIRouter(
    prefix="/v1/transfers", tags=["transfers"], dependencies=[Depends(require_service_id)]
)


@router.get("", response_model=list[TransferRequest])
async def list_transfer_requests(
    caller: Caller = Depends(get_caller),
    service: RegistryService = Depends(registry_service),
    settings: Settings = Depends(settings_dep),
) -> JSONResponse:
    requests = await service.transfers(caller, pending_only=False)
    return certified(requests, settings=settings)


@router.get("/pending", response_model=list[TransferRequest])
async def list_pending_transfers(
    caller: Caller = Depends(get_caller),
    service: RegistryService = Depends(registry_service),
    settings: Settings = Depends(settings_dep),
) -> JSONResponse:
    requests = await service.transfers(caller, pending_only=True)
    return certified(requests, settings=settings)


@router.post("", response_model=MutationResponse, status_code=HTTP_201_CREATED)
async def initiate_transfer(
    body: NewTransferRequest,
    caller: Caller = Depends(get_caller),
    service: RegistryService = Depends(registry_service),
) -> MutationResponse:
    with violations():
        request_id = await service.initiate_transfer(caller, body)
    return MutationResponse(id=request_id)


@router.post("/{parcel_id}/approve", response_model=MutationResponse)
async def approve_transfer(
    parcel_id: int,
    body: ApproveTransferBody,
    caller: Caller = Depends(get_caller),
    service: RegistryService = Depends(registry_service),
) -> MutationResponse:
    with violations():
        request_id = await service.approve_transfer(caller, parcel_id, body.new_owner)
    return MutationResponse(id=request_id)


@router.post("/{parcel_id}/reject", response_model=MutationResponse)
async def reject_transfer(
    parcel_id: int,
    body: RejectTransferBody,
    caller: Caller = Depends(get_caller),
    service: RegistryService = Depends(registry_service),
) -> MutationResponse:
    with violations():
        request_id = await service.reject_transfer(caller, parcel_id, body.reason)
    return MutationResponse(id=request_id)
