"""
land_registry.api.routers.users

Role and profile endpoints of the reference registry.

Responsibilities:
- Certified role lookup for any principal (explicit grants only).
- Role assignment (Admin/Owner).
- Profile read (certified) and self-service profile save.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from land_registry.api.deps import registry_service, require_service_id, settings_dep
from land_registry.api.errors import http_error, parse_principal, violations
from land_registry.api.responses import certified
from land_registry.auth.deps import get_caller, require_roles
from land_registry.auth.models import ADMIN_ROLES
from land_registry.errors import BusinessErrorKind
from land_registry.registry.schemas import (
    MutationResponse,
    RoleAssignment,
    RolesResponse,
    UserProfile,
    UserProfileUpdate,
)
from land_registry.services.registry_service import Caller, RegistryService
from land_registry.settings import Settings

router = APIRouter(prefix="/v1", tags=["users"], dependencies=[Depends(require_service_id)])


@router.get("/users/{principal}/roles", response_model=RolesResponse)
async def get_user_roles(
    principal: str,
    service: RegistryService = Depends(registry_service),
    settings: Settings = Depends(settings_dep),
) -> JSONResponse:
    identity = parse_principal(principal)
    roles = await service.roles_for(identity)
    return certified(RolesResponse(principal=identity, roles=roles), settings=settings)


@router.get("/users/{principal}/profile", response_model=UserProfile)
async def get_user_profile(
    principal: str,
    service: RegistryService = Depends(registry_service),
    settings: Settings = Depends(settings_dep),
) -> JSONResponse:
    profile = await service.get_profile(parse_principal(principal))
    if profile is None:
        raise http_error(
            BusinessErrorKind.not_found, f"no profile for {principal}", resource="profile"
        )
    return certified(profile, settings=settings)


@router.put("/users/me/profile", response_model=MutationResponse)
async def save_user_profile(
    body: UserProfileUpdate,
    caller: Caller = Depends(get_caller),
    service: RegistryService = Depends(registry_service),
) -> MutationResponse:
    with violations():
        profile = await service.save_profile(caller, body)
    return MutationResponse(id=profile.principal.text)


@router.post("/roles", response_model=MutationResponse)
async def assign_role(
    body: RoleAssignment,
    caller: Caller = Depends(require_roles(*ADMIN_ROLES)),
    service: RegistryService = Depends(registry_service),
) -> MutationResponse:
    with violations():
        await service.assign_role(caller, principal=body.principal, role=body.role)
    return MutationResponse(id=body.principal.text)
