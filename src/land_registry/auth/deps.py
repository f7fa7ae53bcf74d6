"""
land_registry.auth.deps

FastAPI dependency functions for authentication and authorization in the reference registry.

Responsibilities:
- Convert an optional bearer identity token into a `PrincipalId` (anonymous when absent;
  an invalid token is a 401).
- Resolve the caller's registry roles from storage on every request (never from the token).
- Enforce role requirements via a reusable dependency factory.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from land_registry.api.deps import registry_service, settings_dep
from land_registry.auth.jwt import JwtConfig, JwtValidationError, principal_from_token
from land_registry.auth.models import Role
from land_registry.auth.principal import PrincipalId
from land_registry.errors import BusinessErrorKind
from land_registry.services.registry_service import Caller, RegistryService
from land_registry.settings import Settings

_bearer = HTTPBearer(auto_error=False)


def get_optional_principal(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(settings_dep),
) -> PrincipalId:
    # No credentials means an anonymous caller; bad credentials are rejected outright.
    if creds is None or not creds.credentials:
        return PrincipalId.anonymous()
    try:
        return principal_from_token(cfg=JwtConfig.from_settings(settings), token=creds.credentials)
    except JwtValidationError as e:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail={"kind": "SessionExpired", "message": f"Invalid identity token: {e}"},
        ) from e


async def get_caller(
    principal: PrincipalId = Depends(get_optional_principal),
    service: RegistryService = Depends(registry_service),
) -> Caller:
    return await service.caller(principal)


def require_roles(*required: Role):
    required_set = frozenset(required)

    async def _dep(caller: Caller = Depends(get_caller)) -> Caller:
        if not caller.has_any(required_set):
            raise HTTPException(
                status_code=HTTP_403_FORBIDDEN,
                detail={
                    "kind": BusinessErrorKind.unauthorized.value,
                    "message": "Insufficient role",
                },
            )
        return caller

    return _dep


# --- Module Notes -----------------------------------------------------------
# Most rules live in `RegistryService` because they depend on parcel state (e.g. "current
# owner"); `require_roles` only covers endpoints whose rule is a plain role check.
