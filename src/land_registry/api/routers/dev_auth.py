from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from starlette.status import HTTP_404_NOT_FOUND

from land_registry.api.deps import settings_dep
from land_registry.auth.jwt import JwtConfig, issue_identity_token
from land_registry.auth.principal import PrincipalId
from land_registry.settings import Settings

router = APIRouter(prefix="/v1/dev", tags=["dev"])


class DevTokenRequest(BaseModel):
    seed: str = Field(min_length=1, max_length=256)
    ttl_minutes: int = Field(default=60, ge=1, le=30 * 24 * 60)


class DevTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    principal: PrincipalId


@router.post("/token", response_model=DevTokenResponse)
async def mint_identity_token(
    body: DevTokenRequest,
    settings: Settings = Depends(settings_dep),
) -> DevTokenResponse:
    if settings.env == "prod":
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Not found")

    # Same derivation as `DevIdentityProvider`, so a seed maps to one principal everywhere.
    principal = PrincipalId.self_authenticating(body.seed.encode("utf-8"))
    token = issue_identity_token(
        cfg=JwtConfig.from_settings(settings),
        principal=principal,
        ttl=timedelta(minutes=body.ttl_minutes),
    )
    return DevTokenResponse(access_token=token, principal=principal)
