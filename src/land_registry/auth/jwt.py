"""
land_registry.auth.jwt

Identity-token issuing and validation helpers.

Responsibilities:
- Issue identity tokens for the dev identity provider (subject = principal text).
- Decode and validate tokens with strict claim requirements (iss/aud/exp/iat/sub).

Note:
- Tokens carry identity only. Roles live on the registry and are resolved per session,
  because role assignment changes out-of-band.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError

from land_registry.auth.principal import InvalidPrincipal, PrincipalId
from land_registry.settings import Settings


@dataclass(frozen=True, slots=True)
class JwtConfig:
    # Algorithm/issuer/audience are enforced during decoding.
    alg: str
    issuer: str
    audience: str
    secret: str

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtConfig:
        return cls(
            alg=settings.jwt_alg,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            secret=settings.jwt_secret,
        )


class JwtValidationError(Exception):
    pass


def issue_identity_token(
    *,
    cfg: JwtConfig,
    principal: PrincipalId,
    ttl: timedelta = timedelta(hours=8),
) -> str:
    now = datetime.now(tz=UTC)
    payload: dict[str, Any] = {
        "iss": cfg.issuer,
        "aud": cfg.audience,
        "sub": principal.text,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, cfg.secret, algorithm=cfg.alg)


def decode_and_validate(*, cfg: JwtConfig, token: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            options={
                "require": ["exp", "iat", "iss", "aud", "sub"],
            },
        )
    except InvalidTokenError as e:
        raise JwtValidationError(str(e)) from e


def principal_from_token(*, cfg: JwtConfig, token: str) -> PrincipalId:
    payload = decode_and_validate(cfg=cfg, token=token)
    try:
        return PrincipalId.from_text(str(payload["sub"]))
    except InvalidPrincipal as e:
        raise JwtValidationError(f"invalid subject: {e}") from e


# --- Module Notes -----------------------------------------------------------
# Token issuing is used by:
# - `auth.provider.DevIdentityProvider` (in-process identity provider)
# - `api/routers/dev_auth.py` (HTTP identity endpoint, disabled in prod)
