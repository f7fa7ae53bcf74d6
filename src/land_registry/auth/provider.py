"""
land_registry.auth.provider

Identity provider boundary.

Responsibilities:
- Define the provider protocol the Session Manager folds into its state machine.
- Provide an in-process development provider (mints identity tokens locally).
- Provide an HTTP provider that obtains identity tokens from the identity endpoint.

Providers report login outcomes through `LoginOptions.on_success` / `on_error` callbacks.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Protocol

import httpx

from land_registry.auth.jwt import (
    JwtConfig,
    JwtValidationError,
    decode_and_validate,
    issue_identity_token,
)
from land_registry.auth.principal import InvalidPrincipal, PrincipalId
from land_registry.observability.logging import get_logger

# Reason reported by providers when the user closes the login flow.
USER_INTERRUPT = "UserInterrupt"

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class LoginOptions:
    provider_url: str
    on_success: Callable[[], None]
    on_error: Callable[[str | None], None]
    max_time_to_live: timedelta = field(default=timedelta(hours=8))


class IdentityProvider(Protocol):
    async def login(self, options: LoginOptions) -> None: ...

    async def logout(self) -> None: ...

    async def is_authenticated(self) -> bool: ...

    def get_identity(self) -> PrincipalId: ...

    def get_credentials(self) -> str | None: ...


class DevIdentityProvider:
    """
    Local identity provider: the principal is derived from `seed` and the identity token is
    signed with the shared JWT config. `persisted=True` starts with an existing session,
    like a browser that kept a delegation from an earlier visit.
    """

    def __init__(self, *, cfg: JwtConfig, seed: str, persisted: bool = False) -> None:
        self._cfg = cfg
        self._principal = PrincipalId.self_authenticating(seed.encode("utf-8"))
        self._token: str | None = None
        if persisted:
            self._token = issue_identity_token(cfg=cfg, principal=self._principal)

    async def login(self, options: LoginOptions) -> None:
        self._token = issue_identity_token(
            cfg=self._cfg, principal=self._principal, ttl=options.max_time_to_live
        )
        options.on_success()

    async def logout(self) -> None:
        self._token = None

    async def is_authenticated(self) -> bool:
        if self._token is None:
            return False
        try:
            decode_and_validate(cfg=self._cfg, token=self._token)
        except JwtValidationError:
            self._token = None
            return False
        return True

    def get_identity(self) -> PrincipalId:
        return self._principal if self._token is not None else PrincipalId.anonymous()

    def get_credentials(self) -> str | None:
        return self._token


class HttpIdentityProvider:
    """Obtains identity tokens from `{provider_url}/v1/dev/token`."""

    def __init__(self, *, seed: str, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._seed = seed
        self._transport = transport
        self._principal: PrincipalId | None = None
        self._token: str | None = None

    async def login(self, options: LoginOptions) -> None:
        ttl_minutes = max(1, int(options.max_time_to_live.total_seconds() // 60))
        try:
            async with httpx.AsyncClient(
                base_url=options.provider_url, transport=self._transport
            ) as http:
                r = await http.post(
                    "/v1/dev/token", json={"seed": self._seed, "ttl_minutes": ttl_minutes}
                )
                r.raise_for_status()
                body = r.json()
            principal = PrincipalId.from_text(str(body["principal"]))
            token = str(body["access_token"])
        except (httpx.HTTPError, KeyError, ValueError, InvalidPrincipal) as e:
            log.warning(
                "identity_provider_login_failed", provider=options.provider_url, error=str(e)
            )
            options.on_error(str(e))
            return
        self._principal = principal
        self._token = token
        options.on_success()

    async def logout(self) -> None:
        self._principal = None
        self._token = None

    async def is_authenticated(self) -> bool:
        return self._token is not None

    def get_identity(self) -> PrincipalId:
        return self._principal or PrincipalId.anonymous()

    def get_credentials(self) -> str | None:
        return self._token


# --- Module Notes -----------------------------------------------------------
# Cryptographic identity proof generation stays with the provider; this core only consumes
# the resulting principal and bearer credentials.
