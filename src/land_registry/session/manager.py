"""
land_registry.session.manager

Session Manager: Unauthenticated -> Authenticating -> Authenticated -> (Unauthenticated).

Responsibilities:
- Memoized `initialize()` that resumes an existing identity-provider session.
- Single-flight `login()`: concurrent callers share one provider flow and its outcome.
- `logout()` that always clears local state, reporting (not raising) provider failures.
- Role refresh with a fail-open fallback to `{User}`.
- Own the per-session registry `Client`, replaced wholesale on login and logout.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Callable, Iterable
from datetime import timedelta

import httpx

from land_registry.auth.gate import authorize
from land_registry.auth.models import (
    DEFAULT_ROLES,
    Role,
    RoleResolution,
    Session,
    Unresolved,
    session_roles,
)
from land_registry.auth.provider import USER_INTERRUPT, IdentityProvider, LoginOptions
from land_registry.connection.bootstrap import Client, Environment, create_client
from land_registry.errors import AuthError, AuthErrorKind, NotInitialized, TransportError
from land_registry.observability.logging import get_logger
from land_registry.registry.client import RegistryClient
from land_registry.results import Err, Ok, Result
from land_registry.settings import Settings

log = get_logger(__name__)


class AuthState(enum.StrEnum):
    unauthenticated = "UNAUTHENTICATED"
    authenticating = "AUTHENTICATING"
    authenticated = "AUTHENTICATED"


class SessionManager:
    """
    One manager per acting caller. The `Session` it hands out is an immutable value;
    pass it explicitly to the authorization gate and the transfer workflow.
    """

    def __init__(
        self,
        *,
        provider: IdentityProvider,
        environment: Environment,
        transport: httpx.AsyncBaseTransport | None = None,
        client_factory: Callable[..., Client] = create_client,
        max_time_to_live: timedelta = timedelta(hours=8),
    ) -> None:
        self._provider = provider
        self._environment = environment
        self._transport = transport
        self._client_factory = client_factory
        self._max_time_to_live = max_time_to_live

        self._state = AuthState.unauthenticated
        self._session = Session.empty()
        self._client: Client | None = None
        self._init_task: asyncio.Task[None] | None = None
        self._login_task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        provider: IdentityProvider,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> SessionManager:
        return cls(
            provider=provider,
            environment=Environment.from_settings(settings),
            transport=transport,
            max_time_to_live=timedelta(minutes=settings.session_ttl_minutes),
        )

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def client(self) -> Client | None:
        return self._client

    def current_session(self) -> Session:
        # Pure read; never touches the network.
        return self._session

    def registry(self) -> RegistryClient:
        return RegistryClient(self._client)

    async def initialize(self) -> None:
        if self._init_task is None:
            self._init_task = asyncio.get_running_loop().create_task(self._initialize_once())
        await asyncio.shield(self._init_task)

    async def login(self) -> Result[None, AuthError]:
        await self.initialize()
        if self._state is AuthState.authenticated:
            return Ok(None)

        if self._login_task is None:
            self._login_task = asyncio.get_running_loop().create_task(self._login_flow())
        task = self._login_task
        try:
            # Shielded so an abandoned caller does not cancel the shared flow.
            await asyncio.shield(task)
        except AuthError as e:
            return Err(e)
        return Ok(None)

    async def logout(self) -> Result[None, AuthError]:
        principal = self._session.identity
        provider_error: AuthError | None = None
        try:
            await self._provider.logout()
        except Exception as e:
            provider_error = AuthError(
                AuthErrorKind.provider_failure, f"provider logout failed: {e}"
            )
            log.warning("provider_logout_failed", error=str(e))

        # Local state is cleared regardless of the provider outcome.
        self._session = Session.empty()
        self._state = AuthState.unauthenticated
        await self._replace_client(self._anonymous_client())
        log.info("session_cleared", principal=principal.text if principal else None)

        if provider_error is not None:
            return Err(provider_error)
        return Ok(None)

    async def refresh_roles(self) -> Result[frozenset[Role], AuthError]:
        session = self._session
        if session.identity is None:
            return Err(AuthError(AuthErrorKind.not_authenticated, "no authenticated session"))

        resolution: RoleResolution
        try:
            resolution = await self.registry().get_user_roles(session.identity)
        except NotInitialized:
            resolution = Unresolved("no registry connection")
        except TransportError as e:
            resolution = Unresolved(f"transport failure: {e.reason}")
        except AuthError as e:
            # Credentials rejected by the registry: the session cannot recover.
            await self._reset(reason=e.reason)
            return Err(e)

        roles = session_roles(resolution)
        if isinstance(resolution, Unresolved):
            log.warning(
                "role_resolution_fallback",
                principal=session.identity.text,
                reason=resolution.reason,
                roles=sorted(roles),
            )

        # Apply only if the session was not replaced while the query was in flight.
        if self._session.identity == session.identity:
            self._session = self._session.with_roles(roles)
        return Ok(roles)

    async def authorize(self, required: Iterable[Role], *, fresh: bool = True) -> bool:
        if fresh and self._session.is_authenticated:
            await self.refresh_roles()
        return authorize(self._session, required)

    async def aclose(self) -> None:
        await self._replace_client(None)

    async def _initialize_once(self) -> None:
        await self._replace_client(self._anonymous_client())
        if not await self._provider.is_authenticated():
            return
        log.info("provider_session_resumed")
        try:
            await self._establish()
        except AuthError as e:
            log.warning("provider_session_rejected", kind=e.kind.value, reason=e.reason)
            await self._reset(reason=e.reason)

    async def _login_flow(self) -> None:
        self._state = AuthState.authenticating
        log.info("login_started", provider=self._environment.identity_provider_url)
        try:
            await self._provider_login()
            await self._establish()
        except AuthError as e:
            self._state = AuthState.unauthenticated
            self._session = Session.empty()
            log.warning("login_failed", kind=e.kind.value, reason=e.reason)
            raise
        finally:
            self._login_task = None

    async def _provider_login(self) -> None:
        outcome: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def on_success() -> None:
            if not outcome.done():
                outcome.set_result(None)

        def on_error(reason: str | None = None) -> None:
            if outcome.done():
                return
            kind = (
                AuthErrorKind.cancelled
                if reason == USER_INTERRUPT
                else AuthErrorKind.provider_failure
            )
            outcome.set_exception(AuthError(kind, reason or "identity provider login failed"))

        options = LoginOptions(
            provider_url=self._environment.identity_provider_url,
            on_success=on_success,
            on_error=on_error,
            max_time_to_live=self._max_time_to_live,
        )
        try:
            await self._provider.login(options)
        except Exception as e:
            if not outcome.done():
                outcome.cancel()
            raise AuthError(AuthErrorKind.provider_failure, str(e)) from e
        await outcome

    async def _establish(self) -> None:
        identity = self._provider.get_identity()
        credentials = self._provider.get_credentials()
        if identity.is_anonymous or not credentials:
            raise AuthError(
                AuthErrorKind.provider_failure, "identity provider returned no identity"
            )

        client = self._client_factory(
            identity,
            environment=self._environment,
            credentials=credentials,
            transport=self._transport,
        )
        await self._replace_client(client)
        self._session = Session.established(identity, DEFAULT_ROLES)
        self._state = AuthState.authenticated
        refreshed = await self.refresh_roles()
        if isinstance(refreshed, Err):
            raise refreshed.error
        log.info(
            "session_established",
            principal=identity.text,
            roles=sorted(self._session.roles),
        )

    async def _reset(self, *, reason: str) -> None:
        log.warning("session_destroyed", reason=reason)
        self._session = Session.empty()
        self._state = AuthState.unauthenticated
        await self._replace_client(self._anonymous_client())

    def _anonymous_client(self) -> Client:
        return self._client_factory(
            None, environment=self._environment, transport=self._transport
        )

    async def _replace_client(self, client: Client | None) -> None:
        previous, self._client = self._client, client
        if previous is not None:
            await previous.aclose()


# --- Module Notes -----------------------------------------------------------
# Roles are fetched on login and on every fresh authorization check; role changes made on the
# registry between a check and a call are caught only by the registry's own re-check.
