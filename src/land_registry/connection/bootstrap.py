"""
land_registry.connection.bootstrap

Connection Bootstrap: produce a registry network client bound to the current identity.

Responsibilities:
- Configure an `httpx.AsyncClient` for the registry host, identity credentials and service id.
- Development: fetch and install the registry root key in the background, never blocking.
- Production: install the pinned root key up front.
- Map transport failures and unverifiable responses to `TransportError`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from land_registry.auth.principal import PrincipalId
from land_registry.certification import CERTIFICATE_HEADER, verify
from land_registry.errors import TransportError
from land_registry.observability.logging import get_logger
from land_registry.observability.middleware import SERVICE_ID_HEADER
from land_registry.registry.schemas import RegistryStatus
from land_registry.settings import Settings

ROOT_KEY_PATH = "/api/v2/status"

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Environment:
    is_development: bool
    host: str
    identity_provider_url: str = ""
    backend_service_id: str = ""
    pinned_root_key: str | None = field(default=None, repr=False)
    timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> Environment:
        return cls(
            is_development=settings.is_development,
            host=settings.registry_host,
            identity_provider_url=settings.identity_provider_url,
            backend_service_id=settings.backend_service_id,
            pinned_root_key=settings.registry_root_key,
            timeout_seconds=settings.request_timeout_seconds,
        )


class RootTrust:
    """
    Holds the root key responses are verified against. In development the key arrives
    later from a background fetch; `settled()` waits for that fetch without failing.
    """

    def __init__(self, root_key: str | None = None) -> None:
        self._root_key = root_key
        self._fetch: asyncio.Task[None] | None = None
        self._fetcher: Any = None

    @property
    def root_key(self) -> str | None:
        return self._root_key

    def install(self, root_key: str) -> None:
        self._root_key = root_key

    def schedule(self, fetcher: Any) -> None:
        # Start now when a loop is running; otherwise defer to the first settle.
        self._fetcher = fetcher
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug("root_key_fetch_deferred")
            return
        self._fetch = loop.create_task(fetcher())

    async def settled(self) -> None:
        if self._fetch is None and self._fetcher is not None:
            self._fetch = asyncio.get_running_loop().create_task(self._fetcher())
        if self._fetch is not None:
            await asyncio.shield(self._fetch)

    def cancel(self) -> None:
        if self._fetch is not None and not self._fetch.done():
            self._fetch.cancel()


class Client:
    """
    Registry network client bound to one identity (or anonymous).
    Replaced wholesale on login and discarded on logout; never mutated field by field.
    """

    def __init__(
        self,
        *,
        identity: PrincipalId | None,
        environment: Environment,
        http: httpx.AsyncClient,
        trust: RootTrust,
    ) -> None:
        self._identity = identity
        self._environment = environment
        self._http = http
        self._trust = trust

    @property
    def identity(self) -> PrincipalId | None:
        return self._identity

    @property
    def environment(self) -> Environment:
        return self._environment

    @property
    def is_anonymous(self) -> bool:
        return self._identity is None

    @property
    def root_key_installed(self) -> bool:
        return self._trust.root_key is not None

    async def wait_for_trust(self) -> None:
        await self._trust.settled()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        certified: bool = False,
    ) -> httpx.Response:
        try:
            r = await self._http.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise TransportError(f"timeout calling {method} {path}") from e
        except httpx.RequestError as e:
            raise TransportError(f"transport failure calling {method} {path}: {e}") from e

        if r.status_code >= 500:
            raise TransportError(f"registry fault {r.status_code} on {method} {path}")
        if certified and r.is_success:
            await self._verify(r)
        return r

    async def _verify(self, r: httpx.Response) -> None:
        await self._trust.settled()
        certificate = r.headers.get(CERTIFICATE_HEADER)
        if certificate is None:
            raise TransportError(f"uncertified response from {r.request.url.path}")
        root_key = self._trust.root_key
        if root_key is None:
            raise TransportError("no trusted root key installed; cannot verify response")
        if not verify(r.content, certificate, root_key=root_key):
            raise TransportError(f"certificate verification failed for {r.request.url.path}")

    async def aclose(self) -> None:
        self._trust.cancel()
        await self._http.aclose()


def create_client(
    identity: PrincipalId | None = None,
    *,
    environment: Environment,
    credentials: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Client:
    headers = {SERVICE_ID_HEADER: environment.backend_service_id}
    if credentials:
        headers["Authorization"] = f"Bearer {credentials}"

    http = httpx.AsyncClient(
        base_url=environment.host,
        headers=headers,
        timeout=environment.timeout_seconds,
        transport=transport,
    )

    if environment.is_development:
        trust = RootTrust()

        async def fetch_root_key() -> None:
            try:
                r = await http.get(ROOT_KEY_PATH)
                r.raise_for_status()
                status = RegistryStatus.model_validate(r.json())
            except (httpx.HTTPError, ValueError) as e:
                # Non-fatal: the client stays usable; certified calls will fail verification.
                log.warning("root_key_fetch_failed", host=environment.host, error=str(e))
                return
            trust.install(status.root_key)
            log.info("root_key_installed", host=environment.host)

        trust.schedule(fetch_root_key)
    else:
        trust = RootTrust(environment.pinned_root_key)

    log.info(
        "client_created",
        host=environment.host,
        principal=identity.text if identity else None,
        development=environment.is_development,
    )
    return Client(identity=identity, environment=environment, http=http, trust=trust)


# --- Module Notes -----------------------------------------------------------
# No retries at this layer: callers may retry idempotent queries; update calls must not be
# replayed blindly.
