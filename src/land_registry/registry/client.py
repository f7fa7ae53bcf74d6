"""
land_registry.registry.client

Typed facade over the registry's query/update operations.

Responsibilities:
- Require a bootstrapped connection (`NotInitialized` otherwise).
- Queries return plain values; update methods return `Ok(id)` / `Err(BusinessError)`.
- Map wire statuses onto the error taxonomy (401 raises `AuthError`, faults raise `TransportError`).
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from land_registry.auth.models import Resolved, Role, RoleResolution, Unresolved
from land_registry.auth.principal import PrincipalId
from land_registry.connection.bootstrap import Client
from land_registry.errors import (
    AuthError,
    AuthErrorKind,
    BusinessError,
    BusinessErrorKind,
    NotInitialized,
    TransportError,
)
from land_registry.observability.logging import get_logger
from land_registry.registry.schemas import (
    ApproveTransferBody,
    LandParcel,
    MutationResponse,
    NewTransferRequest,
    ParcelPatch,
    ParcelRegistration,
    RejectTransferBody,
    RevokeParcelBody,
    RoleAssignment,
    RolesResponse,
    SearchFilters,
    TransactionRecord,
    TransferRequest,
    UserProfile,
    UserProfileUpdate,
)
from land_registry.results import Err, Ok, Result

log = get_logger(__name__)

_STATUS_KINDS: dict[int, BusinessErrorKind] = {
    400: BusinessErrorKind.validation_failed,
    403: BusinessErrorKind.unauthorized,
    404: BusinessErrorKind.not_found,
    409: BusinessErrorKind.invalid_state,
    422: BusinessErrorKind.validation_failed,
}

_KINDS_BY_VALUE: dict[str, BusinessErrorKind] = {k.value: k for k in BusinessErrorKind}


class RegistryClient:
    def __init__(self, client: Client | None) -> None:
        self._client = client

    @property
    def connection(self) -> Client | None:
        return self._client

    def _conn(self) -> Client:
        if self._client is None:
            raise NotInitialized()
        return self._client

    # -- queries ---------------------------------------------------------------

    async def get_parcel(self, parcel_id: int) -> LandParcel | None:
        r = await self._conn().request("GET", f"/v1/parcels/{parcel_id}", certified=True)
        if _is_absent(r, "parcel"):
            return None
        return _parse(LandParcel, self._expect_success(r))

    async def get_parcels_by_owner(self, owner: PrincipalId) -> list[LandParcel]:
        r = await self._conn().request("GET", f"/v1/owners/{owner.text}/parcels", certified=True)
        return [_parse(LandParcel, item) for item in self._expect_success(r)]

    async def get_all_parcels(self) -> Result[list[LandParcel], BusinessError]:
        # Remote-enforced to Admin; a plain user gets Err(Unauthorized).
        r = await self._conn().request("GET", "/v1/parcels", certified=True)
        if not r.is_success:
            return Err(self._business_error(r))
        return Ok([_parse(LandParcel, item) for item in r.json()])

    async def search_parcels(self, filters: SearchFilters) -> list[LandParcel]:
        r = await self._conn().request(
            "GET", "/v1/parcels/search", params=filters.to_query_params(), certified=True
        )
        return [_parse(LandParcel, item) for item in self._expect_success(r)]

    async def get_ownership_history(self, parcel_id: int) -> list[TransactionRecord] | None:
        r = await self._conn().request("GET", f"/v1/parcels/{parcel_id}/history", certified=True)
        if _is_absent(r, "parcel"):
            return None
        return [_parse(TransactionRecord, item) for item in self._expect_success(r)]

    async def get_user_roles(self, identity: PrincipalId) -> RoleResolution:
        r = await self._conn().request("GET", f"/v1/users/{identity.text}/roles", certified=True)
        if not r.is_success:
            return Unresolved(str(self._business_error(r)))
        body = _parse(RolesResponse, r.json())
        return Resolved(frozenset(body.roles))

    async def get_user_profile(self, identity: PrincipalId) -> UserProfile | None:
        r = await self._conn().request("GET", f"/v1/users/{identity.text}/profile", certified=True)
        if _is_absent(r, "profile"):
            return None
        return _parse(UserProfile, self._expect_success(r))

    async def get_pending_transfers(self) -> list[TransferRequest]:
        r = await self._conn().request("GET", "/v1/transfers/pending", certified=True)
        return [_parse(TransferRequest, item) for item in self._expect_success(r)]

    async def get_transfer_requests(self) -> list[TransferRequest]:
        r = await self._conn().request("GET", "/v1/transfers", certified=True)
        return [_parse(TransferRequest, item) for item in self._expect_success(r)]

    # -- updates ---------------------------------------------------------------

    async def register_parcel(self, data: ParcelRegistration) -> Result[int, BusinessError]:
        result = await self._mutate("POST", "/v1/parcels", data)
        if isinstance(result, Ok):
            return Ok(int(result.value))
        return result

    async def approve_registration(self, parcel_id: int) -> Result[str, BusinessError]:
        return await self._mutate("POST", f"/v1/parcels/{parcel_id}/approve", None)

    async def revoke_parcel(self, parcel_id: int, reason: str) -> Result[str, BusinessError]:
        return await self._mutate(
            "POST", f"/v1/parcels/{parcel_id}/revoke", RevokeParcelBody(reason=reason)
        )

    async def update_parcel(self, parcel_id: int, patch: ParcelPatch) -> Result[str, BusinessError]:
        return await self._mutate("PATCH", f"/v1/parcels/{parcel_id}", patch, exclude_unset=True)

    async def transfer_ownership(self, request: NewTransferRequest) -> Result[str, BusinessError]:
        return await self._mutate("POST", "/v1/transfers", request)

    async def approve_transfer(
        self, parcel_id: int, new_owner: PrincipalId
    ) -> Result[str, BusinessError]:
        return await self._mutate(
            "POST",
            f"/v1/transfers/{parcel_id}/approve",
            ApproveTransferBody(new_owner=new_owner),
        )

    async def reject_transfer(self, parcel_id: int, reason: str) -> Result[str, BusinessError]:
        return await self._mutate(
            "POST", f"/v1/transfers/{parcel_id}/reject", RejectTransferBody(reason=reason)
        )

    async def assign_role(self, identity: PrincipalId, role: Role) -> Result[None, BusinessError]:
        result = await self._mutate(
            "POST", "/v1/roles", RoleAssignment(principal=identity, role=role)
        )
        if isinstance(result, Ok):
            return Ok(None)
        return result

    async def save_user_profile(self, profile: UserProfileUpdate) -> Result[str, BusinessError]:
        return await self._mutate("PUT", "/v1/users/me/profile", profile)

    # -- helpers ---------------------------------------------------------------

    async def _mutate(
        self,
        method: str,
        path: str,
        body: BaseModel | None,
        *,
        exclude_unset: bool = False,
    ) -> Result[str, BusinessError]:
        payload = (
            body.model_dump(mode="json", exclude_unset=exclude_unset) if body is not None else None
        )
        r = await self._conn().request(method, path, json=payload)
        if r.is_success:
            return Ok(_parse(MutationResponse, r.json()).id)
        error = self._business_error(r)
        log.info("registry_update_rejected", method=method, path=path, kind=error.kind.value)
        return Err(error)

    def _expect_success(self, r: httpx.Response) -> Any:
        if r.is_success:
            return r.json()
        error = self._business_error(r)
        # Queries are public; a business rejection here means the wire contract was broken.
        raise TransportError(f"unexpected registry response to query: {error}")

    def _business_error(self, r: httpx.Response) -> BusinessError:
        if r.status_code == 401:
            raise AuthError(
                AuthErrorKind.session_expired, "registry rejected identity credentials"
            )

        try:
            body = r.json()
        except ValueError:
            body = r.text or None
        detail = body.get("detail") if isinstance(body, dict) else body

        kind = _STATUS_KINDS.get(r.status_code)
        message = str(detail) if detail is not None else f"HTTP {r.status_code}"
        if isinstance(detail, dict):
            kind = _KINDS_BY_VALUE.get(str(detail.get("kind")), kind)
            message = str(detail.get("message", message))
        if kind is None:
            raise TransportError(f"unexpected registry status {r.status_code}: {message}")
        return BusinessError(kind, message)


def _is_absent(r: httpx.Response, resource: str) -> bool:
    # A 404 that names another cause (e.g. an unknown service id) is not "record absent".
    if r.status_code != 404:
        return False
    try:
        detail = r.json().get("detail")
    except (ValueError, AttributeError):
        return True
    if not isinstance(detail, dict) or "kind" not in detail:
        return True
    return detail.get("resource") == resource


def _parse(model: type[Any], data: Any) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise TransportError(f"malformed registry response for {model.__name__}: {e}") from e


# --- Module Notes -----------------------------------------------------------
# No call here retries. Replaying an approval after success yields `InvalidState`, which is
# how duplicate submissions are detected.
