"""
land_registry.services.registry_service

Registry rules service (transaction + persistence owner).

Responsibilities:
- Enforce the registry's role rules independently of any client-side gate.
- Apply parcel registration, correction, revocation and transfer resolution atomically.
- Resolve concurrent transfer resolutions last-writer-wins: the loser gets `InvalidState`.
- Raise `RegistryRuleViolation` for expected business failures; routers map it onto HTTP.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from land_registry.auth.models import (
    ADMIN_ROLES,
    OVERSIGHT_ROLES,
    REGISTRAR_ROLES,
    RESOLVER_ROLES,
    Role,
)
from land_registry.auth.principal import PrincipalId
from land_registry.db.models import Parcel, TransferRequestRow
from land_registry.db.repositories.parcels import ParcelRepo
from land_registry.db.repositories.transfers import TransferRepo
from land_registry.db.repositories.users import UserRepo
from land_registry.errors import BusinessErrorKind
from land_registry.observability.logging import get_logger
from land_registry.registry.schemas import (
    LandParcel,
    NewTransferRequest,
    ParcelPatch,
    ParcelRegistration,
    RegistrationStatus,
    SearchFilters,
    TransactionKind,
    TransactionRecord,
    TransferRequest,
    TransferStatus,
    UserProfile,
    UserProfileUpdate,
)
from land_registry.services.views import parcel_view, profile_view, record_view, transfer_view

log = get_logger(__name__)

_PUBLIC_STATUSES: tuple[RegistrationStatus, ...] = (
    RegistrationStatus.pending,
    RegistrationStatus.registered,
)
_METADATA_FIELDS = (
    "location",
    "size_sq_meters",
    "document_hashes",
    "legal_description",
    "zoning_type",
    "assessed_value",
)


class RegistryRuleViolation(Exception):
    def __init__(self, kind: BusinessErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass(frozen=True, slots=True)
class Caller:
    principal: PrincipalId
    # Registry-granted roles plus the implicit `User`.
    roles: frozenset[Role]

    def has_any(self, roles: frozenset[Role]) -> bool:
        return not self.principal.is_anonymous and not self.roles.isdisjoint(roles)


def _require(caller: Caller, roles: frozenset[Role], action: str) -> None:
    if not caller.has_any(roles):
        allowed = ", ".join(sorted(r.value for r in roles))
        raise RegistryRuleViolation(
            BusinessErrorKind.unauthorized, f"{action} requires one of: {allowed}"
        )


class RegistryService:
    def __init__(self, *, session: AsyncSession) -> None:
        self._session = session
        self._parcels = ParcelRepo(session)
        self._transfers = TransferRepo(session)
        self._users = UserRepo(session)

    # -- identities -------------------------------------------------------------

    async def caller(self, principal: PrincipalId) -> Caller:
        if principal.is_anonymous:
            return Caller(principal=principal, roles=frozenset())
        granted = await self._users.roles_for(principal)
        return Caller(principal=principal, roles=granted | {Role.user})

    async def roles_for(self, principal: PrincipalId) -> list[Role]:
        # Only explicit grants; the implicit `User` is added by whoever builds the session.
        return sorted(await self._users.roles_for(principal), key=lambda r: r.value)

    async def assign_role(self, caller: Caller, *, principal: PrincipalId, role: Role) -> None:
        _require(caller, ADMIN_ROLES, "assigning roles")
        if role is Role.owner and Role.owner not in caller.roles:
            raise RegistryRuleViolation(
                BusinessErrorKind.unauthorized, "only an Owner may grant the Owner role"
            )
        if principal.is_anonymous:
            raise RegistryRuleViolation(
                BusinessErrorKind.validation_failed, "roles cannot be granted to anonymous"
            )
        await self._users.grant(principal=principal, role=role, granted_by=caller.principal)
        await self._session.commit()
        log.info(
            "role_assigned", principal=principal.text, role=role.value, by=caller.principal.text
        )

    async def get_profile(self, principal: PrincipalId) -> UserProfile | None:
        row = await self._users.get_profile(principal)
        return profile_view(row) if row is not None else None

    async def save_profile(self, caller: Caller, update: UserProfileUpdate) -> UserProfile:
        _require(caller, frozenset({Role.user}), "saving a profile")
        row = await self._users.upsert_profile(
            principal=caller.principal, name=update.name, contact_info=update.contact_info
        )
        await self._session.commit()
        return profile_view(row)

    # -- parcels ----------------------------------------------------------------

    async def get_parcel(self, parcel_id: int) -> LandParcel | None:
        row = await self._parcels.get(parcel_id)
        return parcel_view(row) if row is not None else None

    async def parcels_by_owner(self, owner: PrincipalId) -> list[LandParcel]:
        return [parcel_view(p) for p in await self._parcels.list_by_owner(owner.text)]

    async def all_parcels(self, caller: Caller) -> list[LandParcel]:
        _require(caller, ADMIN_ROLES, "listing all parcels")
        return [parcel_view(p) for p in await self._parcels.list_all()]

    async def search_parcels(self, caller: Caller, filters: SearchFilters) -> list[LandParcel]:
        # Revoked parcels are only searchable by oversight roles.
        statuses = _PUBLIC_STATUSES
        if caller.has_any(OVERSIGHT_ROLES):
            statuses = tuple(RegistrationStatus)
        rows = await self._parcels.search(filters, visible_statuses=statuses)
        return [parcel_view(p) for p in rows]

    async def ownership_history(self, parcel_id: int) -> list[TransactionRecord] | None:
        row = await self._parcels.get(parcel_id)
        if row is None:
            return None
        return [record_view(r) for r in row.history]

    async def register_parcel(self, caller: Caller, data: ParcelRegistration) -> int:
        _require(caller, REGISTRAR_ROLES, "registering parcels")
        owner = data.owner or caller.principal
        if owner.is_anonymous:
            raise RegistryRuleViolation(
                BusinessErrorKind.validation_failed, "a parcel owner cannot be anonymous"
            )

        hashes = data.metadata.document_hashes
        parcel = await self._parcels.create(
            owner=owner.text, metadata=data.metadata, status=RegistrationStatus.pending
        )
        await self._parcels.append_record(
            parcel,
            kind=TransactionKind.registration,
            from_owner=None,
            to_owner=owner.text,
            document_hash=hashes[0] if hashes else None,
            note=f"Initial registration at {data.metadata.location}",
        )
        await self._session.commit()
        log.info("parcel_registered", parcel_id=parcel.id, owner=owner.text)
        return parcel.id

    async def approve_registration(self, caller: Caller, parcel_id: int) -> int:
        _require(caller, REGISTRAR_ROLES, "approving registrations")
        parcel = await self._load_parcel(parcel_id)
        if parcel.status is not RegistrationStatus.pending:
            raise RegistryRuleViolation(
                BusinessErrorKind.invalid_state, f"parcel {parcel_id} is not pending registration"
            )

        parcel.status = RegistrationStatus.registered
        await self._parcels.append_record(
            parcel,
            kind=TransactionKind.status_update,
            from_owner=parcel.owner,
            to_owner=parcel.owner,
            note="Registration approved",
        )
        await self._session.commit()
        log.info("registration_approved", parcel_id=parcel_id, by=caller.principal.text)
        return parcel_id

    async def revoke_parcel(self, caller: Caller, parcel_id: int, reason: str) -> int:
        _require(caller, ADMIN_ROLES, "revoking parcels")
        parcel = await self._load_parcel(parcel_id)
        if parcel.status is RegistrationStatus.revoked:
            raise RegistryRuleViolation(
                BusinessErrorKind.invalid_state, f"parcel {parcel_id} is already revoked"
            )

        await self._cancel_pending(parcel_id, caller, note=f"parcel revoked: {reason}")
        parcel.status = RegistrationStatus.revoked
        await self._parcels.append_record(
            parcel,
            kind=TransactionKind.status_update,
            from_owner=parcel.owner,
            to_owner=parcel.owner,
            note=f"Revoked: {reason}",
        )
        await self._session.commit()
        log.info("parcel_revoked", parcel_id=parcel_id, by=caller.principal.text)
        return parcel_id

    async def update_parcel(self, caller: Caller, parcel_id: int, patch: ParcelPatch) -> int:
        _require(caller, REGISTRAR_ROLES, "updating parcels")
        fields = patch.model_fields_set
        if "owner" in fields and patch.owner is not None:
            _require(caller, ADMIN_ROLES, "correcting parcel ownership")

        parcel = await self._load_parcel(parcel_id)
        if parcel.status is RegistrationStatus.revoked:
            raise RegistryRuleViolation(
                BusinessErrorKind.invalid_state, f"parcel {parcel_id} is revoked"
            )

        for name in _METADATA_FIELDS:
            if name in fields:
                value = getattr(patch, name)
                if value is None and name in ("location", "size_sq_meters", "document_hashes"):
                    raise RegistryRuleViolation(
                        BusinessErrorKind.validation_failed, f"{name} cannot be cleared"
                    )
                setattr(parcel, name, list(value) if name == "document_hashes" else value)
        if "coordinates" in fields and patch.coordinates is not None:
            parcel.latitude = patch.coordinates.latitude
            parcel.longitude = patch.coordinates.longitude

        if "owner" in fields and patch.owner is not None and patch.owner.text != parcel.owner:
            if patch.owner.is_anonymous:
                raise RegistryRuleViolation(
                    BusinessErrorKind.validation_failed, "a parcel owner cannot be anonymous"
                )
            previous = parcel.owner
            await self._cancel_pending(parcel_id, caller, note="superseded by ownership correction")
            parcel.owner = patch.owner.text
            await self._parcels.append_record(
                parcel,
                kind=TransactionKind.transfer,
                from_owner=previous,
                to_owner=parcel.owner,
                note=patch.note or "Ownership correction",
            )
            log.info(
                "ownership_corrected",
                parcel_id=parcel_id,
                from_owner=previous,
                to_owner=parcel.owner,
                by=caller.principal.text,
            )

        await self._session.commit()
        return parcel_id

    # -- transfers --------------------------------------------------------------

    async def transfers(self, caller: Caller, *, pending_only: bool) -> list[TransferRequest]:
        visible_to = None if caller.has_any(OVERSIGHT_ROLES) else caller.principal.text
        rows = await self._transfers.list_visible(visible_to=visible_to, pending_only=pending_only)
        return [transfer_view(r) for r in rows]

    async def initiate_transfer(self, caller: Caller, req: NewTransferRequest) -> str:
        parcel = await self._load_parcel(req.parcel_id)
        if caller.principal.is_anonymous or caller.principal.text != parcel.owner:
            raise RegistryRuleViolation(
                BusinessErrorKind.unauthorized, "only the current owner may initiate a transfer"
            )
        if parcel.status is not RegistrationStatus.registered:
            raise RegistryRuleViolation(
                BusinessErrorKind.invalid_state,
                f"parcel {parcel.id} is {parcel.status.value}, not Registered",
            )
        if req.new_owner.is_anonymous or req.new_owner.text == parcel.owner:
            raise RegistryRuleViolation(
                BusinessErrorKind.validation_failed,
                "new owner must be a non-anonymous principal other than the current owner",
            )
        if not req.reason.strip():
            raise RegistryRuleViolation(
                BusinessErrorKind.validation_failed, "a transfer reason is required"
            )
        if await self._transfers.pending_for_parcel(parcel.id) is not None:
            raise RegistryRuleViolation(
                BusinessErrorKind.invalid_state,
                f"parcel {parcel.id} already has a pending transfer",
            )

        try:
            row = await self._transfers.create(
                parcel_id=parcel.id,
                requested_by=caller.principal.text,
                new_owner=req.new_owner.text,
                fee=req.fee,
                reason=req.reason.strip(),
                documents=sorted(set(req.documents)),
            )
            await self._session.commit()
        except IntegrityError as e:
            # Lost the race against a concurrent initiation for the same parcel.
            await self._session.rollback()
            raise RegistryRuleViolation(
                BusinessErrorKind.invalid_state,
                f"parcel {req.parcel_id} already has a pending transfer",
            ) from e

        log.info(
            "transfer_requested",
            parcel_id=parcel.id,
            request_id=str(row.id),
            new_owner=row.new_owner,
        )
        return str(row.id)

    async def approve_transfer(
        self, caller: Caller, parcel_id: int, new_owner: PrincipalId
    ) -> str:
        _require(caller, RESOLVER_ROLES, "approving transfers")
        parcel = await self._load_parcel(parcel_id)
        request = await self._pending_request(parcel_id)
        if request.new_owner != new_owner.text:
            raise RegistryRuleViolation(
                BusinessErrorKind.invalid_state,
                "pending transfer names a different new owner",
            )
        if parcel.status is not RegistrationStatus.registered:
            raise RegistryRuleViolation(
                BusinessErrorKind.invalid_state, f"parcel {parcel_id} is not transferable"
            )

        await self._claim(request, caller, status=TransferStatus.approved, note=None)
        previous = parcel.owner
        parcel.owner = request.new_owner
        await self._parcels.append_record(
            parcel,
            kind=TransactionKind.transfer,
            from_owner=previous,
            to_owner=request.new_owner,
            document_hash=request.documents[0] if request.documents else None,
            note=f"Transfer approved: {request.reason}",
        )
        await self._session.commit()
        log.info(
            "transfer_approved",
            parcel_id=parcel_id,
            request_id=str(request.id),
            from_owner=previous,
            to_owner=parcel.owner,
            by=caller.principal.text,
        )
        return str(request.id)

    async def reject_transfer(self, caller: Caller, parcel_id: int, reason: str) -> str:
        _require(caller, RESOLVER_ROLES, "rejecting transfers")
        await self._load_parcel(parcel_id)
        request = await self._pending_request(parcel_id)
        await self._claim(
            request, caller, status=TransferStatus.rejected, note=reason.strip() or None
        )
        await self._session.commit()
        log.info(
            "transfer_rejected",
            parcel_id=parcel_id,
            request_id=str(request.id),
            by=caller.principal.text,
        )
        return str(request.id)

    # -- helpers ----------------------------------------------------------------

    async def _load_parcel(self, parcel_id: int) -> Parcel:
        parcel = await self._parcels.get(parcel_id)
        if parcel is None:
            raise RegistryRuleViolation(
                BusinessErrorKind.not_found, f"parcel {parcel_id} not found"
            )
        return parcel

    async def _pending_request(self, parcel_id: int) -> TransferRequestRow:
        request = await self._transfers.pending_for_parcel(parcel_id)
        if request is None:
            raise RegistryRuleViolation(
                BusinessErrorKind.invalid_state, f"parcel {parcel_id} has no pending transfer"
            )
        return request

    async def _claim(
        self,
        request: TransferRequestRow,
        caller: Caller,
        *,
        status: TransferStatus,
        note: str | None,
    ) -> None:
        claimed = await self._transfers.claim(
            request.id, status=status, resolver=caller.principal.text, note=note
        )
        if not claimed:
            await self._session.rollback()
            raise RegistryRuleViolation(
                BusinessErrorKind.invalid_state, "transfer request was already resolved"
            )

    async def _cancel_pending(self, parcel_id: int, caller: Caller, *, note: str) -> None:
        request = await self._transfers.pending_for_parcel(parcel_id)
        if request is not None:
            await self._transfers.claim(
                request.id,
                status=TransferStatus.rejected,
                resolver=caller.principal.text,
                note=note,
            )
