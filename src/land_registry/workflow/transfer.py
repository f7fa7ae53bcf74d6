"""
land_registry.workflow.transfer

Transfer Workflow: NoPendingTransfer -> PendingTransfer(request) -> NoPendingTransfer.

Responsibilities:
- Gate every step locally (owner for initiation, Admin/LandRegistrar for resolution).
- Validate transfer inputs before anything reaches the registry.
- Keep a refreshed view of pending transfers and of parcels touched by a resolution.

The registry is the authority: it re-checks roles and state, and resolves races
last-writer-wins. A losing resolver sees `InvalidState` and must not retry.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation

from land_registry.auth.gate import authorize, authorize_owner
from land_registry.auth.models import RESOLVER_ROLES, Session
from land_registry.auth.principal import InvalidPrincipal, PrincipalId
from land_registry.errors import BusinessError, BusinessErrorKind, TransportError
from land_registry.observability.logging import get_logger
from land_registry.registry.client import RegistryClient
from land_registry.registry.schemas import (
    LandParcel,
    NewTransferRequest,
    RegistrationStatus,
    TransferRequest,
)
from land_registry.results import Err, Ok, Result

log = get_logger(__name__)

_STALE_VIEW_KINDS = frozenset({BusinessErrorKind.invalid_state, BusinessErrorKind.not_found})


@dataclass(frozen=True, slots=True)
class NoPendingTransfer:
    parcel_id: int


@dataclass(frozen=True, slots=True)
class PendingTransfer:
    request: TransferRequest


TransferState = NoPendingTransfer | PendingTransfer


class TransferWorkflow:
    def __init__(self, registry: RegistryClient) -> None:
        self._registry = registry
        self._pending: dict[int, TransferRequest] = {}
        self._parcels: dict[int, LandParcel] = {}

    @property
    def pending_transfers(self) -> list[TransferRequest]:
        return list(self._pending.values())

    def cached_parcel(self, parcel_id: int) -> LandParcel | None:
        return self._parcels.get(parcel_id)

    def state_of(self, parcel_id: int) -> TransferState:
        request = self._pending.get(parcel_id)
        if request is None:
            return NoPendingTransfer(parcel_id)
        return PendingTransfer(request)

    async def refresh(self) -> list[TransferRequest]:
        pending = await self._registry.get_pending_transfers()
        self._pending = {r.parcel_id: r for r in pending}
        return pending

    async def initiate_transfer(
        self,
        session: Session,
        parcel: LandParcel,
        new_owner: PrincipalId | str,
        fee: Decimal | int | str,
        reason: str,
        documents: Iterable[str] = (),
    ) -> Result[TransferRequest, BusinessError]:
        # Local gate short-circuits before any remote call.
        if not authorize_owner(session, parcel.owner):
            return Err(BusinessError.unauthorized("only the current owner may initiate a transfer"))

        validated = _validate(parcel, new_owner, fee, reason)
        if isinstance(validated, Err):
            return validated
        recipient, amount = validated.value

        if parcel.status is RegistrationStatus.revoked:
            return Err(BusinessError.invalid_state(f"parcel {parcel.id} is revoked"))

        submitted = await self._registry.transfer_ownership(
            NewTransferRequest(
                parcel_id=parcel.id,
                new_owner=recipient,
                fee=amount,
                reason=reason.strip(),
                documents=sorted(set(documents)),
            )
        )
        if isinstance(submitted, Err):
            return submitted

        request = await self._reload_pending(parcel.id)
        if request is None or request.id != submitted.value:
            # Accepted by the registry but not visible as pending in our view.
            request = TransferRequest(
                id=submitted.value,
                parcel_id=parcel.id,
                requested_by=session.identity,
                new_owner=recipient,
                fee=amount,
                reason=reason.strip(),
                documents=sorted(set(documents)),
                created_at=datetime.now(tz=UTC),
            )

        log.info(
            "transfer_initiated",
            parcel_id=parcel.id,
            request_id=request.id,
            new_owner=recipient.text,
        )
        return Ok(request)

    async def approve_transfer(
        self, session: Session, request: TransferRequest
    ) -> Result[str, BusinessError]:
        if not authorize(session, RESOLVER_ROLES):
            return Err(
                BusinessError.unauthorized("approving transfers requires Admin or LandRegistrar")
            )

        result = await self._registry.approve_transfer(request.parcel_id, request.new_owner)
        await self._after_resolution(request, result, decision="approved")
        return result

    async def reject_transfer(
        self, session: Session, request: TransferRequest, reason: str
    ) -> Result[str, BusinessError]:
        if not authorize(session, RESOLVER_ROLES):
            return Err(
                BusinessError.unauthorized("rejecting transfers requires Admin or LandRegistrar")
            )

        result = await self._registry.reject_transfer(request.parcel_id, reason)
        await self._after_resolution(request, result, decision="rejected")
        return result

    async def _after_resolution(
        self, request: TransferRequest, result: Result[str, BusinessError], *, decision: str
    ) -> None:
        if isinstance(result, Err):
            log.info(
                "transfer_resolution_rejected",
                parcel_id=request.parcel_id,
                request_id=request.id,
                kind=result.error.kind.value,
            )
            if result.error.kind not in _STALE_VIEW_KINDS:
                return
        else:
            log.info(f"transfer_{decision}", parcel_id=request.parcel_id, request_id=request.id)

        # Someone decided (us or a concurrent resolver): reload both views.
        await self._reload_pending(request.parcel_id)
        try:
            parcel = await self._registry.get_parcel(request.parcel_id)
        except TransportError as e:
            log.warning(
                "transfer_view_refresh_failed", parcel_id=request.parcel_id, reason=e.reason
            )
            return
        if parcel is None:
            self._parcels.pop(request.parcel_id, None)
        else:
            self._parcels[parcel.id] = parcel

    async def _reload_pending(self, parcel_id: int) -> TransferRequest | None:
        # Best effort: the registry's decision stands even if the view cannot be reloaded.
        try:
            await self.refresh()
        except TransportError as e:
            log.warning("transfer_view_refresh_failed", parcel_id=parcel_id, reason=e.reason)
            return None
        return self._pending.get(parcel_id)


def _validate(
    parcel: LandParcel,
    new_owner: PrincipalId | str,
    fee: Decimal | int | str,
    reason: str,
) -> Result[tuple[PrincipalId, Decimal], BusinessError]:
    if isinstance(new_owner, str):
        try:
            new_owner = PrincipalId.from_text(new_owner)
        except InvalidPrincipal as e:
            return Err(BusinessError.validation_failed(f"invalid new owner: {e}"))
    if new_owner.is_anonymous:
        return Err(BusinessError.validation_failed("new owner cannot be the anonymous principal"))
    if new_owner == parcel.owner:
        return Err(BusinessError.validation_failed("new owner must differ from the current owner"))

    try:
        amount = Decimal(str(fee))
    except InvalidOperation:
        return Err(BusinessError.validation_failed(f"invalid fee: {fee!r}"))
    if not amount.is_finite() or amount < 0:
        return Err(BusinessError.validation_failed("fee must be a non-negative amount"))

    if not reason.strip():
        return Err(BusinessError.validation_failed("a transfer reason is required"))
    return Ok((new_owner, amount))
