"""
land_registry.services.views

Row -> wire-schema mappers.
"""

from __future__ import annotations

from decimal import Decimal

from land_registry.auth.principal import PrincipalId
from land_registry.db.models import Parcel, TransactionRecordRow, TransferRequestRow, UserProfileRow
from land_registry.registry.schemas import (
    Coordinates,
    LandParcel,
    ParcelMetadata,
    TransactionRecord,
    TransferRequest,
    UserProfile,
)


def _principal(text: str | None) -> PrincipalId | None:
    return PrincipalId.from_text(text) if text is not None else None


def record_view(row: TransactionRecordRow) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        from_owner=_principal(row.from_owner),
        to_owner=PrincipalId.from_text(row.to_owner),
        timestamp=row.timestamp,
        kind=row.kind,
        document_hash=row.document_hash,
        note=row.note,
    )


def parcel_view(row: Parcel) -> LandParcel:
    return LandParcel(
        id=row.id,
        owner=PrincipalId.from_text(row.owner),
        metadata=ParcelMetadata(
            location=row.location,
            size_sq_meters=row.size_sq_meters,
            coordinates=Coordinates(latitude=row.latitude, longitude=row.longitude),
            document_hashes=list(row.document_hashes or []),
            legal_description=row.legal_description,
            zoning_type=row.zoning_type,
            assessed_value=row.assessed_value,
            last_updated=row.updated_at,
        ),
        status=row.status,
        history=[record_view(r) for r in row.history],
    )


def transfer_view(row: TransferRequestRow) -> TransferRequest:
    return TransferRequest(
        id=str(row.id),
        parcel_id=row.parcel_id,
        requested_by=PrincipalId.from_text(row.requested_by),
        new_owner=PrincipalId.from_text(row.new_owner),
        fee=Decimal(row.fee),
        reason=row.reason,
        documents=list(row.documents or []),
        created_at=row.created_at,
        status=row.status,
        resolved_by=_principal(row.resolved_by),
        resolved_at=row.resolved_at,
        resolution_note=row.resolution_note,
    )


def profile_view(row: UserProfileRow) -> UserProfile:
    return UserProfile(
        principal=PrincipalId.from_text(row.principal),
        name=row.name,
        contact_info={str(k): str(v) for k, v in (row.contact_info or {}).items()},
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
