"""
land_registry.db.repositories.parcels

Repository for `Parcel` entities and their transaction history.

Responsibilities:
- Create, fetch, list and search parcels.
- Append history records (append-only; rows are never updated or deleted).
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from land_registry.db.models import Parcel, TransactionRecordRow, utcnow
from land_registry.registry.schemas import (
    ParcelMetadata,
    RegistrationStatus,
    SearchFilters,
    TransactionKind,
)


class ParcelRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self, *, owner: str, metadata: ParcelMetadata, status: RegistrationStatus
    ) -> Parcel:
        parcel = Parcel(
            owner=owner,
            location=metadata.location,
            size_sq_meters=metadata.size_sq_meters,
            latitude=metadata.coordinates.latitude,
            longitude=metadata.coordinates.longitude,
            document_hashes=list(metadata.document_hashes),
            legal_description=metadata.legal_description,
            zoning_type=metadata.zoning_type,
            assessed_value=metadata.assessed_value,
            status=status,
            history=[],
        )
        self._session.add(parcel)
        await self._session.flush()
        return parcel

    async def get(self, parcel_id: int) -> Parcel | None:
        return await self._session.get(Parcel, parcel_id)

    async def list_all(self) -> list[Parcel]:
        stmt = select(Parcel).order_by(Parcel.id)
        return list((await self._session.execute(stmt)).scalars().all())

    async def list_by_owner(self, owner: str) -> list[Parcel]:
        stmt = select(Parcel).where(Parcel.owner == owner).order_by(Parcel.id)
        return list((await self._session.execute(stmt)).scalars().all())

    async def search(
        self, filters: SearchFilters, *, visible_statuses: Sequence[RegistrationStatus]
    ) -> list[Parcel]:
        stmt = select(Parcel).where(Parcel.status.in_(list(visible_statuses)))
        if filters.location:
            stmt = stmt.where(
                func.lower(Parcel.location).contains(filters.location.lower(), autoescape=True)
            )
        if filters.owner is not None:
            stmt = stmt.where(Parcel.owner == filters.owner.text)
        if filters.status is not None:
            stmt = stmt.where(Parcel.status == filters.status)
        if filters.min_size is not None:
            stmt = stmt.where(Parcel.size_sq_meters >= filters.min_size)
        if filters.max_size is not None:
            stmt = stmt.where(Parcel.size_sq_meters <= filters.max_size)
        if filters.zoning_type:
            stmt = stmt.where(Parcel.zoning_type == filters.zoning_type)
        stmt = stmt.order_by(Parcel.id)
        return list((await self._session.execute(stmt)).scalars().all())

    async def append_record(
        self,
        parcel: Parcel,
        *,
        kind: TransactionKind,
        from_owner: str | None,
        to_owner: str,
        document_hash: str | None = None,
        note: str | None = None,
    ) -> TransactionRecordRow:
        record = TransactionRecordRow(
            id=uuid.uuid4().hex,
            from_owner=from_owner,
            to_owner=to_owner,
            kind=kind,
            document_hash=document_hash,
            note=note,
            timestamp=utcnow(),
        )
        parcel.history.append(record)
        parcel.updated_at = utcnow()
        await self._session.flush()
        return record
