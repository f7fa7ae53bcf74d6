"""
land_registry.db.repositories.transfers

Repository for `TransferRequestRow` entities.

Responsibilities:
- Create transfer requests and look up the pending one for a parcel.
- List requests visible to a caller.
- Claim a pending request for resolution with a conditional update (last writer loses cleanly).
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from land_registry.db.models import TransferRequestRow, utcnow
from land_registry.registry.schemas import TransferStatus


class TransferRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        parcel_id: int,
        requested_by: str,
        new_owner: str,
        fee: Decimal,
        reason: str,
        documents: list[str],
    ) -> TransferRequestRow:
        row = TransferRequestRow(
            parcel_id=parcel_id,
            requested_by=requested_by,
            new_owner=new_owner,
            fee=str(fee),
            reason=reason,
            documents=documents,
            status=TransferStatus.pending,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def pending_for_parcel(self, parcel_id: int) -> TransferRequestRow | None:
        stmt = select(TransferRequestRow).where(
            TransferRequestRow.parcel_id == parcel_id,
            TransferRequestRow.status == TransferStatus.pending,
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_visible(
        self, *, visible_to: str | None, pending_only: bool = False
    ) -> list[TransferRequestRow]:
        # visible_to=None lists everything (oversight roles).
        stmt = select(TransferRequestRow)
        if pending_only:
            stmt = stmt.where(TransferRequestRow.status == TransferStatus.pending)
        if visible_to is not None:
            stmt = stmt.where(
                or_(
                    TransferRequestRow.requested_by == visible_to,
                    TransferRequestRow.new_owner == visible_to,
                )
            )
        stmt = stmt.order_by(TransferRequestRow.created_at)
        return list((await self._session.execute(stmt)).scalars().all())

    async def claim(
        self,
        request_id: uuid.UUID,
        *,
        status: TransferStatus,
        resolver: str,
        note: str | None,
    ) -> bool:
        """
        Move a PENDING request to `status`. Returns False if another resolver got there first.
        """

        stmt = (
            update(TransferRequestRow)
            .where(
                TransferRequestRow.id == request_id,
                TransferRequestRow.status == TransferStatus.pending,
            )
            .values(status=status, resolved_by=resolver, resolved_at=utcnow(), resolution_note=note)
            .execution_options(synchronize_session="fetch")
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1
