"""
land_registry.db.models

Persistence schema for the reference registry.

Responsibilities:
- Parcel: current owner, metadata and registration status.
- TransactionRecordRow: append-only ownership/status history, ordered by `seq`.
- TransferRequestRow: transfer proposals; at most one PENDING row per parcel.
- RoleGrant / UserProfileRow: role assignments and profiles keyed by principal text.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy import Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from land_registry.auth.models import Role
from land_registry.db.base import Base
from land_registry.registry.schemas import RegistrationStatus, TransactionKind, TransferStatus

PRINCIPAL_LEN = 64


def utcnow() -> datetime:
    # Naive UTC timestamps; SQLite drops tzinfo anyway.
    return datetime.now(tz=UTC).replace(tzinfo=None)


class Parcel(Base):
    __tablename__ = "parcels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner: Mapped[str] = mapped_column(String(PRINCIPAL_LEN), nullable=False, index=True)

    location: Mapped[str] = mapped_column(String(512), nullable=False)
    size_sq_meters: Mapped[float] = mapped_column(Float, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    document_hashes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    legal_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    zoning_type: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    assessed_value: Mapped[float | None] = mapped_column(Float, nullable=True)

    status: Mapped[RegistrationStatus] = mapped_column(
        Enum(RegistrationStatus), nullable=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    history: Mapped[list[TransactionRecordRow]] = relationship(
        back_populates="parcel",
        cascade="all, delete-orphan",
        order_by="TransactionRecordRow.seq",
        lazy="selectin",
    )


class TransactionRecordRow(Base):
    __tablename__ = "transaction_records"

    # `seq` fixes append order; `id` is the public transaction id.
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    parcel_id: Mapped[int] = mapped_column(ForeignKey("parcels.id"), nullable=False, index=True)

    from_owner: Mapped[str | None] = mapped_column(String(PRINCIPAL_LEN), nullable=True)
    to_owner: Mapped[str] = mapped_column(String(PRINCIPAL_LEN), nullable=False)
    kind: Mapped[TransactionKind] = mapped_column(Enum(TransactionKind), nullable=False)
    document_hash: Mapped[str | None] = mapped_column(String(256), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    parcel: Mapped[Parcel] = relationship(back_populates="history")


class TransferRequestRow(Base):
    __tablename__ = "transfer_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    parcel_id: Mapped[int] = mapped_column(ForeignKey("parcels.id"), nullable=False, index=True)

    requested_by: Mapped[str] = mapped_column(String(PRINCIPAL_LEN), nullable=False, index=True)
    new_owner: Mapped[str] = mapped_column(String(PRINCIPAL_LEN), nullable=False, index=True)
    # Decimal kept as canonical text to avoid float storage on SQLite.
    fee: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    documents: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[TransferStatus] = mapped_column(Enum(TransferStatus), nullable=False)
    resolved_by: Mapped[str | None] = mapped_column(String(PRINCIPAL_LEN), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolution_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)

    __table_args__ = (
        Index(
            "uq_transfer_requests_one_pending",
            "parcel_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )


class RoleGrant(Base):
    __tablename__ = "role_grants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    principal: Mapped[str] = mapped_column(String(PRINCIPAL_LEN), nullable=False, index=True)
    role: Mapped[Role] = mapped_column(Enum(Role), nullable=False)
    granted_by: Mapped[str | None] = mapped_column(String(PRINCIPAL_LEN), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (UniqueConstraint("principal", "role", name="uq_role_grants_principal_role"),)


class UserProfileRow(Base):
    __tablename__ = "user_profiles"

    principal: Mapped[str] = mapped_column(String(PRINCIPAL_LEN), primary_key=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    contact_info: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


# --- Module Notes -----------------------------------------------------------
# Enum columns store member names ('pending', 'registered', ...); the partial unique index
# relies on that spelling.
