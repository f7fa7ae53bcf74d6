"""
land_registry.registry.schemas

Wire schemas for the registry RPC boundary (Pydantic).

Responsibilities:
- Parcel, transaction record, transfer request and profile shapes.
- Request bodies for update operations.
- Search filter encoding into query parameters.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from land_registry.auth.models import Role
from land_registry.auth.principal import PrincipalId


class RegistrationStatus(enum.StrEnum):
    pending = "Pending"
    registered = "Registered"
    revoked = "Revoked"


class TransactionKind(enum.StrEnum):
    registration = "Registration"
    transfer = "Transfer"
    status_update = "StatusUpdate"


class TransferStatus(enum.StrEnum):
    pending = "Pending"
    approved = "Approved"
    rejected = "Rejected"


class Coordinates(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class ParcelMetadata(BaseModel):
    location: str = Field(min_length=1, max_length=512)
    size_sq_meters: float = Field(gt=0)
    coordinates: Coordinates
    document_hashes: list[str] = Field(default_factory=list)
    legal_description: str | None = None
    zoning_type: str | None = None
    assessed_value: float | None = Field(default=None, ge=0)
    last_updated: datetime | None = None


class TransactionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    from_owner: PrincipalId | None = None
    to_owner: PrincipalId
    timestamp: datetime
    kind: TransactionKind
    document_hash: str | None = None
    note: str | None = None


class LandParcel(BaseModel):
    id: int
    owner: PrincipalId
    metadata: ParcelMetadata
    status: RegistrationStatus
    history: list[TransactionRecord] = Field(default_factory=list)


class ParcelRegistration(BaseModel):
    metadata: ParcelMetadata
    # Registrars may register on behalf of an owner; defaults to the caller.
    owner: PrincipalId | None = None


class ParcelPatch(BaseModel):
    location: str | None = Field(default=None, min_length=1, max_length=512)
    size_sq_meters: float | None = Field(default=None, gt=0)
    coordinates: Coordinates | None = None
    document_hashes: list[str] | None = None
    legal_description: str | None = None
    zoning_type: str | None = None
    assessed_value: float | None = Field(default=None, ge=0)
    # Ownership corrections are Admin-only and recorded in history.
    owner: PrincipalId | None = None
    note: str | None = None


class NewTransferRequest(BaseModel):
    parcel_id: int
    new_owner: PrincipalId
    fee: Decimal = Field(ge=0)
    reason: str
    documents: list[str] = Field(default_factory=list)


class TransferRequest(BaseModel):
    id: str
    parcel_id: int
    requested_by: PrincipalId
    new_owner: PrincipalId
    fee: Decimal
    reason: str
    documents: list[str] = Field(default_factory=list)
    created_at: datetime
    status: TransferStatus = TransferStatus.pending
    resolved_by: PrincipalId | None = None
    resolved_at: datetime | None = None
    resolution_note: str | None = None


class ApproveTransferBody(BaseModel):
    new_owner: PrincipalId


class RejectTransferBody(BaseModel):
    reason: str = ""


class RevokeParcelBody(BaseModel):
    reason: str = Field(min_length=1)


class RoleAssignment(BaseModel):
    principal: PrincipalId
    role: Role


class RolesResponse(BaseModel):
    principal: PrincipalId
    roles: list[Role] = Field(default_factory=list)


class UserProfile(BaseModel):
    principal: PrincipalId
    name: str
    contact_info: dict[str, str] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class UserProfileUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=256)
    contact_info: dict[str, str] = Field(default_factory=dict)


class MutationResponse(BaseModel):
    id: str


class RegistryStatus(BaseModel):
    service_id: str
    root_key: str
    health: str = "healthy"


class SearchFilters(BaseModel):
    location: str | None = None
    owner: PrincipalId | None = None
    status: RegistrationStatus | None = None
    min_size: float | None = Field(default=None, ge=0)
    max_size: float | None = Field(default=None, ge=0)
    zoning_type: str | None = None

    def to_query_params(self) -> dict[str, str]:
        return {k: str(v) for k, v in self.model_dump(mode="json", exclude_none=True).items()}


# --- Module Notes -----------------------------------------------------------
# Fees are `Decimal` and travel as strings in JSON, so no float rounding reaches the ledger.
