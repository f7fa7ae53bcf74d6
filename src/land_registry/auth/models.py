"""
land_registry.auth.models

Auth domain models.

Responsibilities:
- Define the closed `Role` enumeration and the role groups used by remote rules.
- Define the immutable `Session` value ("who is currently acting").
- Define `RoleResolution` so "no registry connection yet" differs from "zero roles assigned".
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from land_registry.auth.principal import PrincipalId


class Role(enum.StrEnum):
    # Enum values travel over the wire; treat as stable API contract.
    owner = "Owner"
    admin = "Admin"
    land_registrar = "LandRegistrar"
    auditor = "Auditor"
    user = "User"


ADMIN_ROLES: frozenset[Role] = frozenset({Role.owner, Role.admin})
REGISTRAR_ROLES: frozenset[Role] = frozenset({Role.owner, Role.admin, Role.land_registrar})
RESOLVER_ROLES: frozenset[Role] = frozenset({Role.admin, Role.land_registrar})
OVERSIGHT_ROLES: frozenset[Role] = REGISTRAR_ROLES | {Role.auditor}
DEFAULT_ROLES: frozenset[Role] = frozenset({Role.user})


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class Session:
    """
    Cached (identity, roles) pair. Replaced wholesale on every change; never mutated.
    """

    identity: PrincipalId | None = None
    roles: frozenset[Role] = field(default_factory=frozenset)
    established_at: datetime | None = None
    last_refreshed_at: datetime | None = None

    @classmethod
    def empty(cls) -> Session:
        return cls()

    @classmethod
    def established(cls, identity: PrincipalId, roles: frozenset[Role]) -> Session:
        now = _utcnow()
        return cls(identity=identity, roles=roles, established_at=now, last_refreshed_at=now)

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    def with_roles(self, roles: frozenset[Role]) -> Session:
        return replace(self, roles=frozenset(roles), last_refreshed_at=_utcnow())


@dataclass(frozen=True, slots=True)
class Resolved:
    roles: frozenset[Role]


@dataclass(frozen=True, slots=True)
class Unresolved:
    reason: str


RoleResolution = Resolved | Unresolved


def session_roles(resolution: RoleResolution) -> frozenset[Role]:
    """
    Fold a resolution into session roles: registry grants plus the implicit `User`.
    Unresolved falls back to `{User}` (least privilege, not zero roles).
    """

    if isinstance(resolution, Resolved):
        return resolution.roles | DEFAULT_ROLES
    return DEFAULT_ROLES
