"""
land_registry.db.repositories.users

Repository for role grants and user profiles.

Responsibilities:
- Resolve the roles granted to a principal.
- Grant roles idempotently.
- Read and upsert user profiles.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from land_registry.auth.models import Role
from land_registry.auth.principal import PrincipalId
from land_registry.db.models import RoleGrant, UserProfileRow


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def roles_for(self, principal: PrincipalId) -> frozenset[Role]:
        stmt = select(RoleGrant.role).where(RoleGrant.principal == principal.text)
        return frozenset((await self._session.execute(stmt)).scalars().all())

    async def grant(
        self, *, principal: PrincipalId, role: Role, granted_by: PrincipalId | None
    ) -> RoleGrant:
        stmt = select(RoleGrant).where(
            RoleGrant.principal == principal.text, RoleGrant.role == role
        )
        existing = (await self._session.execute(stmt)).scalar_one_or_none()
        if existing is not None:
            return existing

        grant = RoleGrant(
            principal=principal.text,
            role=role,
            granted_by=granted_by.text if granted_by is not None else None,
        )
        self._session.add(grant)
        await self._session.flush()
        return grant

    async def get_profile(self, principal: PrincipalId) -> UserProfileRow | None:
        return await self._session.get(UserProfileRow, principal.text)

    async def upsert_profile(
        self, *, principal: PrincipalId, name: str, contact_info: dict[str, Any]
    ) -> UserProfileRow:
        existing = await self.get_profile(principal)
        if existing is not None:
            existing.name = name
            existing.contact_info = dict(contact_info)
            await self._session.flush()
            return existing

        profile = UserProfileRow(
            principal=principal.text, name=name, contact_info=dict(contact_info)
        )
        self._session.add(profile)
        await self._session.flush()
        return profile
