"""
land_registry.db.init_db

Registry bootstrap: schema creation and the initial administrators.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from land_registry.auth.models import Role
from land_registry.auth.principal import PrincipalId
from land_registry.db import models  # noqa: F401  # ensure models are registered on Base.metadata
from land_registry.db.base import Base
from land_registry.db.repositories.users import UserRepo
from land_registry.observability.logging import get_logger

log = get_logger(__name__)


async def init_db(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def grant_bootstrap_admins(
    session_factory: async_sessionmaker[AsyncSession], principals: list[str]
) -> None:
    """
    Grant `Admin` to each configured principal, like the registry deployer on first install.
    Invalid principal texts fail startup rather than being skipped.
    """

    if not principals:
        return
    async with session_factory() as session:
        users = UserRepo(session)
        for text in principals:
            principal = PrincipalId.from_text(text)
            await users.grant(principal=principal, role=Role.admin, granted_by=None)
            log.info("bootstrap_admin_granted", principal=principal.text)
        await session.commit()
