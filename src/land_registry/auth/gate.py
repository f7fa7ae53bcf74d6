"""
land_registry.auth.gate

Authorization gate: a pure function of (session, required roles).

Used identically before exposing an action and before issuing a mutating registry call.
The remote registry re-validates independently; this gate only avoids obviously-doomed calls.
"""

from __future__ import annotations

from collections.abc import Iterable

from land_registry.auth.models import Role, Session
from land_registry.auth.principal import PrincipalId


def authorize(session: Session, required: Iterable[Role]) -> bool:
    # True iff authenticated and (no roles required or at least one required role held).
    if session.identity is None:
        return False
    required_set = frozenset(required)
    if not required_set:
        return True
    return not session.roles.isdisjoint(required_set)


def authorize_owner(session: Session, owner: PrincipalId) -> bool:
    """Parcel-scoped `Owner` capability: the acting identity is the recorded owner."""

    return authorize(session, ()) and session.identity == owner
