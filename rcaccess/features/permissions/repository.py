"""
Access grant store.

Thin persistence wrapper over ``rc_access_grants``. Nothing here checks
permissions; callers decide who may read or write.

Group and distribution-list identifiers are directory names and compare
case-insensitively; usernames compare exactly.
"""
from typing import Iterable, Sequence
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from rcaccess.features.permissions.models import AccessGrant, AccessLevel
from rcaccess.features.permissions.principals import (
    Principal,
    UserPrincipal,
    principal_identifier,
    principal_type,
)


def _principal_clause(principal: Principal):
    kind = principal_type(principal)
    identifier = principal_identifier(principal)
    if isinstance(principal, UserPrincipal):
        return and_(
            AccessGrant.principal_type == kind,
            AccessGrant.principal_identifier == identifier,
        )
    return and_(
        AccessGrant.principal_type == kind,
        func.lower(AccessGrant.principal_identifier) == identifier.lower(),
    )


class AccessGrantRepository:
    """CRUD over AccessGrant rows keyed by numeric id."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, grant_id: int) -> AccessGrant | None:
        return await self.db.get(AccessGrant, grant_id)

    async def find_by_rc(self, rc_id: int) -> Sequence[AccessGrant]:
        stmt = (
            select(AccessGrant)
            .where(AccessGrant.rc_id == rc_id)
            .order_by(AccessGrant.id)
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def find_by_rc_and_principal(self, rc_id: int, principal: Principal) -> AccessGrant | None:
        stmt = select(AccessGrant).where(
            AccessGrant.rc_id == rc_id,
            _principal_clause(principal),
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def find_for_principals(self, rc_id: int, principals: Iterable[Principal]) -> Sequence[AccessGrant]:
        """All grants on ``rc_id`` held by any of ``principals``."""
        clauses = [_principal_clause(p) for p in principals]
        if not clauses:
            return []
        stmt = select(AccessGrant).where(AccessGrant.rc_id == rc_id, or_(*clauses))
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def find_rc_ids_for_principals(self, principals: Iterable[Principal]) -> set[int]:
        """Ids of every RC where any of ``principals`` holds a grant."""
        clauses = [_principal_clause(p) for p in principals]
        if not clauses:
            return set()
        result = await self.db.execute(select(AccessGrant.rc_id).where(or_(*clauses)).distinct())
        return set(result.scalars().all())

    async def add(self, grant: AccessGrant) -> AccessGrant:
        """Insert and flush so the id is assigned. Raises IntegrityError on a duplicate principal."""
        self.db.add(grant)
        await self.db.flush()
        return grant

    async def set_level(self, grant: AccessGrant, level: AccessLevel) -> AccessGrant:
        grant.access_level = level
        await self.db.flush()
        return grant

    async def delete(self, grant: AccessGrant) -> None:
        await self.db.delete(grant)
        await self.db.flush()
