"""
Responsibility Centre lookups.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rcaccess.core.errors import NotFoundError
from rcaccess.features.responsibility_centres.models import ResponsibilityCentre


async def get_rc_by_id(db: AsyncSession, rc_id: int, conceal: bool = True) -> ResponsibilityCentre:
    """
    Get an RC by id or raise NotFoundError.

    Lookups default to ``conceal=True``: nearly every caller is about to make
    a permission decision on the RC, and a missing RC must look the same as a
    forbidden one from outside. Deactivated RCs are treated as missing.
    """
    rc = await db.get(ResponsibilityCentre, rc_id)
    if rc is None or not rc.is_active:
        raise NotFoundError("responsibility_centre", rc_id, conceal=conceal)
    return rc


async def get_rc_by_name(db: AsyncSession, name: str) -> ResponsibilityCentre | None:
    result = await db.execute(
        select(ResponsibilityCentre).where(
            ResponsibilityCentre.name == name,
            ResponsibilityCentre.is_active == True,  # noqa: E712
        )
    )
    return result.scalar_one_or_none()
