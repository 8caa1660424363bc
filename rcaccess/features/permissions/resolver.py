"""
Effective access level resolution.

An RC's effective level for a caller is the highest of:
1. OWNER, if the caller is the RC's owner (implicit, never stored)
2. the caller's direct user grant
3. grants held by any group or distribution list the caller currently belongs to

The model is purely additive: nothing can lower a level reachable another way.
Grant rows are read on every call; revocations and membership changes must
show up on the very next check.
"""
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from rcaccess.core import config
from rcaccess.features.permissions.models import AccessLevel
from rcaccess.features.permissions.principals import principals_for
from rcaccess.features.permissions.repository import AccessGrantRepository
from rcaccess.features.responsibility_centres.models import ResponsibilityCentre
from rcaccess.utils import get_logger


log = get_logger(__name__)


def highest_access_level(levels: Iterable[AccessLevel]) -> Optional[AccessLevel]:
    """Highest level in ``levels``, or None when empty."""
    return max(levels, default=None)


def is_demo_rc(rc: ResponsibilityCentre) -> bool:
    return rc.name == config.DEMO_RC_NAME


async def get_effective_access_level(
    db: AsyncSession,
    rc: ResponsibilityCentre,
    username: str,
    group_identifiers: Iterable[str] = (),
) -> Optional[AccessLevel]:
    """
    Resolve the caller's effective level on ``rc``.
    
    Returns:
        The highest applicable AccessLevel, or None if nothing applies
    """
    if username == rc.owner_username:
        return AccessLevel.OWNER
    
    principals = principals_for(username, group_identifiers)
    grants = await AccessGrantRepository(db).find_for_principals(rc.id, principals)
    level = highest_access_level(grant.access_level for grant in grants)
    
    log.debug(
        f"Resolved {level.value if level else None} for {username} on RC {rc.id} "
        f"from {len(grants)} grant(s)"
    )
    return level


async def can_edit_content(
    db: AsyncSession,
    rc: ResponsibilityCentre,
    username: str,
    group_identifiers: Iterable[str] = (),
) -> bool:
    """READ_WRITE or OWNER."""
    level = await get_effective_access_level(db, rc, username, group_identifiers)
    return level is not None and level >= AccessLevel.READ_WRITE


has_write_access = can_edit_content


async def can_manage_rc(
    db: AsyncSession,
    rc: ResponsibilityCentre,
    username: str,
    group_identifiers: Iterable[str] = (),
) -> bool:
    """
    Exactly OWNER. Stored OWNER grants and structural ownership are
    equivalent here.
    """
    level = await get_effective_access_level(db, rc, username, group_identifiers)
    return level is AccessLevel.OWNER


is_owner = can_manage_rc


async def has_access(
    db: AsyncSession,
    rc: ResponsibilityCentre,
    username: str,
    group_identifiers: Iterable[str] = (),
) -> bool:
    """Any level at all. The demo RC is readable by every authenticated user."""
    if is_demo_rc(rc):
        return True
    level = await get_effective_access_level(db, rc, username, group_identifiers)
    return level is not None
