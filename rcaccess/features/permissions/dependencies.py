"""
FastAPI dependencies protecting RC-scoped routes.

Usage:
    @router.put("/{rc_id}/spending")
    async def edit_spending(
        rc: ResponsibilityCentre = Depends(require_rc_access(AccessLevel.READ_WRITE))
    ):
        # Caller holds READ_WRITE or OWNER on this RC
        pass
"""
from typing import Annotated
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rcaccess.core.database.engine import get_db
from rcaccess.core.errors import AuthorizationError
from rcaccess.features.permissions.models import AccessLevel
from rcaccess.features.permissions.resolver import get_effective_access_level, has_access
from rcaccess.features.responsibility_centres.dependencies import get_rc_by_id
from rcaccess.features.responsibility_centres.models import ResponsibilityCentre
from rcaccess.features.users.dependencies import get_active_identity
from rcaccess.features.users.schemas import Identity
from rcaccess.utils import get_logger


log = get_logger(__name__)


def require_rc_access(minimum: AccessLevel | None = None):
    """
    Dependency factory requiring at least ``minimum`` on the RC in the path.

    ``None`` means any level at all (read access). The demo RC satisfies a
    read requirement for every authenticated caller.
    
    Raises:
        AuthorizationError: caller's effective level is below ``minimum``
        NotFoundError: RC does not exist (reported like AuthorizationError)
    """
    async def rc_access_dependency(
        rc_id: int,
        db: Annotated[AsyncSession, Depends(get_db)],
        identity: Annotated[Identity, Depends(get_active_identity)],
    ) -> ResponsibilityCentre:
        rc = await get_rc_by_id(db, rc_id)
        if minimum is None:
            if await has_access(db, rc, identity.username, identity.group_identifiers):
                return rc
            level = None
        else:
            level = await get_effective_access_level(db, rc, identity.username, identity.group_identifiers)
        
        if level is None or level < minimum:
            log.info(
                f"Denied {identity.username} on RC {rc_id}: has {level.value if level else None}, "
                f"needs {minimum.value if minimum else 'any'}"
            )
            raise AuthorizationError("Insufficient access to this responsibility centre")
        
        return rc
    
    return rc_access_dependency
