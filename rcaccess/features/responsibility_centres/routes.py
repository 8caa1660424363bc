"""
Responsibility Centre routes.

Only what access control needs: creating an RC (its creator becomes the
owner), listing the RCs a caller can see, and reading one.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, status
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rcaccess.core import config
from rcaccess.core.database.engine import get_db
from rcaccess.core.errors import ConflictError
from rcaccess.features.permissions.dependencies import require_rc_access
from rcaccess.features.permissions.models import AccessLevel
from rcaccess.features.permissions.principals import principals_for
from rcaccess.features.permissions.repository import AccessGrantRepository
from rcaccess.features.permissions.resolver import get_effective_access_level
from rcaccess.features.responsibility_centres.models import ResponsibilityCentre
from rcaccess.features.responsibility_centres.schemas import (
    AccessSummary,
    ResponsibilityCentreCreate,
    ResponsibilityCentreResponse,
    ResponsibilityCentreWithAccess,
)
from rcaccess.features.users.dependencies import get_active_identity
from rcaccess.features.users.schemas import Identity
from rcaccess.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentIdentity = Annotated[Identity, Depends(get_active_identity)]


@router.post("/", response_model=ResponsibilityCentreResponse, status_code=status.HTTP_201_CREATED)
async def create_responsibility_centre(
    body: ResponsibilityCentreCreate,
    db: DbSession,
    identity: CurrentIdentity,
):
    """Create an RC owned by the caller."""
    rc = ResponsibilityCentre(
        name=body.name,
        description=body.description,
        owner_username=identity.username,
    )
    db.add(rc)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Responsibility centre '{body.name}' already exists")
    
    log.info(f"Created RC {rc.name} (id={rc.id}) owned by {identity.username}")
    return rc


@router.get("/", response_model=List[ResponsibilityCentreWithAccess])
async def list_responsibility_centres(db: DbSession, identity: CurrentIdentity):
    """List the RCs the caller owns or holds a grant on, plus the demo RC."""
    principals = principals_for(identity.username, identity.group_identifiers)
    granted_ids = await AccessGrantRepository(db).find_rc_ids_for_principals(principals)
    
    stmt = (
        select(ResponsibilityCentre)
        .where(
            ResponsibilityCentre.is_active == True,  # noqa: E712
            or_(
                ResponsibilityCentre.owner_username == identity.username,
                ResponsibilityCentre.id.in_(sorted(granted_ids)),
                ResponsibilityCentre.name == config.DEMO_RC_NAME,
            ),
        )
        .order_by(ResponsibilityCentre.name)
    )
    result = await db.execute(stmt)
    
    items = []
    for rc in result.scalars().all():
        level = await get_effective_access_level(db, rc, identity.username, identity.group_identifiers)
        item = ResponsibilityCentreWithAccess.model_validate(rc)
        item.access_level = level
        items.append(item)
    return items


@router.get("/{rc_id}", response_model=ResponsibilityCentreWithAccess)
async def get_responsibility_centre(
    rc: Annotated[ResponsibilityCentre, Depends(require_rc_access())],
    db: DbSession,
    identity: CurrentIdentity,
):
    """Get one RC (any access level)."""
    item = ResponsibilityCentreWithAccess.model_validate(rc)
    item.access_level = await get_effective_access_level(
        db, rc, identity.username, identity.group_identifiers
    )
    return item


@router.get("/{rc_id}/access", response_model=AccessSummary)
async def get_my_access(
    rc: Annotated[ResponsibilityCentre, Depends(require_rc_access())],
    db: DbSession,
    identity: CurrentIdentity,
):
    """The caller's effective level on an RC they can read."""
    level = await get_effective_access_level(db, rc, identity.username, identity.group_identifiers)
    return AccessSummary(
        rc_id=rc.id,
        access_level=level,
        can_edit=level is not None and level >= AccessLevel.READ_WRITE,
        is_owner=level is AccessLevel.OWNER,
    )
