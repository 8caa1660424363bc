"""
RC permission management API routes.

Endpoints for listing, granting, updating and revoking access on
Responsibility Centres, plus the caller's own permission checks.
"""
import math
from typing import Annotated, List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rcaccess.core.database.engine import get_db
from rcaccess.features.permissions import service
from rcaccess.features.permissions.dependencies import require_rc_access
from rcaccess.features.permissions.resolver import has_write_access, is_owner
from rcaccess.features.permissions.schemas import (
    AuditLogListResponse,
    AuditLogResponse,
    GrantGroupAccess,
    GrantUserAccess,
    PermissionCheckResponse,
    PermissionEntry,
    UpdatePermission,
)
from rcaccess.features.responsibility_centres.dependencies import get_rc_by_id
from rcaccess.features.responsibility_centres.models import ResponsibilityCentre
from rcaccess.features.users.dependencies import get_active_identity
from rcaccess.features.users.schemas import Identity


router = APIRouter()

DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentIdentity = Annotated[Identity, Depends(get_active_identity)]
ReadableRC = Annotated[ResponsibilityCentre, Depends(require_rc_access())]


# ============================================================================
# Grant Routes
# ============================================================================

@router.get("/rc/{rc_id}", response_model=List[PermissionEntry])
async def list_rc_permissions(rc_id: int, db: DbSession, identity: CurrentIdentity):
    """List every grant on an RC, including the implicit owner (owners only)."""
    return await service.get_permissions_for_rc(db, rc_id, identity)


@router.post("/rc/{rc_id}/user", response_model=PermissionEntry, status_code=status.HTTP_201_CREATED)
async def grant_user_access(
    rc_id: int,
    body: GrantUserAccess,
    db: DbSession,
    identity: CurrentIdentity,
):
    """Grant an account access to an RC (owners only)."""
    grant = await service.grant_user_access(db, rc_id, body.username, body.access_level, identity)
    rc = await get_rc_by_id(db, grant.rc_id)
    return service.to_permission_entry(grant, rc)


@router.post("/rc/{rc_id}/group", response_model=PermissionEntry, status_code=status.HTTP_201_CREATED)
async def grant_group_access(
    rc_id: int,
    body: GrantGroupAccess,
    db: DbSession,
    identity: CurrentIdentity,
):
    """Grant a directory group or distribution list access to an RC (owners only)."""
    grant = await service.grant_group_access(
        db,
        rc_id,
        body.principal_identifier,
        body.principal_display_name,
        body.principal_type,
        body.access_level,
        identity,
    )
    rc = await get_rc_by_id(db, grant.rc_id)
    return service.to_permission_entry(grant, rc)


@router.put("/{grant_id}", response_model=PermissionEntry)
async def update_permission(
    grant_id: int,
    body: UpdatePermission,
    db: DbSession,
    identity: CurrentIdentity,
):
    """Change the access level of an existing grant (owners only)."""
    grant = await service.update_permission(db, grant_id, body.access_level, identity)
    rc = await get_rc_by_id(db, grant.rc_id)
    return service.to_permission_entry(grant, rc)


@router.delete("/{grant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_access(grant_id: int, db: DbSession, identity: CurrentIdentity):
    """Revoke a grant (owners only)."""
    await service.revoke_access(db, grant_id, identity)
    return None


# ============================================================================
# Permission Check Routes
# ============================================================================

@router.get("/rc/{rc_id}/is-owner", response_model=PermissionCheckResponse)
async def check_is_owner(rc: ReadableRC, db: DbSession, identity: CurrentIdentity):
    """Whether the caller holds OWNER. Callers without any access get 403."""
    allowed = await is_owner(db, rc, identity.username, identity.group_identifiers)
    return PermissionCheckResponse(rc_id=rc.id, allowed=allowed)


@router.get("/rc/{rc_id}/can-edit", response_model=PermissionCheckResponse)
async def check_can_edit(rc: ReadableRC, db: DbSession, identity: CurrentIdentity):
    allowed = await has_write_access(db, rc, identity.username, identity.group_identifiers)
    return PermissionCheckResponse(rc_id=rc.id, allowed=allowed)


# ============================================================================
# Audit Routes
# ============================================================================

@router.get("/rc/{rc_id}/audit", response_model=AuditLogListResponse)
async def list_rc_audit_events(
    rc_id: int,
    db: DbSession,
    identity: CurrentIdentity,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
):
    """Grant history of an RC, newest first (owners only)."""
    items, total = await service.list_audit_events(db, rc_id, identity, page, page_size)
    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total else 0,
    )
