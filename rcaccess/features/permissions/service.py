"""
Grant management.

The only path through which a person creates, changes or removes grant rows.
Every operation first checks that the requester is an OWNER of the RC and
fails loudly otherwise; nothing here degrades silently.

Known race: the duplicate check and the insert are two statements. Two
concurrent grants for the same (RC, principal) can both pass the check; the
unique constraint on ``rc_access_grants`` rejects the second insert and it
is reported as a ConflictError like the common case.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rcaccess.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from rcaccess.features.permissions.models import (
    AccessGrant,
    AccessLevel,
    AuditLog,
    PrincipalType,
)
from rcaccess.features.permissions.principals import (
    Principal,
    UserPrincipal,
    make_principal,
    principal_display_name,
    principal_identifier,
    principal_type,
)
from rcaccess.features.permissions.repository import AccessGrantRepository
from rcaccess.features.permissions.resolver import can_manage_rc, is_demo_rc
from rcaccess.features.permissions.schemas import PermissionEntry
from rcaccess.features.responsibility_centres.dependencies import get_rc_by_id
from rcaccess.features.responsibility_centres.models import ResponsibilityCentre
from rcaccess.features.users.models import User
from rcaccess.features.users.schemas import Identity
from rcaccess.utils import get_logger


log = get_logger(__name__)

_PRINCIPAL_LABELS = {
    PrincipalType.USER: "User",
    PrincipalType.GROUP: "Group",
    PrincipalType.DISTRIBUTION_LIST: "Distribution list",
}


# ============================================================================
# Guards
# ============================================================================

async def _require_owner(
    db: AsyncSession,
    rc: ResponsibilityCentre,
    requester: Identity,
    action: str,
) -> None:
    if not await can_manage_rc(db, rc, requester.username, requester.group_identifiers):
        log.info(f"Denied {action} on RC {rc.id} for {requester.username}: not an owner")
        raise AuthorizationError(f"Only owners can {action}")


def _require_mutable(rc: ResponsibilityCentre) -> None:
    if is_demo_rc(rc):
        raise ValidationError(f"Cannot modify permissions for the {rc.name} RC")


def _targets_original_owner(grant: AccessGrant, rc: ResponsibilityCentre) -> bool:
    return (
        grant.principal_type is PrincipalType.USER
        and grant.principal_identifier == rc.owner_username
    )


async def _load_grant(db: AsyncSession, grant_id: int) -> tuple[AccessGrant, ResponsibilityCentre]:
    grant = await AccessGrantRepository(db).get(grant_id)
    if grant is None:
        raise NotFoundError("access_grant", grant_id, conceal=True)
    rc = await get_rc_by_id(db, grant.rc_id)
    return grant, rc


# ============================================================================
# Audit Logging
# ============================================================================

async def create_audit_log(
    db: AsyncSession,
    actor: str,
    action: str,
    grant: AccessGrant,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Record a grant change in the same transaction as the change itself.

    Args:
        db: Database session
        actor: Username performing the action
        action: grant, update or revoke
        grant: The grant acted on (already flushed, so it has an id)
        details: Additional details
    """
    audit_log = AuditLog(
        actor=actor,
        action=action,
        resource_type="rc_access",
        resource_id=grant.id,
        rc_id=grant.rc_id,
        details={
            "principal_type": grant.principal_type.value,
            "principal_identifier": grant.principal_identifier,
            "access_level": grant.access_level.value,
            **(details or {}),
        },
    )
    db.add(audit_log)
    await db.flush()

    log.info(
        f"Audit: actor={actor} action={action} resource=rc_access:{grant.id} rc={grant.rc_id}"
    )
    return audit_log


# ============================================================================
# Listing
# ============================================================================

def to_permission_entry(grant: AccessGrant, rc: ResponsibilityCentre) -> PermissionEntry:
    return PermissionEntry(
        id=grant.id,
        rc_id=rc.id,
        rc_name=rc.name,
        principal_type=grant.principal_type,
        principal_identifier=grant.principal_identifier,
        principal_display_name=grant.principal_display_name,
        access_level=grant.access_level,
        granted_by=grant.granted_by,
        granted_at=grant.granted_at,
    )


async def get_permissions_for_rc(
    db: AsyncSession,
    rc_id: int,
    requester: Identity,
) -> List[PermissionEntry]:
    """
    Every stored grant on the RC, preceded by a synthesized OWNER entry for
    the RC owner. Viewing the listing itself requires OWNER.
    """
    rc = await get_rc_by_id(db, rc_id)
    await _require_owner(db, rc, requester, "view RC permissions")

    grants = await AccessGrantRepository(db).find_by_rc(rc.id)
    entries: List[PermissionEntry] = []

    owner_listed = any(
        _targets_original_owner(g, rc) and g.access_level is AccessLevel.OWNER for g in grants
    )
    if not owner_listed:
        owner = await _find_user(db, rc.owner_username)
        entries.append(
            PermissionEntry(
                rc_id=rc.id,
                rc_name=rc.name,
                principal_type=PrincipalType.USER,
                principal_identifier=rc.owner_username,
                principal_display_name=owner.display_name if owner else rc.owner_username,
                access_level=AccessLevel.OWNER,
                granted_at=rc.created_at,
                implicit=True,
            )
        )

    entries.extend(to_permission_entry(g, rc) for g in grants)
    return entries


async def list_audit_events(
    db: AsyncSession,
    rc_id: int,
    requester: Identity,
    page: int = 1,
    page_size: int = 50,
) -> tuple[List[AuditLog], int]:
    """Grant history of an RC, newest first. OWNER only."""
    rc = await get_rc_by_id(db, rc_id)
    await _require_owner(db, rc, requester, "view RC audit history")

    total = (
        await db.execute(select(func.count(AuditLog.id)).where(AuditLog.rc_id == rc.id))
    ).scalar_one()
    stmt = (
        select(AuditLog)
        .where(AuditLog.rc_id == rc.id)
        .order_by(AuditLog.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


# ============================================================================
# Mutations
# ============================================================================

async def _find_user(db: AsyncSession, username: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def _insert_grant(
    db: AsyncSession,
    rc: ResponsibilityCentre,
    principal: Principal,
    level: AccessLevel,
    requester: Identity,
) -> AccessGrant:
    repo = AccessGrantRepository(db)
    rc_id, rc_name = rc.id, rc.name
    kind = principal_type(principal)
    identifier = principal_identifier(principal)
    label = _PRINCIPAL_LABELS[kind]

    existing = await repo.find_by_rc_and_principal(rc_id, principal)
    if existing is not None:
        if existing.access_level is level:
            raise ConflictError(f"{label} '{identifier}' already has {level.value} access to this RC.")
        raise ConflictError(
            f"{label} '{identifier}' already has {existing.access_level.value} access to this RC. "
            "Use update to change the access level."
        )

    grant = AccessGrant(
        rc_id=rc_id,
        principal_type=kind,
        principal_identifier=identifier,
        principal_display_name=principal_display_name(principal),
        access_level=level,
        granted_by=requester.username,
    )
    try:
        await repo.add(grant)
    except IntegrityError:
        # Lost the race against a concurrent grant for the same principal
        await db.rollback()
        log.warning(f"Concurrent duplicate grant for {kind.value} {identifier!r} on RC {rc_id}")
        raise ConflictError(f"{label} '{identifier}' already has access to this RC.")

    await create_audit_log(db, requester.username, "grant", grant)
    log.info(
        f"Granted {level.value} access to {kind.value} {identifier} on RC {rc_name} by {requester.username}"
    )
    return grant


async def grant_user_access(
    db: AsyncSession,
    rc_id: int,
    target_username: str,
    level: AccessLevel,
    requester: Identity,
) -> AccessGrant:
    """
    Grant ``level`` on the RC to a known account.

    Raises:
        AuthorizationError: requester is not an OWNER
        NotFoundError: RC or target account does not exist
        ConflictError: the account already has a grant on this RC
        ValidationError: protected RC, or a lowered level for the RC owner
    """
    rc = await get_rc_by_id(db, rc_id)
    await _require_owner(db, rc, requester, "grant permissions")
    _require_mutable(rc)

    target = await _find_user(db, target_username)
    if target is None:
        raise NotFoundError("user", target_username)

    if target.username == rc.owner_username and level is not AccessLevel.OWNER:
        raise ValidationError("Cannot change access level for the original RC owner")

    return await _insert_grant(db, rc, UserPrincipal(target.username), level, requester)


async def grant_group_access(
    db: AsyncSession,
    rc_id: int,
    identifier: str,
    display_name: Optional[str],
    kind: PrincipalType,
    level: AccessLevel,
    requester: Identity,
) -> AccessGrant:
    """
    Grant ``level`` on the RC to a directory group or distribution list.

    User principals go through grant_user_access; passing USER here is a
    ValidationError.
    """
    if kind is PrincipalType.USER:
        raise ValidationError("Use grant_user_access for user principals")

    rc = await get_rc_by_id(db, rc_id)
    await _require_owner(db, rc, requester, "grant permissions")
    _require_mutable(rc)

    principal = make_principal(kind, identifier, display_name)
    return await _insert_grant(db, rc, principal, level, requester)


async def update_permission(
    db: AsyncSession,
    grant_id: int,
    new_level: AccessLevel,
    requester: Identity,
) -> AccessGrant:
    """Overwrite the level of an existing grant. Principal and RC never change."""
    grant, rc = await _load_grant(db, grant_id)
    await _require_owner(db, rc, requester, "update permissions")
    _require_mutable(rc)

    if _targets_original_owner(grant, rc):
        raise ValidationError("Cannot change access level for the original RC owner")

    previous = grant.access_level
    await AccessGrantRepository(db).set_level(grant, new_level)
    await create_audit_log(db, requester.username, "update", grant, {"previous_level": previous.value})
    log.info(f"Updated access {grant_id} from {previous.value} to {new_level.value} by {requester.username}")
    return grant


async def revoke_access(
    db: AsyncSession,
    grant_id: int,
    requester: Identity,
) -> None:
    """
    Delete a grant. Revoking an id that does not exist is a NotFoundError,
    never a silent no-op.
    """
    grant, rc = await _load_grant(db, grant_id)
    await _require_owner(db, rc, requester, "revoke permissions")
    _require_mutable(rc)

    if _targets_original_owner(grant, rc):
        raise ValidationError("Cannot revoke access for the original RC owner")

    await create_audit_log(db, requester.username, "revoke", grant)
    await AccessGrantRepository(db).delete(grant)
    log.info(f"Revoked access {grant_id} on RC {rc.name} by {requester.username}")
