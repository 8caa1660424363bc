"""
Directory group sync.

Runs inside a successful directory-backed login, never on a schedule:

1. keep only the configured mappings whose group the user belongs to
2. for each, upsert a GROUP grant on every RC in its ``rc_access`` table
3. union the mapped roles (and admin flag) into the account's global role set

Unlike grant management, failures here are isolated: a mapping that names an
unknown RC or carries a bad level is logged and skipped, each mapping's grants
are committed on their own, and the login goes ahead whatever happens.
This path is system-triggered and does not go through the owner check.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rcaccess.core.errors import AuthorizationError, ConfigurationError, NotFoundError
from rcaccess.features.directory.settings import DirectorySettings, GroupRoleMapping
from rcaccess.features.permissions.models import AccessGrant
from rcaccess.features.permissions.principals import GroupPrincipal, principal_type
from rcaccess.features.permissions.repository import AccessGrantRepository
from rcaccess.features.permissions.service import create_audit_log
from rcaccess.features.responsibility_centres.dependencies import get_rc_by_name
from rcaccess.features.users.models import User
from rcaccess.features.users.schemas import Identity
from rcaccess.utils import get_logger


log = get_logger(__name__)

SYNC_ACTOR = "directory-sync"
ADMIN_ROLE = "ADMIN"
DEFAULT_ROLE = "USER"


@dataclass
class SyncReport:
    """What one sync run did to the grant store and the account."""
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: list[str] = field(default_factory=list)
    roles: list[str] = field(default_factory=list)
    is_admin: bool = False
    roles_changed: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.created or self.updated or self.roles_changed)


def matching_mappings(
    settings: DirectorySettings,
    group_identifiers: Iterable[str],
) -> list[GroupRoleMapping]:
    """Configured mappings whose group is among ``group_identifiers``, in configured order."""
    groups = list(group_identifiers)
    return [m for m in settings.group_mappings if any(m.matches(g) for g in groups)]


def resolve_roles(mappings: Iterable[GroupRoleMapping]) -> tuple[list[str], bool]:
    """
    Global role set for the matched mappings: every mapped role, ADMIN if any
    mapping is an admin mapping (most privileged wins), USER if nothing mapped.
    """
    mappings = list(mappings)
    roles = {m.application_role.strip().upper() for m in mappings if m.application_role and m.application_role.strip()}
    is_admin = any(m.is_admin for m in mappings)
    if is_admin:
        roles.add(ADMIN_ROLE)
    if not roles:
        roles.add(DEFAULT_ROLE)
    return sorted(roles), is_admin


async def _apply_mapping(db: AsyncSession, mapping: GroupRoleMapping, report: SyncReport) -> None:
    """Materialize one mapping's grants. Validates everything before writing anything."""
    levels = mapping.access_levels()
    
    targets = []
    for rc_name, level in levels.items():
        rc = await get_rc_by_name(db, rc_name)
        if rc is None:
            raise NotFoundError("responsibility_centre", rc_name)
        targets.append((rc, level))
    
    repo = AccessGrantRepository(db)
    principal = GroupPrincipal(mapping.group_identifier, mapping.display_name or mapping.group_identifier)
    created = updated = unchanged = 0
    
    for rc, level in targets:
        existing = await repo.find_by_rc_and_principal(rc.id, principal)
        if existing is None:
            grant = await repo.add(
                AccessGrant(
                    rc_id=rc.id,
                    principal_type=principal_type(principal),
                    principal_identifier=principal.identifier,
                    principal_display_name=principal.display_name,
                    access_level=level,
                    granted_by=None,
                )
            )
            await create_audit_log(db, SYNC_ACTOR, "grant", grant)
            created += 1
        elif existing.access_level is not level:
            previous = existing.access_level
            await repo.set_level(existing, level)
            await create_audit_log(db, SYNC_ACTOR, "update", existing, {"previous_level": previous.value})
            updated += 1
        else:
            unchanged += 1
    
    report.created += created
    report.updated += updated
    report.unchanged += unchanged


async def _find_account(db: AsyncSession, username: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def _write_roles(db: AsyncSession, username: str, roles: list[str], is_admin: bool) -> bool:
    user = await _find_account(db, username)
    if user is None:
        log.warning(f"No account for {username}; global roles not written")
        return False
    if sorted(user.roles or []) == roles and user.is_admin == is_admin:
        return False
    user.roles = roles
    user.is_admin = is_admin
    await db.flush()
    return True


async def sync_directory_groups(
    db: AsyncSession,
    settings: DirectorySettings,
    username: str,
    group_identifiers: Iterable[str],
) -> SyncReport:
    """
    Translate the user's current directory groups into grants and roles.

    Running it twice with the same groups is a no-op the second time.
    """
    report = SyncReport()
    mappings = matching_mappings(settings, group_identifiers)
    log.debug(f"Directory sync for {username}: {len(mappings)} matching mapping(s)")
    
    for mapping in mappings:
        try:
            await _apply_mapping(db, mapping, report)
            await db.commit()
        except (ConfigurationError, NotFoundError) as e:
            await db.rollback()
            report.skipped.append(mapping.group_identifier)
            log.warning(f"Skipping directory mapping {mapping.group_identifier!r} for {username}: {e.message}")
        except SQLAlchemyError as e:
            await db.rollback()
            report.skipped.append(mapping.group_identifier)
            log.warning(
                f"Skipping directory mapping {mapping.group_identifier!r} for {username}: {e}",
                exc_info=True,
            )
        except Exception as e:
            await db.rollback()
            report.skipped.append(mapping.group_identifier)
            log.error(
                f"Unexpected error applying directory mapping {mapping.group_identifier!r} for {username}: {e}",
                exc_info=True,
            )
    
    report.roles, report.is_admin = resolve_roles(mappings)
    try:
        report.roles_changed = await _write_roles(db, username, report.roles, report.is_admin)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        log.warning(f"Could not write global roles for {username}: {e}", exc_info=True)
    
    log.info(
        f"Directory sync for {username}: created={report.created} updated={report.updated} "
        f"unchanged={report.unchanged} skipped={len(report.skipped)} roles={report.roles}"
    )
    return report


async def complete_directory_login(
    db: AsyncSession,
    settings: DirectorySettings,
    identity: Identity,
) -> User:
    """
    Finish a successful directory-backed login.

    Provisions the account when allowed, then runs the group sync under the
    configured timeout. A sync that times out or fails is logged and the
    login proceeds with whatever grants existed before.
    
    Raises:
        AuthorizationError: directory login disabled, unknown account with
            auto-provisioning off, or deactivated account
    """
    if not settings.enabled:
        raise AuthorizationError("Directory login is disabled")
    
    user = await _find_account(db, identity.username)
    if user is None:
        if not settings.allow_auto_provision:
            log.info(f"Rejected directory login for unknown user {identity.username}")
            raise AuthorizationError(f"No account for {identity.username} and auto-provisioning is disabled")
        user = User(username=identity.username, auth_source="directory", roles=[DEFAULT_ROLE])
        db.add(user)
        log.info(f"Provisioned account for directory user {identity.username}")
    elif not user.is_active:
        raise AuthorizationError("User account is deactivated")
    
    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()
    
    try:
        await asyncio.wait_for(
            sync_directory_groups(db, settings, identity.username, identity.group_identifiers),
            timeout=settings.sync_timeout_seconds,
        )
    except asyncio.TimeoutError:
        await db.rollback()
        log.warning(
            f"Directory sync for {identity.username} timed out after "
            f"{settings.sync_timeout_seconds}s; continuing login"
        )
    except SQLAlchemyError as e:
        await db.rollback()
        log.error(f"Directory sync for {identity.username} failed; continuing login: {e}", exc_info=True)
    except Exception as e:
        await db.rollback()
        log.error(
            f"Unexpected error in directory sync for {identity.username}; continuing login: {e}",
            exc_info=True,
        )
    
    return await _find_account(db, identity.username)
