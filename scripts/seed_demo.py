"""
Seed script to populate demo accounts and the shared demo RC.

Run this script after database initialization to create:
- An administrator account and a couple of regular accounts
- The demo Responsibility Centre (readable by everyone, permissions frozen)
- A sample RC owned by the administrator with a few grants

Usage:
    uv run python -m scripts.seed_demo
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rcaccess.core import config
from rcaccess.core.database.engine import get_db, init_db
from rcaccess.features.permissions.models import AccessGrant, AccessLevel, PrincipalType
from rcaccess.features.responsibility_centres.models import ResponsibilityCentre
from rcaccess.features.users.models import User
from rcaccess.utils import get_logger


log = get_logger(__name__)


DEFAULT_USERS = [
    # username, full name, is_admin
    ("admin", "Administrator", True),
    ("alice", "Alice Martin", False),
    ("bob", "Bob Tremblay", False),
]

SAMPLE_RC = "Operations"

SAMPLE_GRANTS = [
    # principal type, identifier, display name, level
    (PrincipalType.USER, "alice", "Alice Martin", AccessLevel.READ_WRITE),
    (PrincipalType.USER, "bob", "Bob Tremblay", AccessLevel.READ_ONLY),
    (PrincipalType.GROUP, "cn=finance,ou=groups,dc=example,dc=com", "Finance", AccessLevel.READ_ONLY),
]


async def seed_users(db: AsyncSession):
    """Create the default accounts, skipping any that already exist."""
    log.info("Creating default users...")
    
    for username, full_name, is_admin in DEFAULT_USERS:
        result = await db.execute(select(User).where(User.username == username))
        if result.scalars().first():
            log.debug(f"User '{username}' already exists, skipping")
            continue
        
        roles = ["ADMIN"] if is_admin else ["USER"]
        db.add(User(username=username, full_name=full_name, is_admin=is_admin, roles=roles))
        log.info(f"Created user: {username}")
    
    await db.commit()


async def seed_rc(db: AsyncSession, name: str, description: str) -> ResponsibilityCentre:
    result = await db.execute(select(ResponsibilityCentre).where(ResponsibilityCentre.name == name))
    rc = result.scalars().first()
    if rc:
        log.debug(f"RC '{name}' already exists, skipping")
        return rc
    
    rc = ResponsibilityCentre(name=name, description=description, owner_username="admin")
    db.add(rc)
    await db.commit()
    log.info(f"Created RC: {name}")
    return rc


async def seed_grants(db: AsyncSession, rc: ResponsibilityCentre):
    """Grant the sample principals access to ``rc``."""
    for kind, identifier, display_name, level in SAMPLE_GRANTS:
        result = await db.execute(
            select(AccessGrant).where(
                AccessGrant.rc_id == rc.id,
                AccessGrant.principal_type == kind,
                AccessGrant.principal_identifier == identifier,
            )
        )
        if result.scalars().first():
            log.debug(f"Grant for {kind.value} '{identifier}' on {rc.name} already exists, skipping")
            continue
        
        db.add(
            AccessGrant(
                rc_id=rc.id,
                principal_type=kind,
                principal_identifier=identifier,
                principal_display_name=display_name,
                access_level=level,
                granted_by="admin",
            )
        )
        log.info(f"Granted {level.value} on {rc.name} to {kind.value} {identifier}")
    
    await db.commit()


async def main():
    """Main function to seed demo data."""
    log.info("Starting demo seeding...")
    
    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()
    
    # Get database session
    async for db in get_db():
        try:
            await seed_users(db)
            await seed_rc(db, config.DEMO_RC_NAME, "Shared demo RC, readable by every user")
            sample = await seed_rc(db, SAMPLE_RC, "Sample RC with user and group grants")
            await seed_grants(db, sample)
            
            log.info("Demo seeding completed successfully!")
            
        except Exception as e:
            log.error(f"Error seeding demo data: {e}", exc_info=True)
            await db.rollback()
            raise
        
        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
