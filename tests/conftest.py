"""Shared pytest fixtures for access-control tests."""

from collections.abc import AsyncIterator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from rcaccess.core.database.base import Base
from rcaccess.core.database.engine import get_db, import_models
from rcaccess.core.limiter import limiter
from rcaccess.features.directory.settings import DirectorySettings, get_directory_settings
from rcaccess.features.permissions.models import AccessGrant, AccessLevel, PrincipalType
from rcaccess.features.responsibility_centres.models import ResponsibilityCentre
from rcaccess.features.users.auth import create_token
from rcaccess.features.users.models import User
from rcaccess.features.users.schemas import Identity
from rcaccess.main import app as fastapi_app


@pytest_asyncio.fixture()
async def engine() -> AsyncIterator[AsyncEngine]:
    """Fresh in-memory database per test."""

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture()
async def db(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def make_user(db: AsyncSession) -> Callable[..., Awaitable[User]]:
    async def _make(username: str, **kwargs) -> User:
        user = User(username=username, **kwargs)
        db.add(user)
        await db.commit()
        return user

    return _make


@pytest.fixture()
def make_rc(db: AsyncSession) -> Callable[..., Awaitable[ResponsibilityCentre]]:
    async def _make(name: str, owner: str) -> ResponsibilityCentre:
        rc = ResponsibilityCentre(name=name, owner_username=owner)
        db.add(rc)
        await db.commit()
        return rc

    return _make


@pytest.fixture()
def add_grant(db: AsyncSession) -> Callable[..., Awaitable[AccessGrant]]:
    """Insert a grant row directly, bypassing the management service."""

    async def _add(
        rc: ResponsibilityCentre,
        identifier: str,
        level: AccessLevel,
        kind: PrincipalType = PrincipalType.USER,
    ) -> AccessGrant:
        grant = AccessGrant(
            rc_id=rc.id,
            principal_type=kind,
            principal_identifier=identifier,
            principal_display_name=identifier,
            access_level=level,
        )
        db.add(grant)
        await db.commit()
        return grant

    return _add


@pytest_asyncio.fixture()
async def r1(make_user, make_rc) -> ResponsibilityCentre:
    """RC "R1" owned by alice, with bob and carol as known accounts."""

    for username in ("alice", "bob", "carol"):
        await make_user(username)
    return await make_rc("R1", owner="alice")


@pytest.fixture()
def alice() -> Identity:
    return Identity(username="alice")


@pytest.fixture()
def bob() -> Identity:
    return Identity(username="bob", group_identifiers=("staff",))


@pytest.fixture()
def directory_settings() -> DirectorySettings:
    return DirectorySettings(enabled=True, allow_auto_provision=True, sync_timeout_seconds=5)


@pytest_asyncio.fixture()
async def client(session_factory, directory_settings) -> AsyncIterator[AsyncClient]:
    """HTTPX client bound to the app, using the per-test database."""

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_db] = _get_db
    fastapi_app.dependency_overrides[get_directory_settings] = lambda: directory_settings
    limiter.reset()

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http

    fastapi_app.dependency_overrides.clear()


def auth_headers(username: str, groups: tuple[str, ...] = ()) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_token(username, groups)}"}


@pytest.fixture()
def headers_for() -> Callable[..., dict[str, str]]:
    return auth_headers
