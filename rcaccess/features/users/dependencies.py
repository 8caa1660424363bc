"""
FastAPI dependencies for authentication.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rcaccess.core.database.engine import get_db
from rcaccess.features.users.auth import verify_jwt_token
from rcaccess.features.users.models import User
from rcaccess.features.users.schemas import Identity


security = HTTPBearer()


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Identity:
    """
    Decode the bearer token into the caller's identity.

    Group identifiers come from the token on every request, so a change in
    directory membership takes effect at the next login without any cache.
    """
    return verify_jwt_token(credentials.credentials)


async def get_current_user(
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> User:
    """
    Load the caller's local account.
    
    Usage:
        @router.get("/me")
        async def get_me(user: User = Depends(get_current_user)):
            return user
    """
    result = await db.execute(select(User).where(User.username == identity.username))
    user = result.scalar_one_or_none()
    
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown account",
        )
    
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )
    
    return user


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"


async def get_active_identity(
    identity: Annotated[Identity, Depends(get_current_identity)],
    user: Annotated[User, Depends(get_current_user)],
) -> Identity:
    """Identity of a caller whose local account exists and is active."""
    return identity
