"""
User feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, Request
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from rcaccess.core import config
from rcaccess.core.database.engine import get_db
from rcaccess.core.limiter import limiter
from rcaccess.features.directory.settings import DirectorySettings, get_directory_settings
from rcaccess.features.directory.sync import complete_directory_login
from rcaccess.features.users.auth import (
    DIRECTORY_ASSERTION_TYPE,
    create_access_token,
    verify_jwt_token,
)
from rcaccess.features.users.dependencies import get_current_user
from rcaccess.features.users.models import User
from rcaccess.features.users.schemas import DirectoryLoginRequest, TokenResponse, UserResponse


router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


@router.post("/login/directory", response_model=TokenResponse)
# No Authorization header on login; throttle per client address instead
@limiter.limit(config.LOGIN_RATE_LIMIT, key_func=get_remote_address)
async def directory_login(
    request: Request,
    body: DirectoryLoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[DirectorySettings, Depends(get_directory_settings)],
):
    """
    Exchange a directory assertion from the external authenticator for an
    access token, syncing the user's directory groups on the way.
    """
    identity = verify_jwt_token(body.assertion, expected_type=DIRECTORY_ASSERTION_TYPE)
    await complete_directory_login(db, settings, identity)
    return TokenResponse(access_token=create_access_token(identity))
