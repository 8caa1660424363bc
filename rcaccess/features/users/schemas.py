"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class Identity(BaseModel):
    """
    Output of a successful login: who the caller is and which directory
    groups they currently belong to. Group identifiers are raw values from the
    directory (typically DNs) and are matched against grant principals.
    """
    username: str = Field(..., min_length=1, max_length=255)
    group_identifiers: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)


class UserResponse(BaseModel):
    """Schema for user responses."""
    id: int
    username: str
    email: str | None = None
    full_name: str | None = None
    auth_source: str
    is_active: bool
    is_admin: bool
    roles: list[str] = []
    last_login_at: datetime | None = None
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class DirectoryLoginRequest(BaseModel):
    """Signed assertion handed over by the external directory authenticator."""
    assertion: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
