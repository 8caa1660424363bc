"""
Pydantic schemas for Responsibility Centres.
"""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

from rcaccess.features.permissions.models import AccessLevel


class ResponsibilityCentreCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Unique RC name")
    description: str | None = Field(None, max_length=2000)


class ResponsibilityCentreResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    owner_username: str
    is_active: bool
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class ResponsibilityCentreWithAccess(ResponsibilityCentreResponse):
    """RC as seen by the caller, with the caller's effective level."""
    access_level: AccessLevel | None = None


class AccessSummary(BaseModel):
    """The caller's effective access on one RC."""
    rc_id: int
    access_level: AccessLevel | None
    can_edit: bool
    is_owner: bool
