"""
Pydantic schemas for RC permission management.

Request and response models for grants, permission checks, and audit logs.
"""
from datetime import datetime
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from rcaccess.features.permissions.models import AccessLevel, PrincipalType


# ============================================================================
# Grant Schemas
# ============================================================================

class GrantUserAccess(BaseModel):
    """Schema for granting a user access to an RC."""
    username: str = Field(..., min_length=1, max_length=255, description="Target account username")
    access_level: AccessLevel = Field(..., description="READ_ONLY, READ_WRITE or OWNER")


class GrantGroupAccess(BaseModel):
    """Schema for granting a directory group or distribution list access to an RC."""
    principal_identifier: str = Field(..., min_length=1, max_length=512, description="Directory identifier (e.g. group DN)")
    principal_display_name: Optional[str] = Field(None, max_length=255, description="Human-readable name")
    principal_type: PrincipalType = Field(PrincipalType.GROUP, description="GROUP or DISTRIBUTION_LIST")
    access_level: AccessLevel
    
    @field_validator('principal_identifier')
    @classmethod
    def identifier_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Principal identifier must not be blank')
        return v


class UpdatePermission(BaseModel):
    """Schema for changing the level of an existing grant."""
    access_level: AccessLevel


class PermissionEntry(BaseModel):
    """
    One line of an RC's permission listing.

    ``implicit`` entries are synthesized (the RC owner) and have no id.
    """
    id: Optional[int] = None
    rc_id: int
    rc_name: str
    principal_type: PrincipalType
    principal_identifier: str
    principal_display_name: Optional[str] = None
    access_level: AccessLevel
    granted_by: Optional[str] = None
    granted_at: Optional[datetime] = None
    implicit: bool = False


# ============================================================================
# Permission Check Schemas
# ============================================================================

class PermissionCheckResponse(BaseModel):
    """Schema for permission check response."""
    rc_id: int
    allowed: bool


# ============================================================================
# Audit Log Schemas
# ============================================================================

class AuditLogResponse(BaseModel):
    """Schema for audit log response."""
    id: int
    actor: str
    action: str
    resource_type: str
    resource_id: Optional[int]
    rc_id: Optional[int]
    details: Optional[Dict[str, Any]]
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    """Schema for paginated audit log list."""
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    pages: int
