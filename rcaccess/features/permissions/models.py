"""
Access grant and audit models.

A grant is one row of (RC, principal, access level). There is at most one
grant per (RC, principal); the storage-level unique constraint below is the
real arbiter, the service-level pre-check only produces a friendlier error.
Revoking a grant deletes the row: there is no inactive state.
"""
import enum
from datetime import datetime
from typing import Any, Dict
from sqlalchemy import (
    String,
    ForeignKey,
    Integer,
    JSON,
    DateTime,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from rcaccess.core.database.base import Base, TimestampMixin, utcnow


class AccessLevel(str, enum.Enum):
    """
    Totally ordered: READ_ONLY < READ_WRITE < OWNER.

    Comparisons use the rank, not the string value.
    """
    READ_ONLY = "READ_ONLY"
    READ_WRITE = "READ_WRITE"
    OWNER = "OWNER"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def __lt__(self, other):
        if not isinstance(other, AccessLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, AccessLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, AccessLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, AccessLevel):
            return NotImplemented
        return self.rank >= other.rank


_RANKS = {
    AccessLevel.READ_ONLY: 1,
    AccessLevel.READ_WRITE: 2,
    AccessLevel.OWNER: 3,
}


class PrincipalType(str, enum.Enum):
    USER = "USER"
    GROUP = "GROUP"
    DISTRIBUTION_LIST = "DISTRIBUTION_LIST"


class AccessGrant(Base):
    """
    Stored grant of an access level on an RC to one principal.

    Only ``access_level`` is ever updated; RC and principal are fixed for the
    lifetime of the row.
    """
    __tablename__ = "rc_access_grants"
    __table_args__ = (
        UniqueConstraint(
            "rc_id", "principal_type", "principal_identifier",
            name="uq_rc_access_grants_principal",
        ),
    )
    
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    
    rc_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("responsibility_centres.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    
    principal_type: Mapped[PrincipalType] = mapped_column(SQLEnum(PrincipalType), nullable=False)
    principal_identifier: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    principal_display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    
    access_level: Mapped[AccessLevel] = mapped_column(SQLEnum(AccessLevel), nullable=False)
    
    # Username of the owner who granted it, or None for directory-sync grants
    granted_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    @property
    def principal(self):
        from rcaccess.features.permissions.principals import make_principal
        return make_principal(self.principal_type, self.principal_identifier, self.principal_display_name)
    
    def __repr__(self) -> str:
        return (
            f"<AccessGrant(id={self.id}, rc_id={self.rc_id}, "
            f"principal={self.principal_type.value}:{self.principal_identifier!r}, level={self.access_level.value})>"
        )


class AuditLog(Base, TimestampMixin):
    """
    Audit log for grant changes.
    
    Tracks who changed which grant on which RC, and how.
    """
    __tablename__ = "audit_logs"
    
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    
    # Actor (username, or "directory-sync")
    actor: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    
    # grant | update | revoke
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    
    # Kept as a plain column so the history survives deletion of the RC
    rc_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    
    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, actor={self.actor!r}, action={self.action}, resource={self.resource_type}:{self.resource_id})>"
