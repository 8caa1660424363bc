"""
Responsibility Centre model.

An RC is the unit every fiscal record hangs off and the unit access is
granted on. Its creator is the owner; that ownership is implicit and is
never stored as a grant row.
"""
from sqlalchemy import String, Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column

from rcaccess.core.database.base import Base, TimestampMixin


class ResponsibilityCentre(Base, TimestampMixin):
    __tablename__ = "responsibility_centres"
    
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    
    # Captured at creation, never changes
    owner_username: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    def __repr__(self) -> str:
        return f"<ResponsibilityCentre(id={self.id}, name={self.name!r}, owner={self.owner_username!r})>"
