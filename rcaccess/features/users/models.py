"""
User account model.
"""
from datetime import datetime
from sqlalchemy import String, Boolean, JSON, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from rcaccess.core.database.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """
    Local account for an authenticated person.

    Accounts are created locally or auto-provisioned on first directory
    login. ``roles`` is the global application role set written by the
    directory sync (e.g. ``["USER"]``, ``["FINANCE", "ADMIN"]``).
    """
    __tablename__ = "users"
    
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    
    # local | directory
    auth_source: Mapped[str] = mapped_column(String(20), nullable=False, default="local")
    
    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    roles: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    
    @property
    def display_name(self) -> str:
        return self.full_name or self.username
    
    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username!r})>"
