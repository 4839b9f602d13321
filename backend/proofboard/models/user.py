"""User database model."""
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from proofboard.database import Base

if TYPE_CHECKING:
    from proofboard.models.project import ProjectMember


class UserRole(str, Enum):
    """User role enumeration."""
    ADMIN = "admin"
    PM = "pm"
    CREATIVE = "creative"
    REVIEWER = "reviewer"


class User(Base):
    """User model for authentication and profile."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    role: Mapped[UserRole] = mapped_column(SQLEnum(UserRole), default=UserRole.CREATIVE)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    # Relationships
    memberships: Mapped[list["ProjectMember"]] = relationship(
        "ProjectMember",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        return self.name or self.username

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_pm(self) -> bool:
        return self.role == UserRole.PM

    @property
    def is_creative(self) -> bool:
        return self.role == UserRole.CREATIVE

    @property
    def is_reviewer(self) -> bool:
        return self.role == UserRole.REVIEWER

    @property
    def can_approve(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.PM)
