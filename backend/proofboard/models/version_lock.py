"""Lock/unlock audit trail model."""
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum as SQLEnum, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from proofboard.database import Base

if TYPE_CHECKING:
    from proofboard.models.asset import Asset
    from proofboard.models.user import User


class LockAction(str, Enum):
    """Lock action enumeration."""
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class VersionLock(Base):
    """One lock or unlock of an asset. Append-only."""

    __tablename__ = "version_locks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    asset_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    action: Mapped[LockAction] = mapped_column(SQLEnum(LockAction), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )

    asset: Mapped["Asset"] = relationship("Asset", back_populates="version_locks")
    user: Mapped["User | None"] = relationship("User")

    @property
    def is_lock(self) -> bool:
        return self.action == LockAction.LOCKED

    @property
    def is_unlock(self) -> bool:
        return self.action == LockAction.UNLOCKED
