"""Approval audit trail model."""
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum as SQLEnum, ForeignKey, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from proofboard.database import Base

if TYPE_CHECKING:
    from proofboard.models.asset import Asset
    from proofboard.models.user import User


class ApprovalAction(str, Enum):
    """Approval action enumeration."""
    APPROVED = "approved"
    REVISION_REQUESTED = "revision_requested"
    REOPENED = "reopened"


class ApprovalLog(Base):
    """One approve / revision-request / reopen decision. Append-only."""

    __tablename__ = "approval_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    asset_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # Asset.current_version at the time of the decision.
    asset_version: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    action: Mapped[ApprovalAction] = mapped_column(SQLEnum(ApprovalAction), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )

    asset: Mapped["Asset"] = relationship("Asset", back_populates="approval_logs")
    user: Mapped["User | None"] = relationship("User")

    @property
    def is_approval(self) -> bool:
        return self.action == ApprovalAction.APPROVED

    @property
    def is_revision_request(self) -> bool:
        return self.action == ApprovalAction.REVISION_REQUESTED
