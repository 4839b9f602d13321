"""Asset database model."""
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from proofboard.database import Base

if TYPE_CHECKING:
    from proofboard.models.approval_log import ApprovalLog
    from proofboard.models.asset_version import AssetVersion
    from proofboard.models.comment import Comment
    from proofboard.models.project import Project
    from proofboard.models.user import User
    from proofboard.models.version_lock import VersionLock


class AssetStatus(str, Enum):
    """Review status enumeration."""
    PENDING_REVIEW = "pending_review"
    IN_REVIEW = "in_review"
    CLIENT_REVIEW = "client_review"
    APPROVED = "approved"
    REVISION_REQUESTED = "revision_requested"


# Review transitions (target -> allowed sources). Uploading a new version is
# not listed: it always resets the status regardless of where it was.
STATUS_SOURCES: dict[AssetStatus, frozenset[AssetStatus]] = {
    AssetStatus.IN_REVIEW: frozenset({
        AssetStatus.PENDING_REVIEW,
        AssetStatus.REVISION_REQUESTED,
        AssetStatus.APPROVED,
    }),
    AssetStatus.CLIENT_REVIEW: frozenset({
        AssetStatus.PENDING_REVIEW,
        AssetStatus.IN_REVIEW,
    }),
    AssetStatus.APPROVED: frozenset({
        AssetStatus.PENDING_REVIEW,
        AssetStatus.IN_REVIEW,
        AssetStatus.CLIENT_REVIEW,
        AssetStatus.REVISION_REQUESTED,
    }),
    AssetStatus.REVISION_REQUESTED: frozenset({
        AssetStatus.PENDING_REVIEW,
        AssetStatus.IN_REVIEW,
        AssetStatus.CLIENT_REVIEW,
    }),
}

# Statuses a reviewer (client-side user) is allowed to see.
REVIEWER_VISIBLE_STATUSES = (
    AssetStatus.CLIENT_REVIEW,
    AssetStatus.APPROVED,
    AssetStatus.REVISION_REQUESTED,
)


class Asset(Base):
    """A creative file under review. File content lives in its versions."""

    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    project_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    uploaded_by: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Resolved once by the type registry at upload time; never re-derived.
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status: Mapped[AssetStatus] = mapped_column(
        SQLEnum(AssetStatus),
        default=AssetStatus.PENDING_REVIEW,
        index=True
    )
    # Always equal to the highest AssetVersion.version_number.
    current_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Lock state: a locked asset accepts no new versions.
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked_by: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

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
    project: Mapped["Project"] = relationship("Project", back_populates="assets")
    uploader: Mapped["User | None"] = relationship("User", foreign_keys=[uploaded_by])
    locker: Mapped["User | None"] = relationship("User", foreign_keys=[locked_by])

    versions: Mapped[list["AssetVersion"]] = relationship(
        "AssetVersion",
        back_populates="asset",
        cascade="all, delete-orphan",
        order_by="desc(AssetVersion.version_number)",
    )
    comments: Mapped[list["Comment"]] = relationship(
        "Comment",
        back_populates="asset",
        cascade="all, delete-orphan",
    )
    approval_logs: Mapped[list["ApprovalLog"]] = relationship(
        "ApprovalLog",
        back_populates="asset",
        cascade="all, delete-orphan",
    )
    version_locks: Mapped[list["VersionLock"]] = relationship(
        "VersionLock",
        back_populates="asset",
        cascade="all, delete-orphan",
    )

    def can_transition_to(self, target: AssetStatus) -> bool:
        return self.status in STATUS_SOURCES.get(target, frozenset())
