"""Comment database model."""
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, Table, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from proofboard.database import Base
from proofboard.models.asset_version import JSONType

if TYPE_CHECKING:
    from proofboard.models.asset import Asset
    from proofboard.models.user import User


comment_mentions = Table(
    "comment_mentions",
    Base.metadata,
    Column("comment_id", Integer, ForeignKey("comments.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)


class Comment(Base):
    """Review comment pinned to one asset version.

    `asset_version` is a snapshot of the version number at creation time, not
    a foreign key: comments on v1 stay on v1 after v2 is uploaded.
    """

    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    asset_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    asset_version: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    user_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    parent_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # Annotation anchors, {"x", "y", "width", "height"} as fractions of the media.
    rectangle: Mapped[dict[str, float] | None] = mapped_column(JSONType, nullable=True)
    video_timestamp: Mapped[float | None] = mapped_column(Float, nullable=True)
    page_number: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Attached images: [{"path", "url", "filename", "mime_type", "size"}]
    images: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)

    # Set together, cleared together.
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_by: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

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
    asset: Mapped["Asset"] = relationship("Asset", back_populates="comments")
    user: Mapped["User | None"] = relationship("User", foreign_keys=[user_id])
    resolver: Mapped["User | None"] = relationship("User", foreign_keys=[resolved_by])
    replies: Mapped[list["Comment"]] = relationship(
        "Comment",
        back_populates="parent",
        cascade="all, delete-orphan",
        order_by="Comment.id",
    )
    parent: Mapped["Comment | None"] = relationship(
        "Comment",
        back_populates="replies",
        remote_side=[id],
    )
    mentions: Mapped[list["User"]] = relationship(
        "User",
        secondary=comment_mentions,
        order_by="User.id",
        passive_deletes=True,
    )

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None

    @property
    def has_annotation(self) -> bool:
        return self.rectangle is not None

    @property
    def has_timestamp(self) -> bool:
        return self.video_timestamp is not None

    @property
    def has_page_number(self) -> bool:
        return self.page_number is not None

    @property
    def formatted_timestamp(self) -> str | None:
        if self.video_timestamp is None:
            return None
        minutes, seconds = divmod(int(self.video_timestamp), 60)
        return f"{minutes:02d}:{seconds:02d}"
