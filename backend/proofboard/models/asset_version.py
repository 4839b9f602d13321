"""Asset version database model."""
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from proofboard.database import Base

if TYPE_CHECKING:
    from proofboard.models.asset import Asset
    from proofboard.models.user import User

JSONType = JSON().with_variant(JSONB(), "postgresql")


class AssetVersion(Base):
    """Immutable, numbered snapshot of an asset's file.

    Rows are append-only. The only columns written after creation are the
    thumbnail fields, backfilled by the thumbnail worker.
    """

    __tablename__ = "asset_versions"
    __table_args__ = (
        UniqueConstraint("asset_id", "version_number", name="uq_asset_versions_asset_version"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    asset_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)

    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_url: Mapped[str] = mapped_column(String(500), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Handler-produced metadata (width/height, page_count, duration, ...).
    file_meta: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    version_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    thumbnail_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    uploaded_by: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )

    # Relationships
    asset: Mapped["Asset"] = relationship("Asset", back_populates="versions")
    uploader: Mapped["User | None"] = relationship("User")

    @property
    def file_size_formatted(self) -> str:
        size = float(self.file_size)
        units = ["B", "KB", "MB", "GB"]
        index = 0
        while size >= 1024 and index < len(units) - 1:
            size /= 1024
            index += 1
        return f"{round(size, 2):g} {units[index]}"
