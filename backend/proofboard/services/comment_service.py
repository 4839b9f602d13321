"""Comment service: annotated feedback, replies and resolution."""
import logging
import mimetypes
import re
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import insert, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from proofboard.models.asset import Asset
from proofboard.models.asset_version import AssetVersion
from proofboard.models.comment import Comment, comment_mentions
from proofboard.models.project import ProjectMember
from proofboard.models.user import User, UserRole
from proofboard.services.asset_types import AssetTypeRegistry
from proofboard.services.exceptions import (
    AnnotationNotSupportedError,
    InvalidAnnotationError,
    InvalidStateError,
    NotFoundError,
)
from proofboard.services.notifications import EventKind, EventOutbox, NotificationDispatcher, ReviewEvent
from proofboard.utils.storage import StorageService

logger = logging.getLogger(__name__)

RECTANGLE_KEYS = ("x", "y", "width", "height")

# Mentions are written as @user:<id> in the comment body.
MENTION_PATTERN = re.compile(r"@user:(\d+)\b")


def extract_mentioned_user_ids(content: str) -> list[int]:
    """Unique mentioned user ids in order of first appearance."""
    return list(dict.fromkeys(int(match) for match in MENTION_PATTERN.findall(content)))


def _normalize_rectangle(rectangle: dict[str, Any]) -> dict[str, float]:
    missing = [key for key in RECTANGLE_KEYS if key not in rectangle]
    if missing:
        raise InvalidAnnotationError(f"Rectangle is missing: {', '.join(missing)}.")

    normalized = {}
    for key in RECTANGLE_KEYS:
        try:
            value = float(rectangle[key])
        except (TypeError, ValueError):
            raise InvalidAnnotationError(f"Rectangle {key} must be a number.") from None
        if not 0.0 <= value <= 1.0:
            raise InvalidAnnotationError(f"Rectangle {key} must be between 0 and 1.")
        normalized[key] = value
    return normalized


class CommentService:
    """Service for comment operations."""

    def __init__(
        self,
        db: AsyncSession,
        registry: AssetTypeRegistry,
        storage: StorageService,
        notifier: NotificationDispatcher,
    ):
        self.db = db
        self.registry = registry
        self.storage = storage
        self.outbox = EventOutbox(notifier)

    async def commit(self) -> None:
        """Commit the session, then send the events it produced."""
        try:
            await self.db.commit()
        except Exception:
            self.outbox.discard()
            raise
        await self.outbox.release()

    async def get_comment(self, comment_id: int) -> Comment:
        """Comment with author and replies loaded for serialization."""
        result = await self.db.execute(
            select(Comment)
            .options(
                selectinload(Comment.user),
                selectinload(Comment.mentions),
                selectinload(Comment.replies).selectinload(Comment.user),
                selectinload(Comment.replies).selectinload(Comment.mentions),
            )
            .where(Comment.id == comment_id)
            .execution_options(populate_existing=True)
        )
        comment = result.scalar_one_or_none()
        if comment is None:
            raise NotFoundError("Comment not found")
        return comment

    async def _page_count(self, asset: Asset, version_number: int) -> int | None:
        file_meta = await self.db.scalar(
            select(AssetVersion.file_meta).where(
                AssetVersion.asset_id == asset.id,
                AssetVersion.version_number == version_number,
            )
        )
        return (file_meta or {}).get("page_count")

    async def validate_annotation(
        self,
        asset: Asset,
        rectangle: dict[str, Any] | None,
        video_timestamp: float | None,
        page_number: int | None,
    ) -> dict[str, float] | None:
        """Check the anchors against what the asset's type allows.

        Returns the normalized rectangle. A kind the type does not grant is
        rejected outright, never dropped.
        """
        caps = self.registry.annotation_capabilities(asset.type)
        display_name = self.registry.get_display_name(asset.type)

        if rectangle is not None and not caps.spatial:
            raise AnnotationNotSupportedError(f"{display_name} assets do not support region annotations.")
        if video_timestamp is not None and not caps.temporal:
            raise AnnotationNotSupportedError(f"{display_name} assets do not support timestamp annotations.")
        if page_number is not None and not caps.paged:
            raise AnnotationNotSupportedError(f"{display_name} assets do not support page annotations.")

        if video_timestamp is not None and page_number is not None:
            raise InvalidAnnotationError("A comment can be anchored to a timestamp or a page, not both.")
        if video_timestamp is not None and video_timestamp < 0:
            raise InvalidAnnotationError("Video timestamp must not be negative.")
        if page_number is not None:
            if page_number < 1:
                raise InvalidAnnotationError("Page number must be at least 1.")
            page_count = await self._page_count(asset, asset.current_version)
            if page_count is not None and page_number > page_count:
                raise InvalidAnnotationError(f"Page number must not exceed {page_count}.")

        return _normalize_rectangle(rectangle) if rectangle is not None else None

    async def create(
        self,
        asset: Asset,
        user: User,
        content: str,
        rectangle: dict[str, Any] | None = None,
        video_timestamp: float | None = None,
        page_number: int | None = None,
        parent_id: int | None = None,
        temp_image_ids: list[str] | None = None,
    ) -> Comment:
        """Create a top-level comment or a reply.

        Replies stay on their parent's version and carry no anchors; only one
        level of threading is allowed.
        """
        if parent_id is not None:
            parent = await self.db.get(Comment, parent_id)
            if parent is None:
                raise NotFoundError("Parent comment not found")
            if parent.asset_id != asset.id:
                raise InvalidStateError("Parent comment does not belong to this asset.")
            if parent.is_reply:
                raise InvalidStateError("Cannot reply to a reply. Only single-level threading is supported.")
            asset_version = parent.asset_version
            rectangle, video_timestamp, page_number = None, None, None
        else:
            asset_version = asset.current_version
            rectangle = await self.validate_annotation(asset, rectangle, video_timestamp, page_number)

        comment = Comment(
            asset_id=asset.id,
            asset_version=asset_version,
            user_id=user.id,
            parent_id=parent_id,
            content=content,
            rectangle=rectangle,
            video_timestamp=video_timestamp,
            page_number=page_number,
            is_resolved=False,
        )
        self.db.add(comment)
        await self.db.flush()

        if temp_image_ids:
            comment.images = await self._attach_images(asset, user, comment, temp_image_ids)
            await self.db.flush()

        mentioned = await self._record_mentions(asset, comment)
        await self.db.refresh(comment)
        await self.db.refresh(comment, ["mentions"])
        logger.info("Comment %s created on asset %s v%s by user %s", comment.id, asset.id, asset_version, user.id)

        self.outbox.add(ReviewEvent(
            kind=EventKind.COMMENT_CREATED,
            asset_id=asset.id,
            asset_title=asset.title,
            project_id=asset.project_id,
            actor_id=user.id,
            actor_name=user.display_name,
            version=asset_version,
            comment=content,
            extra={"comment_id": comment.id, "is_reply": comment.is_reply},
        ))
        notify = [user_id for user_id in mentioned if user_id != user.id]
        if notify:
            self.outbox.add(ReviewEvent(
                kind=EventKind.USER_MENTIONED,
                asset_id=asset.id,
                asset_title=asset.title,
                project_id=asset.project_id,
                actor_id=user.id,
                actor_name=user.display_name,
                version=asset_version,
                comment=content,
                extra={"comment_id": comment.id, "user_ids": notify},
            ))
        return comment

    async def _record_mentions(self, asset: Asset, comment: Comment) -> list[int]:
        """Store mentions of users who can see the asset's project.

        Ids of non-members (other than admins) and unknown users are ignored.
        """
        requested = extract_mentioned_user_ids(comment.content)
        if not requested:
            return []

        members = select(ProjectMember.user_id).where(ProjectMember.project_id == asset.project_id)
        result = await self.db.execute(
            select(User.id).where(
                User.id.in_(requested),
                or_(User.role == UserRole.ADMIN, User.id.in_(members)),
            )
        )
        allowed = set(result.scalars().all())
        mentioned = [user_id for user_id in requested if user_id in allowed]
        if mentioned:
            await self.db.execute(
                insert(comment_mentions),
                [{"comment_id": comment.id, "user_id": user_id} for user_id in mentioned],
            )
        return mentioned

    async def _attach_images(
        self,
        asset: Asset,
        user: User,
        comment: Comment,
        temp_ids: list[str],
    ) -> list[dict[str, Any]]:
        """Move the user's pending temp images next to the asset's files.

        Unknown, expired or foreign temp ids are skipped.
        """
        directory = f"{self.storage.asset_directory(asset.project_id, asset.id)}/comments/{comment.id}"
        images = []
        for temp_id in temp_ids:
            relative_path = await self.storage.attach_temp_image(user.id, temp_id, directory)
            if relative_path is None:
                logger.debug("Temp image %s not found for user %s", temp_id, user.id)
                continue
            absolute = self.storage.get_absolute_path(relative_path)
            images.append({
                "path": relative_path,
                "url": self.storage.get_file_url(relative_path),
                "filename": absolute.name,
                "mime_type": mimetypes.guess_type(absolute.name)[0],
                "size": absolute.stat().st_size,
            })
        return images

    async def list_comments(
        self,
        asset: Asset,
        viewer: User | None = None,
        version: int | None = None,
        all_versions: bool = False,
        resolved: bool | None = None,
    ) -> list[Comment]:
        """Top-level comments with their replies, oldest first.

        Defaults to the asset's current version. Reviewers only see their own
        threads.
        """
        stmt = (
            select(Comment)
            .options(
                selectinload(Comment.user),
                selectinload(Comment.resolver),
                selectinload(Comment.mentions),
                selectinload(Comment.replies).selectinload(Comment.user),
                selectinload(Comment.replies).selectinload(Comment.resolver),
                selectinload(Comment.replies).selectinload(Comment.mentions),
            )
            .where(Comment.asset_id == asset.id, Comment.parent_id.is_(None))
        )
        if viewer is not None and viewer.is_reviewer:
            stmt = stmt.where(Comment.user_id == viewer.id)
        if version is not None:
            stmt = stmt.where(Comment.asset_version == version)
        elif not all_versions:
            stmt = stmt.where(Comment.asset_version == asset.current_version)
        if resolved is not None:
            stmt = stmt.where(Comment.is_resolved.is_(resolved))

        result = await self.db.execute(stmt.order_by(Comment.created_at.asc(), Comment.id.asc()))
        return list(result.scalars().all())

    async def update(self, comment: Comment, content: str) -> Comment:
        comment.content = content
        await self.db.flush()
        await self.db.refresh(comment)
        return comment

    async def delete(self, comment: Comment) -> None:
        """Delete a comment (and its replies) along with attached images."""
        result = await self.db.execute(
            select(Comment.images).where(
                (Comment.id == comment.id) | (Comment.parent_id == comment.id)
            )
        )
        paths = [image["path"] for images in result.scalars() if images for image in images]

        await self.db.delete(comment)
        await self.db.flush()
        for path in paths:
            await self.storage.delete_file(path)

    async def remove_image(self, comment: Comment, index: int) -> Comment:
        """Detach one stored image from a comment and delete its file."""
        images = list(comment.images or [])
        if not 0 <= index < len(images):
            raise NotFoundError("Image not found.")
        removed = images.pop(index)
        comment.images = images or None
        await self.db.flush()
        await self.storage.delete_file(removed["path"])
        return comment

    async def resolve(self, comment: Comment, user: User) -> Comment:
        comment.is_resolved = True
        comment.resolved_by = user.id
        comment.resolved_at = datetime.now(timezone.utc)
        await self.db.flush()
        await self.db.refresh(comment)
        return comment

    async def unresolve(self, comment: Comment) -> Comment:
        comment.is_resolved = False
        comment.resolved_by = None
        comment.resolved_at = None
        await self.db.flush()
        await self.db.refresh(comment)
        return comment
