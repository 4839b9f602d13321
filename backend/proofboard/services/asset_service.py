"""Asset lifecycle service: uploads, versions, locks and review decisions.

Every write goes through the caller's session and is only flushed here; the
request (or task) that owns the session commits or rolls back the whole
operation, through `commit()` when events or thumbnail jobs must follow it. State changes that must not race (version numbering, locking,
status transitions) are single conditional UPDATE statements so the check
and the write happen in the database at once.
"""
import asyncio
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, NamedTuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from proofboard.config import get_settings
from proofboard.models.approval_log import ApprovalAction, ApprovalLog
from proofboard.models.asset import STATUS_SOURCES, Asset, AssetStatus
from proofboard.models.asset_version import AssetVersion
from proofboard.models.comment import Comment
from proofboard.models.project import Project
from proofboard.models.user import User
from proofboard.models.version_lock import LockAction, VersionLock
from proofboard.services.asset_types import AssetTypeHandler, AssetTypeRegistry, UploadedFile
from proofboard.services.asset_types.base import base_metadata
from proofboard.services.exceptions import (
    AssetLockedError,
    FileValidationError,
    InvalidStateError,
    NotFoundError,
)
from proofboard.services.notifications import EventKind, EventOutbox, NotificationDispatcher, ReviewEvent
from proofboard.utils.storage import StorageService

settings = get_settings()
logger = logging.getLogger(__name__)

# Types whose versions get a generated preview image.
THUMBNAIL_TYPES = frozenset({"video", "pdf"})


class ThumbnailJob(NamedTuple):
    asset_version_id: int
    asset_type: str
    file_path: str
    project_id: int


def _safe_title(title: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_-]", "_", title)


class AssetService:
    """Service for asset and version operations."""

    def __init__(
        self,
        db: AsyncSession,
        registry: AssetTypeRegistry,
        storage: StorageService,
        notifier: NotificationDispatcher,
        metadata_timeout: float | None = None,
    ):
        self.db = db
        self.registry = registry
        self.storage = storage
        self.outbox = EventOutbox(notifier)
        self.metadata_timeout = metadata_timeout or settings.metadata_timeout_seconds
        # Filled as versions are created; dispatched once the session commits.
        self.thumbnail_jobs: list[ThumbnailJob] = []

    async def commit(self) -> list[ThumbnailJob]:
        """Commit the session, then send the events it produced.

        Returns the thumbnail jobs that are now safe to hand to a worker.
        """
        try:
            await self.db.commit()
        except Exception:
            self.outbox.discard()
            self.thumbnail_jobs.clear()
            raise
        await self.outbox.release()
        jobs, self.thumbnail_jobs = self.thumbnail_jobs, []
        return jobs

    async def get_asset(self, asset_id: int) -> Asset:
        asset = await self.db.get(Asset, asset_id)
        if asset is None:
            raise NotFoundError("Asset not found")
        return asset

    async def list_versions(self, asset: Asset) -> list[AssetVersion]:
        result = await self.db.execute(
            select(AssetVersion)
            .options(selectinload(AssetVersion.uploader))
            .where(AssetVersion.asset_id == asset.id)
            .order_by(AssetVersion.version_number.desc())
        )
        return list(result.scalars().all())

    async def get_version(self, asset: Asset, version_number: int | None = None) -> AssetVersion:
        number = version_number or asset.current_version
        result = await self.db.execute(
            select(AssetVersion).where(
                AssetVersion.asset_id == asset.id,
                AssetVersion.version_number == number,
            )
        )
        version = result.scalar_one_or_none()
        if version is None:
            raise NotFoundError("Version not found.")
        return version

    @staticmethod
    def initial_status(uploader: User) -> AssetStatus:
        """Admin/PM uploads skip the pending queue."""
        return AssetStatus.IN_REVIEW if uploader.can_approve else AssetStatus.PENDING_REVIEW

    async def extract_metadata(
        self, file: UploadedFile, handler: AssetTypeHandler | None = None
    ) -> dict[str, Any]:
        """Handler metadata, bounded by the configured timeout.

        Slow extraction (huge PDF, stalled ffprobe) yields the bare name/mime/
        extension map instead of holding the request.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread((handler or self.registry).extract_metadata, file),
                timeout=self.metadata_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Metadata extraction for %s exceeded %.1fs, storing bare metadata",
                file.name, self.metadata_timeout,
            )
            return base_metadata(file)

    async def create_asset(
        self,
        project: Project,
        uploader: User,
        file: UploadedFile,
        title: str | None = None,
        description: str | None = None,
        deadline: datetime | None = None,
    ) -> Asset:
        """Create an asset and its first version from a staged upload."""
        asset_type = self.registry.determine_type(file)
        errors = self.registry.validate(file)
        if errors:
            await self.storage.discard(file)
            raise FileValidationError(errors)

        file_meta = await self.extract_metadata(file)

        asset = Asset(
            project_id=project.id,
            uploaded_by=uploader.id,
            title=title or Path(file.name).stem,
            description=description,
            type=asset_type,
            status=self.initial_status(uploader),
            current_version=1,
            is_locked=False,
            deadline=deadline,
        )
        self.db.add(asset)
        await self.db.flush()

        version = await self._store_version(asset, uploader, file, 1, file_meta)
        await self.db.refresh(asset)

        logger.info(
            "Asset %s (%s) created in project %s by user %s",
            asset.id, asset_type, project.id, uploader.id,
        )
        self.outbox.add(self._event(EventKind.ASSET_UPLOADED, asset, uploader, version=1))
        self._queue_thumbnail(asset, version)
        return asset

    async def upload_version(
        self,
        asset: Asset,
        uploader: User,
        file: UploadedFile,
        version_notes: str | None = None,
    ) -> AssetVersion:
        """Append the next version to an unlocked asset.

        The new number comes from an atomic increment that also re-checks the
        lock, so two concurrent uploads can never share a number and a lock
        taken after the pre-check still wins.
        """
        if asset.is_locked:
            await self.storage.discard(file)
            raise await self._locked_error(asset)

        # The asset type was fixed at creation; later versions are held to it.
        handler = self.registry.get(asset.type)
        if handler is None:
            errors = self.registry.validate(file)
        else:
            errors = handler.validate(file)
            if self.registry.determine_type(file) != asset.type:
                errors.append(f"New versions must match the asset type ({handler.display_name}).")
        if errors:
            await self.storage.discard(file)
            raise FileValidationError(errors)

        file_meta = await self.extract_metadata(file, handler)

        result = await self.db.execute(
            update(Asset)
            .where(Asset.id == asset.id, Asset.is_locked.is_(False))
            .values(
                current_version=Asset.current_version + 1,
                status=self.initial_status(uploader),
            )
            .returning(Asset.current_version)
            .execution_options(synchronize_session=False)
        )
        version_number = result.scalar_one_or_none()
        if version_number is None:
            await self.storage.discard(file)
            await self.db.refresh(asset)
            raise await self._locked_error(asset)

        version = await self._store_version(
            asset, uploader, file, version_number, file_meta, version_notes
        )
        await self.db.refresh(asset)

        logger.info("Asset %s: version %s uploaded by user %s", asset.id, version_number, uploader.id)
        self.outbox.add(
            self._event(EventKind.NEW_VERSION, asset, uploader, version=version_number)
        )
        self._queue_thumbnail(asset, version)
        return version

    async def _store_version(
        self,
        asset: Asset,
        uploader: User,
        file: UploadedFile,
        version_number: int,
        file_meta: dict[str, Any],
        version_notes: str | None = None,
    ) -> AssetVersion:
        directory = self.storage.asset_directory(asset.project_id, asset.id)
        try:
            file_path, file_url = await self.storage.promote(file, directory)
        except OSError:
            await self.storage.discard(file)
            raise

        version = AssetVersion(
            asset_id=asset.id,
            version_number=version_number,
            file_path=file_path,
            file_url=file_url,
            file_size=file.size,
            file_meta=file_meta,
            version_notes=version_notes,
            uploaded_by=uploader.id,
        )
        self.db.add(version)
        try:
            await self.db.flush()
        except Exception:
            await self.storage.delete_file(file_path)
            raise
        await self.db.refresh(version)
        return version

    async def _locked_error(self, asset: Asset) -> AssetLockedError:
        locker = await self.db.get(User, asset.locked_by) if asset.locked_by else None
        return AssetLockedError(
            locked_by=locker.display_name if locker else None,
            locked_at=asset.locked_at,
        )

    def _queue_thumbnail(self, asset: Asset, version: AssetVersion) -> None:
        if asset.type in THUMBNAIL_TYPES:
            self.thumbnail_jobs.append(
                ThumbnailJob(version.id, asset.type, version.file_path, asset.project_id)
            )

    async def update_asset(self, asset: Asset, **fields: Any) -> Asset:
        for key in ("title", "description", "deadline"):
            if key in fields:
                setattr(asset, key, fields[key])
        await self.db.flush()
        await self.db.refresh(asset)
        return asset

    # Locking

    async def lock(self, asset: Asset, user: User, reason: str | None = None) -> Asset:
        await self._set_lock(asset, user, locked=True, reason=reason)
        logger.info("Asset %s locked by user %s", asset.id, user.id)
        return asset

    async def unlock(self, asset: Asset, user: User, reason: str | None = None) -> Asset:
        await self._set_lock(asset, user, locked=False, reason=reason)
        logger.info("Asset %s unlocked by user %s", asset.id, user.id)
        return asset

    async def _set_lock(self, asset: Asset, user: User, locked: bool, reason: str | None) -> None:
        if locked:
            values = {"is_locked": True, "locked_by": user.id, "locked_at": datetime.now(timezone.utc)}
        else:
            values = {"is_locked": False, "locked_by": None, "locked_at": None}

        result = await self.db.execute(
            update(Asset)
            .where(Asset.id == asset.id, Asset.is_locked.is_(not locked))
            .values(**values)
            .returning(Asset.id)
            .execution_options(synchronize_session=False)
        )
        if result.scalar_one_or_none() is None:
            await self.db.refresh(asset)
            raise InvalidStateError("Asset is already locked." if locked else "Asset is not locked.")

        self.db.add(VersionLock(
            asset_id=asset.id,
            user_id=user.id,
            action=LockAction.LOCKED if locked else LockAction.UNLOCKED,
            reason=reason,
        ))
        await self.db.flush()
        await self.db.refresh(asset)

    # Review decisions

    async def _transition(
        self,
        asset: Asset,
        target: AssetStatus,
        sources: frozenset[AssetStatus] | None = None,
    ) -> int | None:
        """Move to `target` only from an allowed source status.

        Returns the asset's current version at the time of the change, or
        None when the asset was not in an allowed status.
        """
        allowed = sources if sources is not None else STATUS_SOURCES[target]
        result = await self.db.execute(
            update(Asset)
            .where(Asset.id == asset.id, Asset.status.in_(allowed))
            .values(status=target)
            .returning(Asset.current_version)
            .execution_options(synchronize_session=False)
        )
        version = result.scalar_one_or_none()
        await self.db.refresh(asset)
        return version

    async def _log_decision(
        self,
        asset: Asset,
        user: User,
        action: ApprovalAction,
        version: int,
        comment: str | None,
    ) -> ApprovalLog:
        log = ApprovalLog(
            asset_id=asset.id,
            asset_version=version,
            user_id=user.id,
            action=action,
            comment=comment,
        )
        self.db.add(log)
        await self.db.flush()
        logger.info("Asset %s v%s: %s by user %s", asset.id, version, action.value, user.id)
        return log

    async def approve(self, asset: Asset, user: User, comment: str | None = None) -> Asset:
        version = await self._transition(asset, AssetStatus.APPROVED)
        if version is None:
            raise InvalidStateError(f"Cannot approve an asset in status '{asset.status.value}'.")
        await self._log_decision(asset, user, ApprovalAction.APPROVED, version, comment)
        self.outbox.add(
            self._event(EventKind.ASSET_APPROVED, asset, user, version=version, comment=comment)
        )
        return asset

    async def request_revision(self, asset: Asset, user: User, comment: str | None = None) -> Asset:
        """Ask for changes; a written reason is needed when nobody commented on this version."""
        if not comment:
            has_comments = await self.db.scalar(
                select(func.count(Comment.id)).where(
                    Comment.asset_id == asset.id,
                    Comment.asset_version == asset.current_version,
                )
            )
            if not has_comments:
                raise InvalidStateError(
                    "A comment is required when the current version has no feedback."
                )

        version = await self._transition(asset, AssetStatus.REVISION_REQUESTED)
        if version is None:
            raise InvalidStateError(
                f"Cannot request a revision for an asset in status '{asset.status.value}'."
            )
        await self._log_decision(asset, user, ApprovalAction.REVISION_REQUESTED, version, comment)
        self.outbox.add(
            self._event(EventKind.REVISION_REQUESTED, asset, user, version=version, comment=comment)
        )
        return asset

    async def send_to_client_review(self, asset: Asset, user: User) -> Asset:
        version = await self._transition(asset, AssetStatus.CLIENT_REVIEW)
        if version is None:
            raise InvalidStateError(
                f"Cannot send an asset in status '{asset.status.value}' to client review."
            )
        logger.info("Asset %s sent to client review by user %s", asset.id, user.id)
        self.outbox.add(self._event(EventKind.SENT_TO_CLIENT, asset, user, version=version))
        return asset

    async def reopen(self, asset: Asset, user: User, comment: str | None = None) -> Asset:
        """Approved -> in_review, logged as `reopened`."""
        version = await self._transition(
            asset, AssetStatus.IN_REVIEW, frozenset({AssetStatus.APPROVED})
        )
        if version is None:
            raise InvalidStateError("Only approved assets can be reopened.")
        await self._log_decision(asset, user, ApprovalAction.REOPENED, version, comment)
        self.outbox.add(
            self._event(EventKind.ASSET_REOPENED, asset, user, version=version, comment=comment)
        )
        return asset

    async def mark_in_review(self, asset: Asset, user: User) -> bool:
        """Pending assets move to in_review when an approver opens them."""
        if not user.can_approve:
            return False
        version = await self._transition(
            asset, AssetStatus.IN_REVIEW, frozenset({AssetStatus.PENDING_REVIEW})
        )
        return version is not None

    # Deletion and downloads

    async def delete_asset(self, asset: Asset) -> None:
        """Delete the asset row with everything hanging off it, then its files."""
        directory = self.storage.asset_directory(asset.project_id, asset.id)
        asset_id = asset.id
        await self.db.delete(asset)
        await self.db.flush()
        await self.storage.delete_directory(directory)
        logger.info("Asset %s deleted", asset_id)

    async def download_info(self, asset: Asset, version_number: int | None = None) -> dict[str, Any]:
        version = await self.get_version(asset, version_number)
        extension = (version.file_meta or {}).get("extension") or "bin"
        return {
            "url": version.file_url,
            "filename": f"{_safe_title(asset.title)}_v{version.version_number}.{extension}",
            "version": version.version_number,
            "file_size": version.file_size,
        }

    async def history(self, asset: Asset, viewer: User | None = None) -> dict[str, list[dict[str, Any]]]:
        """Versions, approval decisions and lock events as one timeline.

        Reviewers see only the current version, their own decisions and no
        lock events.
        """
        restricted = viewer is not None and viewer.is_reviewer

        versions_stmt = (
            select(AssetVersion)
            .options(selectinload(AssetVersion.uploader))
            .where(AssetVersion.asset_id == asset.id)
            .order_by(AssetVersion.version_number.desc())
        )
        if restricted:
            versions_stmt = versions_stmt.where(AssetVersion.version_number == asset.current_version)
        versions = [
            {
                "id": v.id,
                "type": "version",
                "version_number": v.version_number,
                "file_url": v.file_url,
                "file_size": v.file_size,
                "file_size_formatted": v.file_size_formatted,
                "file_meta": v.file_meta,
                "thumbnail_url": v.thumbnail_url,
                "version_notes": v.version_notes,
                "user_id": v.uploaded_by,
                "user_name": v.uploader.display_name if v.uploader else None,
                "created_at": v.created_at,
            }
            for v in (await self.db.execute(versions_stmt)).scalars()
        ]

        logs_stmt = (
            select(ApprovalLog)
            .options(selectinload(ApprovalLog.user))
            .where(ApprovalLog.asset_id == asset.id)
            .order_by(ApprovalLog.created_at.desc(), ApprovalLog.id.desc())
        )
        if restricted:
            logs_stmt = logs_stmt.where(ApprovalLog.user_id == viewer.id)
        approval_logs = [
            {
                "id": log.id,
                "type": "approval",
                "action": log.action.value,
                "asset_version": log.asset_version,
                "user_id": log.user_id,
                "user_name": log.user.display_name if log.user else None,
                "comment": log.comment,
                "created_at": log.created_at,
            }
            for log in (await self.db.execute(logs_stmt)).scalars()
        ]

        lock_events: list[dict[str, Any]] = []
        if not restricted:
            locks_stmt = (
                select(VersionLock)
                .options(selectinload(VersionLock.user))
                .where(VersionLock.asset_id == asset.id)
                .order_by(VersionLock.created_at.desc(), VersionLock.id.desc())
            )
            lock_events = [
                {
                    "id": lock.id,
                    "type": "lock",
                    "action": lock.action.value,
                    "user_id": lock.user_id,
                    "user_name": lock.user.display_name if lock.user else None,
                    "reason": lock.reason,
                    "created_at": lock.created_at,
                }
                for lock in (await self.db.execute(locks_stmt)).scalars()
            ]

        timeline = sorted(
            [*versions, *approval_logs, *lock_events],
            key=lambda item: item["created_at"],
            reverse=True,
        )
        return {
            "versions": versions,
            "approval_logs": approval_logs,
            "lock_events": lock_events,
            "timeline": timeline,
        }

    def _event(
        self,
        kind: EventKind,
        asset: Asset,
        actor: User,
        version: int | None = None,
        comment: str | None = None,
    ) -> ReviewEvent:
        return ReviewEvent(
            kind=kind,
            asset_id=asset.id,
            asset_title=asset.title,
            project_id=asset.project_id,
            actor_id=actor.id,
            actor_name=actor.display_name,
            version=version,
            comment=comment,
        )
