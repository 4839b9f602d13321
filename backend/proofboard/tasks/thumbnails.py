"""Thumbnail generation task."""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from proofboard.config import get_settings
from proofboard.database import async_session_maker
from proofboard.models.asset_version import AssetVersion
from proofboard.services.asset_service import ThumbnailJob
from proofboard.services.thumbnail_service import ThumbnailGenerationError, ThumbnailService
from proofboard.tasks.celery_app import celery_app, run_async

settings = get_settings()
logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=settings.thumbnail_max_attempts - 1,
    default_retry_delay=settings.thumbnail_retry_delay,
)
def generate_thumbnail(self, asset_version_id: int, asset_type: str, file_path: str, project_id: int):
    """
    Render and store the preview for one asset version.

    At most `thumbnail_max_attempts` runs, `thumbnail_retry_delay` seconds
    apart. After the last failed attempt the job logs and gives up.
    """
    try:
        return run_async(
            generate_thumbnail_async(asset_version_id, asset_type, file_path, project_id)
        )
    except ThumbnailGenerationError as e:
        return retry_or_give_up(self, e, asset_version_id)


def retry_or_give_up(task, exc: Exception, asset_version_id: int) -> dict:
    attempt = task.request.retries + 1
    if task.request.retries >= task.max_retries:
        logger.error(
            "Thumbnail for version %s failed after %s attempts, giving up: %s",
            asset_version_id, attempt, exc,
        )
        return {"status": "failed", "attempts": attempt, "error": str(exc)}

    logger.warning(
        "Thumbnail attempt %s for version %s failed, retrying in %ss: %s",
        attempt, asset_version_id, settings.thumbnail_retry_delay, exc,
    )
    raise task.retry(exc=exc, countdown=settings.thumbnail_retry_delay)


async def generate_thumbnail_async(
    asset_version_id: int,
    asset_type: str,
    file_path: str,
    project_id: int,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    service: ThumbnailService | None = None,
) -> dict:
    """Async implementation; raises ThumbnailGenerationError when worth retrying."""
    session_maker = session_maker or async_session_maker
    service = service or ThumbnailService()

    async with session_maker() as db:
        version = await db.get(AssetVersion, asset_version_id)
        if version is None:
            logger.warning("Asset version %s not found, skipping thumbnail", asset_version_id)
            return {"status": "skipped", "reason": "missing"}
        if version.thumbnail_url:
            logger.info("Asset version %s already has a thumbnail, skipping", asset_version_id)
            return {"status": "skipped", "reason": "exists"}

        result = await asyncio.to_thread(
            service.generate, file_path, asset_type, f"assets/{project_id}/thumbnails"
        )
        if result is None:
            logger.warning("No thumbnail produced for version %s (%s)", asset_version_id, asset_type)
            return {"status": "unavailable"}

        version.thumbnail_path = result["path"]
        version.thumbnail_url = result["url"]
        await db.commit()

    logger.info("Thumbnail for version %s stored at %s", asset_version_id, result["path"])
    return {"status": "generated", "thumbnail_url": result["url"]}


def enqueue_thumbnail(job: ThumbnailJob) -> None:
    """Hand a job to the worker; a broker outage must not fail the upload."""
    try:
        generate_thumbnail.delay(*job)
    except Exception:
        logger.exception("Could not enqueue thumbnail for version %s", job.asset_version_id)
