"""Maintenance tasks (temp file retention)."""
import logging
from datetime import datetime, timedelta, timezone

from proofboard.tasks.celery_app import celery_app
from proofboard.utils.storage import StorageService, storage

logger = logging.getLogger(__name__)


@celery_app.task
def cleanup_temp_comment_images(hours: int = 24, dry_run: bool = False) -> dict:
    """Delete comment images uploaded more than `hours` ago and never attached."""
    return purge_temp_comment_images(storage, hours, dry_run)


def purge_temp_comment_images(store: StorageService, hours: int = 24, dry_run: bool = False) -> dict:
    cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
    stats = store.purge_temp_images(older_than=cutoff, dry_run=dry_run)
    logger.info(
        "Temp comment image cleanup%s: %s files older than %s, %s directories removed",
        " (dry run)" if dry_run else "",
        stats["deleted_files"], cutoff.isoformat(), stats["removed_directories"],
    )
    return {"cutoff": cutoff.isoformat(), **stats}
