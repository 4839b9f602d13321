"""Celery application configuration."""
import asyncio

from celery import Celery
from celery.schedules import crontab

from proofboard.config import get_settings

settings = get_settings()

celery_app = Celery(
    "proofboard",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["proofboard.tasks.thumbnails", "proofboard.tasks.maintenance"],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,
    task_soft_time_limit=240,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    result_expires=3600,

    beat_schedule={
        "cleanup-temp-comment-images": {
            "task": "proofboard.tasks.maintenance.cleanup_temp_comment_images",
            "schedule": crontab(minute=0),
            "kwargs": {"hours": settings.temp_image_retention_hours},
        },
    },
)


def run_async(coro):
    """Run a coroutine to completion from a synchronous task."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()
