from __future__ import annotations

import logging
from typing import Any

from celery import Celery

from . import settings
from .errors import UpstreamFailure
from .services.media_host import MediaHostClient

logger = logging.getLogger(__name__)

celery_app = Celery(
    "vidshare",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_default_queue="default",
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,
    worker_max_tasks_per_child=100,
    timezone="UTC",
)

CLEANUP_MAX_RETRIES = 5


@celery_app.task(name="vidshare.tasks.cleanup_orphaned_asset", bind=True, max_retries=CLEANUP_MAX_RETRIES)
def cleanup_orphaned_asset(self, asset_id: str, resource_type: str = "video") -> dict[str, Any]:
    """
    Delete a media-host asset whose database row was never committed.

    Enqueued by the upload handler when the local transaction fails after the
    host already accepted the file.
    """
    logger.info("Cleaning up orphaned %s asset %s", resource_type, asset_id)
    try:
        MediaHostClient().destroy(asset_id, resource_type=resource_type)
    except UpstreamFailure as exc:
        countdown = 30 * (2 ** self.request.retries)
        logger.warning("Cleanup of %s failed (%s), retrying in %ss", asset_id, exc.detail, countdown)
        raise self.retry(exc=exc, countdown=countdown)
    return {"status": "deleted", "asset_id": asset_id}


def enqueue_asset_cleanup(asset_id: str, resource_type: str = "video") -> None:
    """Queue a cleanup job; a broker outage is logged, never raised."""
    try:
        cleanup_orphaned_asset.delay(asset_id, resource_type)
    except Exception as e:
        logger.error("Could not enqueue cleanup of orphaned asset %s: %s", asset_id, e)
