"""Celery tasks for the delete request workflow."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    autoretry_for=(ConnectionError, TimeoutError),
    retry_backoff=True,
    default_retry_delay=60,
)
def purge_resolved_delete_requests(self, days=None):
    """Remove approved/rejected requests past the retention window."""
    from .services import DeleteRequestService

    deleted = DeleteRequestService().purge_resolved(days=days)
    logger.info("Delete request purge: %d removed", deleted)
    return {'deleted': deleted}
