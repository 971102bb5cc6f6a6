"""
Celery tasks for offline content sync.

sync.perform_sync is scheduled by Celery beat every SYNC_INTERVAL_MINUTES
under the entry "background-sync" and can also be queued on demand.
"""

import logging
import time

from studypilot.services.container import task_container
from studypilot.tasks import run_async
from studypilot.workers.celery_app import celery_app, get_worker_embedder

logger = logging.getLogger(__name__)


@celery_app.task(name='sync.perform_sync')
def perform_sync() -> dict:
    """
    Run one sync attempt.

    Returns:
        {
            'success': bool,
            'error': str | None,
            'entity_counts': {'topics': int, ...},
            'duration_seconds': float
        }
    """
    async def _sync() -> dict:
        start_time = time.time()
        async with task_container(embedder=get_worker_embedder()) as container:
            result = await container.sync_coordinator.perform_sync()

        if result.success:
            logger.info(f"Background sync completed: {result.synced_data.entity_counts()}")
        else:
            logger.warning(f"Background sync did not complete: {result.error}")

        return {
            'success': result.success,
            'error': result.error,
            'entity_counts': result.synced_data.entity_counts() if result.synced_data else {},
            'duration_seconds': round(time.time() - start_time, 2),
        }

    return run_async(_sync())
