"""
Celery tasks for study material processing.
"""

import logging
import time

from studypilot.core.exceptions import MaterialNotFoundError
from studypilot.models.material import MaterialStatus
from studypilot.services.container import task_container
from studypilot.tasks import run_async
from studypilot.workers.celery_app import celery_app, get_worker_embedder

logger = logging.getLogger(__name__)


@celery_app.task(name='processing.process_material')
def process_material(material_id: int) -> dict:
    """
    Run the processing pipeline for one material.

    Stage failures are recorded on the material and its tasks, so this task
    reports them instead of raising.

    Returns:
        {
            'success': bool,
            'material_id': int,
            'status': 'ready' | 'error',
            'processing_time_seconds': float
        }
    """
    async def _process() -> dict:
        start_time = time.time()
        async with task_container(embedder=get_worker_embedder()) as container:
            try:
                status = await container.pipeline.process_new_material(material_id)
            except MaterialNotFoundError as e:
                logger.error(str(e))
                return {
                    'success': False,
                    'material_id': material_id,
                    'error': str(e),
                }

        logger.info(f"Material {material_id} finished with status {status}")
        return {
            'success': status == MaterialStatus.READY,
            'material_id': material_id,
            'status': str(status),
            'processing_time_seconds': round(time.time() - start_time, 2),
        }

    return run_async(_process())
