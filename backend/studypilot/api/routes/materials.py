"""
Material Processing API Routes

- Queue a material for processing
- Read per-stage processing status
"""

import logging

from fastapi import APIRouter, HTTPException, status

from studypilot.api.deps import Container
from studypilot.core.exceptions import MaterialNotFoundError
from studypilot.schemas.processing import ProcessingStatusResponse, ProcessMaterialResponse
from studypilot.services.processing.pipeline import STORE_UNAVAILABLE_ERRORS
from studypilot.tasks.processing_tasks import process_material

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/materials", tags=["materials"])


@router.post(
    "/{material_id}/process",
    response_model=ProcessMaterialResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def queue_material_processing(material_id: int, container: Container):
    """
    Queue the processing pipeline for a material.

    Raises:
        404 if the material does not exist
    """
    try:
        await container.repository.get_material(material_id)
    except MaterialNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    task = process_material.delay(material_id)
    logger.info(f"Queued processing for material {material_id} (task {task.id})")

    return ProcessMaterialResponse(material_id=material_id, task_id=task.id)


@router.get("/{material_id}/processing-status", response_model=ProcessingStatusResponse)
async def get_processing_status(material_id: int, container: Container):
    """
    Per-stage task status in creation order.

    Served from the local cache when the task store is unreachable.
    """
    try:
        return await container.pipeline.get_status_report(material_id)
    except STORE_UNAVAILABLE_ERRORS as e:
        logger.error(f"Processing status unavailable for material {material_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Processing status is temporarily unavailable",
        )
