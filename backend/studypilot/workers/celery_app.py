"""
Celery application instance and configuration.
"""

import logging
from datetime import timedelta

from celery import Celery
from celery.signals import worker_process_init, worker_process_shutdown

from studypilot.core.config import settings
from studypilot.core.logging import setup_logging
from studypilot.services.sync.coordinator import BACKGROUND_SYNC_TASK, SYNC_TASK_NAME
from studypilot.services.sync.scheduler import CeleryBeatScheduler

logger = logging.getLogger(__name__)

# Create Celery application
celery_app = Celery(
    "studypilot",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

# Configure Celery
celery_app.conf.update(
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    accept_content=settings.celery_accept_content_list,
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=settings.CELERY_ENABLE_UTC,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    result_expires=3600,  # 1 hour
)

# Celery Beat Schedule (Periodic Tasks)
celery_app.conf.beat_schedule = {}
CeleryBeatScheduler(celery_app, queue="sync").register(
    BACKGROUND_SYNC_TASK,
    timedelta(minutes=settings.SYNC_INTERVAL_MINUTES),
    SYNC_TASK_NAME,
)

# Task routing
celery_app.conf.task_routes = {
    'sync.*': {'queue': 'sync'},
    'processing.*': {'queue': 'processing'},
}

# Task modules loaded by the worker
celery_app.conf.imports = (
    'studypilot.tasks.sync_tasks',
    'studypilot.tasks.processing_tasks',
)


# ========================================
# Worker process lifecycle
# ========================================

_worker_embedder = None


def get_worker_embedder():
    """Embedding model loaded for this worker process, if any."""
    return _worker_embedder


@worker_process_init.connect
def init_worker_process(**kwargs) -> None:
    """Configure logging and load the embedding model once per process."""
    global _worker_embedder
    from studypilot.services.processors.embedder import EmbeddingService
    from studypilot.tasks import run_async

    setup_logging()
    embedder = EmbeddingService()
    run_async(embedder.initialize())
    _worker_embedder = embedder
    logger.info(f"Worker process ready with embedding model {embedder.model_name}")


@worker_process_shutdown.connect
def shutdown_worker_process(**kwargs) -> None:
    global _worker_embedder
    from studypilot.tasks import run_async

    if _worker_embedder is not None:
        run_async(_worker_embedder.shutdown())
        _worker_embedder = None
